import pytest

from comicbook.core.exceptions import AuthFailureError, MalformedResponseError
from comicbook.pipeline.models import LanguageMode, LanguageTag, StoryInput
from comicbook.pipeline.story_generation import generate_story, prepare_story_prompt

from conftest import FakeGemini, story_json


def test_generate_story_end_to_end():
    fake = FakeGemini(story_json(4))
    story = generate_story(StoryInput(raw_text="从前有一个小男孩和他的小狗。"), gemini=fake)

    assert len(story.panels) == 4
    assert story.language is LanguageTag.ZH
    call = fake.text_calls[0]
    assert "**Chinese**" in call["prompt"]
    assert call["response_mime_type"] == "application/json"
    assert call["temperature"] == 0.8
    assert call["top_p"] == 0.95
    assert call["top_k"] == 40
    assert call["max_output_tokens"] == 8192


def test_generate_story_truncates_to_budget():
    fake = FakeGemini(story_json(30))
    story = generate_story(StoryInput(raw_text="A short story about a dog."), gemini=fake)
    assert len(story.panels) == 10


def test_explicit_language_overrides_detection():
    story_input = StoryInput(
        raw_text="A short story about a dog.",
        language_mode=LanguageMode.EXPLICIT,
        language=LanguageTag.JA,
    )
    prompt = prepare_story_prompt(story_input)
    assert prompt.language is LanguageTag.JA
    assert "**Japanese**" in prompt.instruction_text


def test_malformed_model_output_propagates():
    fake = FakeGemini("I'm sorry, I can't do that.")
    with pytest.raises(MalformedResponseError):
        generate_story(StoryInput(raw_text="A short story."), gemini=fake)


def test_transport_errors_propagate():
    fake = FakeGemini(story_error=AuthFailureError("401 bad key"))
    with pytest.raises(AuthFailureError):
        generate_story(StoryInput(raw_text="A short story."), gemini=fake)


class TestStoryInput:
    def test_rejects_blank_text(self):
        with pytest.raises(ValueError):
            StoryInput(raw_text="   ")

    def test_rejects_overlong_text(self):
        with pytest.raises(ValueError):
            StoryInput(raw_text="x" * 10001)

    def test_accepts_maximum_length(self):
        assert len(StoryInput(raw_text="x" * 10000).raw_text) == 10000

    def test_keywords_from_comma_string(self):
        assert StoryInput(raw_text="t", keywords="courage, , friendship").keywords == ("courage", "friendship")

    def test_explicit_mode_requires_language(self):
        with pytest.raises(ValueError):
            StoryInput(raw_text="t", language_mode=LanguageMode.EXPLICIT)


def test_short_chinese_story_keeps_all_panels():
    story_text = ("小明和他的小狗在公园里玩球，阳光很好。" * 22)[:400]
    fake = FakeGemini(story_json(7))

    story = generate_story(StoryInput(raw_text=story_text), gemini=fake)

    prompt_text = fake.text_calls[0]["prompt"]
    assert "8-10" in prompt_text
    assert "Chinese" in prompt_text
    assert [p.id for p in story.panels] == list(range(1, 8))
