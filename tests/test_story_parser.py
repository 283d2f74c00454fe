import json

import pytest
from hypothesis import given, settings, strategies as st

from comicbook.core.exceptions import MalformedResponseError
from comicbook.core.metrics import registry
from comicbook.pipeline.story_parser import (
    normalize_character,
    normalize_story_response,
    strip_code_fences,
)

from conftest import story_json


def _truncations() -> float:
    return registry.get_sample_value("comicbook_panel_truncations_total") or 0.0


class TestStripCodeFences:
    def test_json_fence(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_plain_fence(self):
        assert strip_code_fences('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_leading_fence_only(self):
        assert strip_code_fences('```json\n{"a": 1}') == '{"a": 1}'

    def test_trailing_fence_only(self):
        assert strip_code_fences('{"a": 1}\n```') == '{"a": 1}'

    def test_no_fence(self):
        assert strip_code_fences('  {"a": 1}  ') == '{"a": 1}'


class TestNormalizeCharacter:
    def test_string_passes_through(self):
        assert normalize_character("Lin, a tall boy") == "Lin, a tall boy"

    def test_name_and_description(self):
        assert normalize_character({"name": "Lin", "description": "tall boy"}) == "Lin: tall boy"

    def test_alternate_keys(self):
        assert normalize_character({"character": "Momo", "appearance": "white dog"}) == "Momo: white dog"

    def test_name_only(self):
        assert normalize_character({"name": "Lin"}) == "Lin"

    def test_description_only(self):
        assert normalize_character({"description": "a quiet old man"}) == "a quiet old man"

    def test_unrecognized_mapping_is_dumped(self):
        assert normalize_character({"age": 8, "hair": "黑色"}) == '{"age":8,"hair":"黑色"}'

    def test_scalar_is_stringified(self):
        assert normalize_character(42) == "42"


class TestNormalizeStoryResponse:
    def test_well_formed_response(self):
        story = normalize_story_response(story_json(3), max_panels=10)

        assert story.visual_style.startswith("Watercolor")
        assert story.optimized_story_summary
        assert len(story.characters) == 2
        assert [p.id for p in story.panels] == [1, 2, 3]
        assert story.panels[0].narrative_text == "Panel text 1"
        assert story.panels[0].image_prompt == "Scene 1: the park at noon"

    def test_fenced_response(self):
        story = normalize_story_response(f"```json\n{story_json(2)}\n```", max_panels=10)
        assert len(story.panels) == 2

    def test_truncates_to_budget_keeping_order(self):
        before = _truncations()
        story = normalize_story_response(story_json(35), max_panels=20)

        assert [p.id for p in story.panels] == list(range(1, 21))
        assert _truncations() == before + 1

    def test_exactly_at_budget_is_not_truncated(self):
        before = _truncations()
        story = normalize_story_response(story_json(10), max_panels=10)
        assert len(story.panels) == 10
        assert _truncations() == before

    def test_structured_characters_are_collapsed(self):
        raw = story_json(1, characters=[{"name": "Lin", "description": "tall boy"}, "Momo: dog", None])
        story = normalize_story_response(raw, max_panels=10)
        assert story.characters == ("Lin: tall boy", "Momo: dog")

    def test_missing_optional_fields_default_to_empty(self):
        raw = json.dumps({"panels": [{"id": 1}]})
        story = normalize_story_response(raw, max_panels=10)

        assert story.visual_style == ""
        assert story.optimized_story_summary == ""
        assert story.characters == ()
        assert story.panels[0].narrative_text == ""
        assert story.panels[0].image_prompt == ""

    def test_string_ids_are_coerced(self):
        raw = json.dumps({"panels": [{"id": "3", "text": "t", "imagePrompt": "p"}]})
        assert normalize_story_response(raw, max_panels=10).panels[0].id == 3

    def test_discarded_panels_are_not_inspected(self):
        panels = [{"id": 1, "text": "ok", "imagePrompt": "ok"}, "garbage"]
        story = normalize_story_response(json.dumps({"panels": panels}), max_panels=1)
        assert len(story.panels) == 1

    @pytest.mark.parametrize(
        "raw",
        [
            "",
            "Sorry, I cannot help with that.",
            '{"visualStyle": "x", "panels": [',
            "[]",
            '{"visualStyle": "x"}',
            '{"panels": "not a list"}',
            '{"panels": [42]}',
            '{"panels": [{"text": "missing id"}]}',
            '{"panels": [{"id": true}]}',
            '{"panels": [], "characters": "Lin"}',
            '{"panels": [{"id": 1, "text": ["not", "a", "string"]}]}',
        ],
    )
    def test_malformed_responses_raise(self, raw):
        with pytest.raises(MalformedResponseError) as exc_info:
            normalize_story_response(raw, max_panels=10)
        assert exc_info.value.raw_text == raw
        assert exc_info.value.detail

    def test_is_idempotent(self):
        raw = story_json(4, characters=[{"name": "Lin", "description": "tall boy"}])
        once = normalize_story_response(raw, max_panels=10)
        twice = normalize_story_response(json.dumps(once.to_payload()), max_panels=10)
        assert twice == once


_text = st.text(alphabet=st.characters(blacklist_categories=("Cs",), blacklist_characters="`"), max_size=40)
_character = st.one_of(
    _text,
    st.fixed_dictionaries({"name": _text, "description": _text}),
)


@pytest.mark.property
class TestNormalizerProperties:
    @given(
        panel_count=st.integers(min_value=0, max_value=40),
        max_panels=st.sampled_from([10, 20]),
    )
    @settings(max_examples=60, deadline=None)
    def test_panel_count_never_exceeds_budget(self, panel_count, max_panels):
        story = normalize_story_response(story_json(panel_count), max_panels=max_panels)
        assert len(story.panels) == min(panel_count, max_panels)

    @given(
        style=_text,
        summary=_text,
        characters=st.lists(_character, max_size=5),
        texts=st.lists(_text, max_size=12),
    )
    @settings(max_examples=60, deadline=None)
    def test_normalizing_twice_changes_nothing(self, style, summary, characters, texts):
        raw = json.dumps(
            {
                "visualStyle": style,
                "optimizedStory": summary,
                "characters": characters,
                "panels": [{"id": i, "text": t, "imagePrompt": t} for i, t in enumerate(texts, start=1)],
            }
        )
        once = normalize_story_response(raw, max_panels=10)
        twice = normalize_story_response(json.dumps(once.to_payload()), max_panels=10)
        assert twice == once
        assert all(isinstance(c, str) for c in once.characters)
