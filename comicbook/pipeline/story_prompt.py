"""
Instruction builder for the story decomposition call.

Pure templating: no network access, so the output can be asserted on
directly in tests.
"""

from __future__ import annotations

from typing import Sequence

from comicbook.pipeline.budget import compute_budget
from comicbook.pipeline.language import language_name
from comicbook.pipeline.models import LanguageTag, StoryPrompt
from comicbook.prompts.loader import get_prompt_data, render_prompt

STORY_PROMPT_NAME = "story_decomposition"


def build_story_prompt(
    story_text: str,
    keywords: Sequence[str] = (),
    language: LanguageTag | str = LanguageTag.EN,
) -> StoryPrompt:
    """Build the decomposition instruction and the hard panel cap for ``story_text``."""
    budget = compute_budget(len(story_text))
    tag = LanguageTag(language)
    cleaned_keywords = [k.strip() for k in keywords if k and k.strip()]

    instruction = render_prompt(
        STORY_PROMPT_NAME,
        validate=True,
        story_text=story_text,
        keywords=cleaned_keywords,
        language_name=language_name(tag),
        target_range=budget.target_range,
        max_panels=budget.max_panels,
        age_bands=get_prompt_data("age_bands"),
    )
    return StoryPrompt(
        instruction_text=instruction,
        max_panels=budget.max_panels,
        target_range=budget.target_range,
        language=tag,
    )
