"""
Story decomposition: language resolution, instruction building, the model
call and strict normalization of its answer.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from comicbook.core.request_context import log_context
from comicbook.core.settings import settings
from comicbook.core.telemetry import trace_span
from comicbook.pipeline.language import resolve_language
from comicbook.pipeline.models import Story, StoryInput, StoryPrompt
from comicbook.pipeline.story_parser import normalize_story_response
from comicbook.pipeline.story_prompt import build_story_prompt

if TYPE_CHECKING:
    from comicbook.services.gemini import GeminiClient

logger = logging.getLogger(__name__)

STORY_RESPONSE_MIME_TYPE = "application/json"


def prepare_story_prompt(story_input: StoryInput) -> StoryPrompt:
    language = resolve_language(story_input.raw_text, story_input.language_mode, story_input.language)
    return build_story_prompt(story_input.raw_text, story_input.keywords, language)


def generate_story(
    story_input: StoryInput,
    *,
    gemini: "GeminiClient",
    story_prompt: StoryPrompt | None = None,
) -> Story:
    """Turn user input into a canonical Story.

    Raises:
        MalformedResponseError: The model answer is not a readable story.
        GenerationError: The model call itself failed (typed by category).
    """
    prompt = story_prompt or prepare_story_prompt(story_input)
    story_id = uuid.uuid4().hex[:12]

    with log_context(story_id=story_id), trace_span(
        "story.generate",
        language=prompt.language.value,
        max_panels=prompt.max_panels,
        chars=len(story_input.raw_text),
    ):
        logger.info(
            "story_generation_started",
            extra={
                "language": prompt.language.value,
                "target_range": prompt.target_range,
                "max_panels": prompt.max_panels,
                "keywords": len(story_input.keywords),
            },
        )
        raw_text = gemini.generate_text(
            prompt.instruction_text,
            model=settings.gemini_story_model,
            temperature=settings.story_temperature,
            top_p=settings.story_top_p,
            top_k=settings.story_top_k,
            max_output_tokens=settings.story_max_output_tokens,
            response_mime_type=STORY_RESPONSE_MIME_TYPE,
        )
        story = normalize_story_response(raw_text, prompt.max_panels)
        logger.info(
            "story_generation_completed",
            extra={"panels": len(story.panels), "characters": len(story.characters)},
        )

    return story.model_copy(update={"language": prompt.language})
