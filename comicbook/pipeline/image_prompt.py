"""
Final image prompt synthesis for a single panel.

Tier 1 asks a text model to rewrite style, characters and scene into one
natural English prompt. Tier 2 is a deterministic concatenation used when
Tier 1 fails for any reason; it never touches the network and always
returns a prompt.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Sequence

from comicbook.core.metrics import record_prompt_fallback
from comicbook.core.settings import settings
from comicbook.pipeline.models import PromptTier
from comicbook.prompts.loader import get_prompt, get_prompt_data, render_prompt

if TYPE_CHECKING:
    from comicbook.services.gemini import GeminiClient

logger = logging.getLogger(__name__)

REWRITE_PROMPT_NAME = "image_prompt_rewrite"

_WRAPPING_QUOTES = re.compile(r"^[\"']|[\"']$")


@dataclass(frozen=True)
class PromptRewriteResult:
    """Outcome of a Tier 1 rewrite: either a prompt or the error that stopped it."""

    prompt: str | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.prompt)


@dataclass(frozen=True)
class SynthesizedPrompt:
    prompt: str
    tier: PromptTier


PromptRewriter = Callable[[str], PromptRewriteResult]


def build_rewrite_instruction(
    visual_style: str,
    characters: Sequence[str],
    narrative_text: str,
    scene_description: str,
) -> str:
    """Meta-instruction sent to the text model for Tier 1."""
    return render_prompt(
        REWRITE_PROMPT_NAME,
        validate=True,
        visual_style=visual_style or "",
        characters=[c for c in characters if c],
        panel_text=narrative_text or "",
        scene_description=scene_description,
    )


def clean_rewritten_prompt(text: str) -> str:
    """Trim whitespace and one pair of wrapping quote characters."""
    return _WRAPPING_QUOTES.sub("", text.strip()).strip()


def build_fallback_prompt(
    scene_description: str,
    visual_style: str,
    characters: Sequence[str] = (),
) -> str:
    """Tier 2: style + characters + scene + fixed guidelines, by plain concatenation."""
    suffix = get_prompt("fallback_style_suffix")
    style = visual_style.strip().rstrip(".,") if visual_style else ""
    segments = [f"{style}, {suffix}" if style else suffix]

    named = [c.strip() for c in characters if c and c.strip()]
    if named:
        segments.append(", ".join(named) + ".")

    if scene_description:
        segments.append(scene_description)

    segments.append(" ".join(get_prompt_data("fallback_guidelines")))
    return " ".join(segments)


def gemini_rewriter(gemini: "GeminiClient", model: str | None = None) -> PromptRewriter:
    """Bind Tier 1 to a Gemini client using the prompt-rewrite sampling settings."""

    def _rewrite(instruction: str) -> PromptRewriteResult:
        try:
            text = gemini.generate_text(
                instruction,
                model=model or settings.gemini_prompt_model,
                temperature=settings.prompt_temperature,
                top_p=settings.prompt_top_p,
                top_k=settings.prompt_top_k,
                max_output_tokens=settings.prompt_max_output_tokens,
            )
        except Exception as exc:  # noqa: BLE001
            return PromptRewriteResult(error=exc)
        return PromptRewriteResult(prompt=clean_rewritten_prompt(text))

    return _rewrite


def synthesize_panel_prompt(
    visual_style: str,
    characters: Sequence[str],
    narrative_text: str,
    scene_description: str,
    *,
    rewrite: PromptRewriter | None = None,
) -> SynthesizedPrompt:
    """Run Tier 1 when a rewriter is available and fall back to Tier 2 on any failure."""
    if rewrite is not None:
        instruction = build_rewrite_instruction(visual_style, characters, narrative_text, scene_description)
        result = rewrite(instruction)
        if result.ok:
            logger.debug("panel_prompt_rewritten", extra={"prompt_length": len(result.prompt or "")})
            return SynthesizedPrompt(prompt=result.prompt or "", tier=PromptTier.AI_ASSISTED)

        reason = type(result.error).__name__ if result.error else "empty_output"
        logger.warning(
            "panel_prompt_fallback",
            extra={"reason": reason, "error": repr(result.error) if result.error else None},
        )
        record_prompt_fallback(reason)
    else:
        record_prompt_fallback("no_rewriter")

    return SynthesizedPrompt(
        prompt=build_fallback_prompt(scene_description, visual_style, characters),
        tier=PromptTier.FALLBACK,
    )


def synthesize_image_prompt(
    visual_style: str,
    characters: Sequence[str],
    narrative_text: str,
    scene_description: str,
    *,
    rewrite: PromptRewriter | None = None,
) -> str:
    """Return the final English image prompt for one panel."""
    return synthesize_panel_prompt(
        visual_style,
        characters,
        narrative_text,
        scene_description,
        rewrite=rewrite,
    ).prompt
