"""
Per-panel rendering: prompt synthesis followed by image generation.

Panels are independent. ``render_panels`` fans them out onto worker threads
behind a semaphore and collects each outcome separately, so one failed
panel never cancels its siblings.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from comicbook.core.request_context import log_context
from comicbook.core.settings import settings
from comicbook.core.telemetry import trace_span
from comicbook.pipeline.image_generation import generate_image
from comicbook.pipeline.image_prompt import gemini_rewriter, synthesize_panel_prompt
from comicbook.pipeline.models import Panel, PanelRenderResult, Story

if TYPE_CHECKING:
    from comicbook.services.gemini import GeminiClient

logger = logging.getLogger(__name__)


def render_panel(story: Story, panel: Panel, *, gemini: "GeminiClient") -> PanelRenderResult:
    with log_context(panel_id=panel.id), trace_span("panel.render", panel_id=panel.id):
        synthesized = synthesize_panel_prompt(
            story.visual_style,
            story.characters,
            panel.narrative_text,
            panel.image_prompt,
            rewrite=gemini_rewriter(gemini),
        )
        image = generate_image(synthesized.prompt, gemini=gemini)
        logger.info("panel_rendered", extra={"prompt_tier": synthesized.tier.value})

    return PanelRenderResult(
        panel_id=panel.id,
        final_prompt=synthesized.prompt,
        prompt_tier=synthesized.tier,
        image_data_uri=image,
    )


async def render_panels(
    story: Story,
    *,
    gemini: "GeminiClient",
    concurrency: int | None = None,
) -> dict[int, PanelRenderResult | Exception]:
    """Render every panel of ``story`` concurrently.

    Returns a map keyed by panel id holding either the rendered result or the
    exception that panel raised.
    """
    limit = max(1, concurrency or settings.panel_render_concurrency)
    semaphore = asyncio.Semaphore(limit)

    async def _render_one(panel: Panel) -> PanelRenderResult:
        async with semaphore:
            return await asyncio.to_thread(render_panel, story, panel, gemini=gemini)

    outcomes = await asyncio.gather(
        *(_render_one(panel) for panel in story.panels),
        return_exceptions=True,
    )

    results: dict[int, PanelRenderResult | Exception] = {}
    for panel, outcome in zip(story.panels, outcomes):
        if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, Exception):
            logger.warning(
                "panel_render_failed",
                extra={"panel": panel.id, "error_type": type(outcome).__name__, "error": str(outcome)},
            )
        results[panel.id] = outcome

    failed = sum(1 for value in results.values() if isinstance(value, Exception))
    logger.info("panels_rendered", extra={"total": len(results), "failed": failed})
    return results
