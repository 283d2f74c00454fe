"""
Self-contained HTML export of a finished comic.

Images are embedded as data URIs, so the output is a single file that can be
opened offline.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Mapping

from jinja2 import Environment, FileSystemLoader, select_autoescape

from comicbook.pipeline.models import LanguageTag, Story

_TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
_TEMPLATE_NAME = "story.html.j2"

DEFAULT_TITLE = "Untitled Comic"

_HTML_LANG = {
    LanguageTag.ZH: "zh-CN",
    LanguageTag.EN: "en",
    LanguageTag.JA: "ja",
    LanguageTag.KO: "ko",
}

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9\u4e00-\u9fff]")


@lru_cache(maxsize=1)
def _jinja_env() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        autoescape=select_autoescape(enabled_extensions=("html", "j2"), default=True),
        trim_blocks=True,
        lstrip_blocks=True,
    )


def render_story_html(
    story: Story,
    images: Mapping[int, str],
    *,
    title: str | None = None,
    created_at: datetime | None = None,
) -> str:
    """Render ``story`` and its panel images into one HTML document.

    ``images`` maps panel id to an image URI; panels without an entry are
    rendered without an image.
    """
    now = datetime.now(timezone.utc)
    created = created_at or now
    template = _jinja_env().get_template(_TEMPLATE_NAME)
    return template.render(
        title=title or story.title or DEFAULT_TITLE,
        lang=_HTML_LANG.get(story.language, "en") if story.language else "en",
        created_on=created.strftime("%Y-%m-%d"),
        exported_on=now.strftime("%Y-%m-%d"),
        characters=list(story.characters),
        panels=list(story.panels),
        images=dict(images),
    )


def export_filename(title: str | None, now: datetime | None = None) -> str:
    """File name for an export: sanitized title plus a millisecond timestamp."""
    moment = now or datetime.now(timezone.utc)
    millis = round(moment.timestamp() * 1000)
    safe_title = _UNSAFE_FILENAME_CHARS.sub("_", title or DEFAULT_TITLE)
    return f"{safe_title}_{millis}.html"
