"""
Strict parse-or-fail normalization of the story decomposition response.

This is the single trust boundary between loosely shaped model output and
the typed :class:`~comicbook.pipeline.models.Story`. The only tolerance
applied beyond fence stripping is collapsing structured character entries
into strings.
"""

import json
import logging
import re
from typing import Any, Mapping

from comicbook.core.exceptions import MalformedResponseError
from comicbook.core.metrics import increment_json_parse_failure, record_panel_truncation
from comicbook.pipeline.models import Panel, Story
from comicbook.prompts.loader import validate_prompt_output

logger = logging.getLogger(__name__)

_NAME_KEYS = ("name", "character", "title")
_DESCRIPTION_KEYS = ("description", "desc", "appearance", "details")
CHARACTER_SEPARATOR = ": "

_FENCE_PATTERNS = [
    r"```json\s*\n?(.*?)\n?```",
    r"```\s*\n?(.*?)\n?```",
]


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences from LLM output."""
    cleaned = text.strip()
    for pattern in _FENCE_PATTERNS:
        match = re.search(pattern, cleaned, re.DOTALL | re.IGNORECASE)
        if match:
            return match.group(1).strip()
    # Unbalanced fences: only one of the two markers made it into the output.
    cleaned = re.sub(r"^```(?:json)?\s*", "", cleaned, flags=re.IGNORECASE)
    return re.sub(r"\s*```$", "", cleaned).strip()


def _first_text(entry: Mapping[str, Any], keys: tuple[str, ...]) -> str:
    for key in keys:
        value = entry.get(key)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return ""


def normalize_character(entry: Any) -> str:
    """Collapse one character entry into a self-contained description string."""
    if isinstance(entry, str):
        return entry
    if isinstance(entry, Mapping):
        name = _first_text(entry, _NAME_KEYS)
        description = _first_text(entry, _DESCRIPTION_KEYS)
        if name and description:
            return f"{name}{CHARACTER_SEPARATOR}{description}"
        if name or description:
            return name or description
        return json.dumps(entry, ensure_ascii=False, separators=(",", ":"), default=str)
    if isinstance(entry, (list, tuple)):
        return json.dumps(entry, ensure_ascii=False, separators=(",", ":"), default=str)
    return str(entry)


def _optional_text(data: Mapping[str, Any], key: str, raw_text: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        increment_json_parse_failure("field_type")
        raise MalformedResponseError(f"'{key}' must be a string, got {type(value).__name__}", raw_text=raw_text)
    return value


def _panel_id(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def _convert_panel(item: Any, raw_text: str) -> Panel:
    if not isinstance(item, Mapping):
        increment_json_parse_failure("panel_type")
        raise MalformedResponseError(f"Invalid panel payload: {item!r}", raw_text=raw_text)

    panel_id = _panel_id(item.get("id"))
    if panel_id is None:
        increment_json_parse_failure("panel_id")
        raise MalformedResponseError(f"Panel is missing an integer id: {item!r}", raw_text=raw_text)

    return Panel(
        id=panel_id,
        narrative_text=_optional_text(item, "text", raw_text),
        image_prompt=_optional_text(item, "imagePrompt", raw_text),
    )


def normalize_story_response(raw_text: str, max_panels: int) -> Story:
    """Parse the decomposition model's output into a canonical Story.

    Raises:
        MalformedResponseError: If the text is not a JSON object with a
            ``panels`` list, or a field has the wrong shape.
    """
    cleaned = strip_code_fences(raw_text or "")
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        increment_json_parse_failure("invalid_json")
        logger.warning(
            "story_response_unparseable",
            extra={"error": str(exc), "preview": (raw_text or "")[:300]},
        )
        raise MalformedResponseError(
            f"Failed to parse story response as JSON: {exc}",
            raw_text=raw_text or "",
        ) from exc

    try:
        validate_prompt_output("story_decomposition", data)
    except ValueError as exc:
        increment_json_parse_failure("schema")
        raise MalformedResponseError(str(exc), raw_text=raw_text) from exc

    panels_data = data["panels"]
    if not isinstance(panels_data, list):
        increment_json_parse_failure("panels_type")
        raise MalformedResponseError("Story JSON must contain a 'panels' list.", raw_text=raw_text)

    if len(panels_data) > max_panels:
        logger.info(
            "story_panels_truncated",
            extra={"received": len(panels_data), "max_panels": max_panels},
        )
        record_panel_truncation()
        panels_data = panels_data[:max_panels]

    characters_data = data.get("characters")
    if characters_data is None:
        characters_data = []
    if not isinstance(characters_data, list):
        increment_json_parse_failure("characters_type")
        raise MalformedResponseError("'characters' must be a list.", raw_text=raw_text)

    return Story(
        visual_style=_optional_text(data, "visualStyle", raw_text),
        optimized_story_summary=_optional_text(data, "optimizedStory", raw_text),
        characters=tuple(normalize_character(entry) for entry in characters_data if entry is not None),
        panels=tuple(_convert_panel(item, raw_text) for item in panels_data),
    )
