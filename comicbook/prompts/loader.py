"""
Versioned YAML prompt store.

Prompts live under ``v1/<domain>/*.yaml``:

    v1/
    ├── story/   # story decomposition instruction and age bands
    └── panel/   # image prompt rewrite instruction and fallback pieces

Each top-level key is one of:
- a template string,
- a mapping with ``template`` and optional ``required_variables`` /
  ``output_schema``,
- plain data (a list of guideline sentences, the age bands), read with
  :func:`get_prompt_data`.

Usage:
    from comicbook.prompts.loader import render_prompt, get_prompt_data

    text = render_prompt("story_decomposition", validate=True, story_text="...", ...)
    guidelines = get_prompt_data("fallback_guidelines")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from jinja2 import Environment, StrictUndefined, TemplateSyntaxError, meta

logger = logging.getLogger(__name__)

_PROMPTS_DIR = Path(__file__).resolve().parent
_VERSION = "v1"
_DOMAINS = ("story", "panel")


@dataclass(frozen=True)
class PromptEntry:
    name: str
    domain: str
    source: Path
    value: Any
    template: str | None = None
    required_variables: tuple[str, ...] = ()
    output_schema: dict[str, Any] | None = None


@lru_cache(maxsize=1)
def _environment() -> Environment:
    return Environment(
        undefined=StrictUndefined,
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
    )


def _make_entry(name: str, domain: str, source: Path, value: Any) -> PromptEntry:
    if isinstance(value, str):
        return PromptEntry(name, domain, source, value, template=value)
    if isinstance(value, dict) and isinstance(value.get("template"), str):
        return PromptEntry(
            name,
            domain,
            source,
            value,
            template=value["template"],
            required_variables=tuple(value.get("required_variables") or ()),
            output_schema=value.get("output_schema"),
        )
    return PromptEntry(name, domain, source, value)


@lru_cache(maxsize=1)
def _registry() -> dict[str, PromptEntry]:
    """Read every prompt file once; a template with a syntax error fails the load."""
    entries: dict[str, PromptEntry] = {}
    for domain in _DOMAINS:
        domain_dir = _PROMPTS_DIR / _VERSION / domain
        if not domain_dir.is_dir():
            continue
        for path in sorted(domain_dir.glob("*.yaml")):
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
            if not isinstance(data, dict):
                raise ValueError(f"{path} must contain a mapping at the top level")
            for name, value in data.items():
                entry = _make_entry(name, domain, path, value)
                if entry.template is not None:
                    try:
                        _environment().parse(entry.template)
                    except TemplateSyntaxError as exc:
                        raise ValueError(f"Invalid template '{name}' in {path.name}: {exc}") from exc
                if name in entries:
                    logger.warning("prompt_overridden", extra={"prompt": name, "source": str(path)})
                entries[name] = entry
    return entries


def _lookup(name: str) -> PromptEntry:
    try:
        return _registry()[name]
    except KeyError:
        raise KeyError(f"Prompt '{name}' not found") from None


def get_prompt(name: str) -> str:
    """Raw template text for ``name``.

    Raises:
        KeyError: Unknown name, or the entry is data rather than a template.
    """
    entry = _lookup(name)
    if entry.template is None:
        raise KeyError(f"Prompt '{name}' is data, not a template")
    return entry.template


def get_prompt_data(name: str) -> Any:
    return _lookup(name).value


def template_variables(template: str) -> set[str]:
    """Names a template reads from its context (loop variables excluded)."""
    return meta.find_undeclared_variables(_environment().parse(template))


def render_prompt(name: str, /, *, validate: bool = False, **context: Any) -> str:
    """Render ``name`` with ``context`` and strip surrounding whitespace.

    With ``validate`` the declared ``required_variables`` (or, when none are
    declared, every variable the template reads) must be present, otherwise
    ``ValueError`` is raised before rendering. Without it, a missing variable
    surfaces as ``jinja2.UndefinedError``.
    """
    template = get_prompt(name)
    if validate:
        expected = _lookup(name).required_variables or tuple(sorted(template_variables(template)))
        missing = [var for var in expected if var not in context]
        if missing:
            raise ValueError(f"Missing required variables for '{name}': {missing}")
    return _environment().from_string(template).render(**context).strip()


def list_prompts(domain: str | None = None) -> list[str]:
    return [entry.name for entry in _registry().values() if domain is None or entry.domain == domain]


def get_prompt_metadata(name: str) -> dict[str, Any]:
    entry = _lookup(name)
    return {
        "domain": entry.domain,
        "version": _VERSION,
        "file_path": str(entry.source.relative_to(_PROMPTS_DIR)),
        "variables": sorted(template_variables(entry.template)) if entry.template else [],
        "required_variables": list(entry.required_variables),
        "output_schema": entry.output_schema,
    }


def validate_prompt_output(name: str, output: Any) -> bool:
    """Check a parsed model answer against the prompt's declared ``output_schema``.

    Only the shape the pipeline relies on is enforced: a JSON object carrying
    every key listed under ``required``.

    Raises:
        KeyError: The prompt declares no schema.
        ValueError: The answer does not match.
    """
    schema = _lookup(name).output_schema
    if not schema:
        raise KeyError(f"Prompt '{name}' declares no output_schema")
    if not isinstance(output, dict):
        raise ValueError(f"Expected a JSON object, got {type(output).__name__}")
    missing = [key for key in schema.get("required", []) if key not in output]
    if missing:
        raise ValueError(f"Response is missing required keys: {missing}")
    return True


def clear_cache() -> None:
    _registry.cache_clear()
    _environment.cache_clear()
