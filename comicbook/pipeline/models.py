from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MAX_STORY_CHARS = 10000


class LanguageTag(str, Enum):
    ZH = "zh"
    EN = "en"
    JA = "ja"
    KO = "ko"


class LanguageMode(str, Enum):
    AUTO = "auto"
    EXPLICIT = "explicit"


class PromptTier(str, Enum):
    AI_ASSISTED = "ai"
    FALLBACK = "fallback"


class StoryInput(BaseModel):
    """User submission: the raw story plus optional keywords and language choice."""

    model_config = ConfigDict(frozen=True)

    raw_text: str = Field(min_length=1, max_length=MAX_STORY_CHARS)
    keywords: tuple[str, ...] = ()
    language_mode: LanguageMode = LanguageMode.AUTO
    language: LanguageTag | None = None

    @field_validator("raw_text")
    @classmethod
    def _reject_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Story text must be a non-empty string.")
        return value

    @field_validator("keywords", mode="before")
    @classmethod
    def _normalize_keywords(cls, value: Any) -> tuple[str, ...]:
        if value is None:
            return ()
        if isinstance(value, str):
            value = value.split(",")
        return tuple(item.strip() for item in (str(v) for v in value) if item.strip())

    @model_validator(mode="after")
    def _explicit_needs_language(self) -> "StoryInput":
        if self.language_mode is LanguageMode.EXPLICIT and self.language is None:
            raise ValueError("language is required when language_mode is 'explicit'")
        return self


class PanelBudget(BaseModel):
    model_config = ConfigDict(frozen=True)

    target_range: str
    max_panels: int


class Panel(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    narrative_text: str = ""
    image_prompt: str = ""

    def to_payload(self) -> dict[str, Any]:
        return {"id": self.id, "text": self.narrative_text, "imagePrompt": self.image_prompt}


class Story(BaseModel):
    """Canonical story produced by the response normalizer."""

    model_config = ConfigDict(frozen=True)

    visual_style: str = ""
    optimized_story_summary: str = ""
    characters: tuple[str, ...] = ()
    panels: tuple[Panel, ...] = ()
    language: LanguageTag | None = None
    title: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Serialize back to the shape the decomposition model emits."""
        return {
            "visualStyle": self.visual_style,
            "optimizedStory": self.optimized_story_summary,
            "characters": list(self.characters),
            "panels": [panel.to_payload() for panel in self.panels],
        }


class StoryPrompt(BaseModel):
    model_config = ConfigDict(frozen=True)

    instruction_text: str
    max_panels: int
    target_range: str
    language: LanguageTag


class PanelRenderResult(BaseModel):
    panel_id: int
    final_prompt: str
    prompt_tier: PromptTier
    image_data_uri: str
