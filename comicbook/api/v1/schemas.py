from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from comicbook.pipeline.models import MAX_STORY_CHARS, LanguageTag, Panel, PromptTier, Story


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class StoryGenerateRequest(_CamelModel):
    story_text: str = Field(alias="storyText", min_length=1, max_length=MAX_STORY_CHARS)
    keywords: list[str] | str = Field(default_factory=list)
    # Omitted means auto-detect from the story text.
    language: LanguageTag | None = None


class PanelPayload(_CamelModel):
    id: int
    text: str = ""
    image_prompt: str = Field(default="", alias="imagePrompt")


class StoryPayload(_CamelModel):
    visual_style: str = Field(default="", alias="visualStyle")
    optimized_story: str = Field(default="", alias="optimizedStory")
    characters: list[str] = Field(default_factory=list)
    panels: list[PanelPayload] = Field(default_factory=list)

    def to_story(self, title: str | None = None, language: LanguageTag | None = None) -> Story:
        return Story(
            visual_style=self.visual_style,
            optimized_story_summary=self.optimized_story,
            characters=tuple(self.characters),
            panels=tuple(
                Panel(id=p.id, narrative_text=p.text, image_prompt=p.image_prompt) for p in self.panels
            ),
            title=title,
            language=language,
        )


class StoryGenerateResponse(StoryPayload):
    language: LanguageTag
    max_panels: int = Field(alias="maxPanels")
    target_range: str = Field(alias="targetRange")


class PanelPromptRequest(_CamelModel):
    prompt: str = Field(min_length=1, description="Scene description for the panel")
    visual_style: str = Field(default="", alias="visualStyle")
    characters: list[str] = Field(default_factory=list)
    panel_text: str = Field(default="", alias="panelText")


class PanelPromptResponse(BaseModel):
    prompt: str
    tier: PromptTier


class PanelImageResponse(BaseModel):
    image: str
    prompt: str
    tier: PromptTier


class HtmlExportRequest(_CamelModel):
    story: StoryPayload
    images: dict[int, str] = Field(default_factory=dict)
    title: str | None = None
    language: LanguageTag | None = None
    created_at: datetime | None = Field(default=None, alias="createdAt")
