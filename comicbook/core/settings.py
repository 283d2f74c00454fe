from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file: str | None = Field(default=None, validation_alias="LOG_FILE")

    # Offered to callers as a default; core functions never read it directly.
    gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")

    gemini_story_model: str = Field(default="gemini-2.5-flash", validation_alias="GEMINI_STORY_MODEL")
    gemini_prompt_model: str = Field(default="gemini-2.0-flash", validation_alias="GEMINI_PROMPT_MODEL")
    gemini_image_model: str = Field(default="gemini-2.5-flash-image", validation_alias="GEMINI_IMAGE_MODEL")

    story_temperature: float = Field(default=0.8, validation_alias="STORY_TEMPERATURE")
    story_top_p: float = Field(default=0.95, validation_alias="STORY_TOP_P")
    story_top_k: int = Field(default=40, validation_alias="STORY_TOP_K")
    story_max_output_tokens: int = Field(default=8192, validation_alias="STORY_MAX_OUTPUT_TOKENS")

    prompt_temperature: float = Field(default=0.7, validation_alias="PROMPT_TEMPERATURE")
    prompt_top_p: float = Field(default=0.9, validation_alias="PROMPT_TOP_P")
    prompt_top_k: int = Field(default=40, validation_alias="PROMPT_TOP_K")
    prompt_max_output_tokens: int = Field(default=500, validation_alias="PROMPT_MAX_OUTPUT_TOKENS")

    gemini_timeout_seconds: float = Field(default=60.0, validation_alias="GEMINI_TIMEOUT_SECONDS")
    gemini_max_retries: int = Field(default=1, validation_alias="GEMINI_MAX_RETRIES")
    gemini_initial_backoff_seconds: float = Field(
        default=0.8,
        validation_alias="GEMINI_INITIAL_BACKOFF_SECONDS",
    )

    panel_render_concurrency: int = Field(default=4, validation_alias="PANEL_RENDER_CONCURRENCY")


settings = Settings()
