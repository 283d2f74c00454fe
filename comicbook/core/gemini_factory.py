"""
Centralized Gemini client factory.

Callers decide where the credential comes from (a user-supplied key or the
environment default) and pass it in explicitly.
"""

from __future__ import annotations

from comicbook.core.exceptions import MissingCredentialError
from comicbook.core.settings import settings
from comicbook.services.gemini import GeminiClient


def build_gemini_client(api_key: str | None) -> GeminiClient:
    """Build a GeminiClient for the given credential using application settings.

    Raises:
        MissingCredentialError: If no API key is supplied.
    """
    if not api_key or not api_key.strip():
        raise MissingCredentialError()

    return GeminiClient(
        api_key=api_key,
        text_model=settings.gemini_story_model,
        image_model=settings.gemini_image_model,
        timeout_seconds=settings.gemini_timeout_seconds,
        max_retries=settings.gemini_max_retries,
        initial_backoff_seconds=settings.gemini_initial_backoff_seconds,
    )
