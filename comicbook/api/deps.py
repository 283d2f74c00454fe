from fastapi import Depends, Header

from comicbook.core.gemini_factory import build_gemini_client
from comicbook.core.settings import settings
from comicbook.services.gemini import GeminiClient


def resolve_api_key(header_value: str | None) -> str | None:
    """Prefer the caller's key; fall back to the environment default."""
    if header_value and header_value.strip():
        return header_value.strip()
    return settings.gemini_api_key


def _build_client(api_key: str | None) -> GeminiClient:
    return build_gemini_client(api_key)


def gemini_client(x_gemini_api_key: str | None = Header(default=None)) -> GeminiClient:
    return _build_client(resolve_api_key(x_gemini_api_key))


GeminiClientDep = Depends(gemini_client)
