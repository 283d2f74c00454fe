"""
Application-level exception types.

Every failure that crosses a model-call boundary is raised as one of the
typed errors below so callers can render differentiated guidance instead
of a single generic message.
"""

from __future__ import annotations

from enum import Enum


class ErrorCategory(str, Enum):
    AUTH = "auth"
    QUOTA = "quota"
    NETWORK = "network"
    PARSE = "parse"
    NO_IMAGE = "no_image"
    CREDENTIAL = "credential"
    GENERAL = "general"


_REMEDIATION: dict[ErrorCategory, str] = {
    ErrorCategory.AUTH: "Check that your Gemini API key is correct and has not been revoked.",
    ErrorCategory.QUOTA: "Your Gemini API quota is exhausted. Wait for the quota to reset or upgrade your plan.",
    ErrorCategory.NETWORK: "Could not reach the Gemini API. Check your connection and try again.",
    ErrorCategory.PARSE: "The model returned a story we could not read. Please retry, and report it if it keeps happening.",
    ErrorCategory.NO_IMAGE: "The model did not return an image for this panel. Please retry.",
    ErrorCategory.CREDENTIAL: "No Gemini API key was supplied. Set one in settings or via GEMINI_API_KEY.",
    ErrorCategory.GENERAL: "Generation failed. Please retry in a moment.",
}


class AppError(Exception):
    """Base exception for all application errors."""

    category: ErrorCategory = ErrorCategory.GENERAL

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        self.detail = detail or message
        super().__init__(message)


class ConfigurationError(AppError):
    """Raised when required configuration is missing or invalid."""


class MissingCredentialError(ConfigurationError):
    """Raised when a model call is attempted without an API credential."""

    category = ErrorCategory.CREDENTIAL

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message or "Gemini API key is required. Set GEMINI_API_KEY or pass a key explicitly.",
            detail="API key is required",
        )


class GenerationError(AppError):
    """Raised when a text or image generation call fails."""

    def __init__(
        self,
        message: str,
        *,
        detail: str | None = None,
        request_id: str | None = None,
        model: str | None = None,
    ) -> None:
        super().__init__(message, detail=detail)
        self.request_id = request_id
        self.model = model


class AuthFailureError(GenerationError):
    """Raised when the provider rejects the credential."""

    category = ErrorCategory.AUTH


class QuotaExceededError(GenerationError):
    """Raised when rate or usage limits are hit."""

    category = ErrorCategory.QUOTA


class TransientNetworkError(GenerationError):
    """Raised for connectivity problems and timeouts."""

    category = ErrorCategory.NETWORK


class NoImageDataError(GenerationError):
    """Raised when an image call succeeds but carries no image payload."""

    category = ErrorCategory.NO_IMAGE


class MalformedResponseError(GenerationError):
    """Raised when model output cannot be read as the expected structure."""

    category = ErrorCategory.PARSE

    def __init__(self, message: str, *, raw_text: str = "", detail: str | None = None) -> None:
        super().__init__(message, detail=detail or "Failed to parse AI response as JSON")
        self.raw_text = raw_text


def remediation_for(exc: BaseException) -> str:
    """Return the user-facing remediation hint for an error."""
    category = getattr(exc, "category", ErrorCategory.GENERAL)
    return _REMEDIATION.get(category, _REMEDIATION[ErrorCategory.GENERAL])
