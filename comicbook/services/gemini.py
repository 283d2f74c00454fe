import logging
import time
import uuid
from typing import Callable

from google import genai
from google.genai import types

from comicbook.core.exceptions import (
    AuthFailureError,
    ErrorCategory,
    GenerationError,
    MissingCredentialError,
    NoImageDataError,
    QuotaExceededError,
    TransientNetworkError,
)
from comicbook.core.metrics import track_gemini_call

logger = logging.getLogger(__name__)

_QUOTA_MARKERS = ("quota", "rate limit", "resource_exhausted", "429")
_AUTH_MARKERS = ("api key", "unauthorized", "unauthenticated", "permission_denied", "401", "403")
_NETWORK_MARKERS = ("network", "fetch", "timeout", "timed out", "deadline", "connect", "unavailable", "503")

_ERROR_TYPES: dict[ErrorCategory, type[GenerationError]] = {
    ErrorCategory.QUOTA: QuotaExceededError,
    ErrorCategory.AUTH: AuthFailureError,
    ErrorCategory.NETWORK: TransientNetworkError,
}

_DEFAULT_IMAGE_CONFIG = types.ImageConfig(aspect_ratio="4:3")


def classify_error(error_text: str) -> ErrorCategory:
    """Best-effort triage of a provider error message.

    Quota is checked before auth and auth before network, so a message that
    mentions both a 429 and a timeout is reported as a quota problem.
    """
    lowered = error_text.lower()
    if any(marker in lowered for marker in _QUOTA_MARKERS):
        return ErrorCategory.QUOTA
    if any(marker in lowered for marker in _AUTH_MARKERS):
        return ErrorCategory.AUTH
    if any(marker in lowered for marker in _NETWORK_MARKERS):
        return ErrorCategory.NETWORK
    return ErrorCategory.GENERAL


def _error_text(exc: Exception) -> str:
    parts = [str(getattr(exc, "code", "") or ""), str(getattr(exc, "status", "") or ""), type(exc).__name__, str(exc)]
    return " ".join(part for part in parts if part)


class GeminiClient:
    def __init__(
        self,
        api_key: str | None,
        text_model: str,
        image_model: str,
        timeout_seconds: float = 60.0,
        max_retries: int = 1,
        initial_backoff_seconds: float = 0.8,
    ):
        if not api_key or not api_key.strip():
            raise MissingCredentialError()

        self._text_model = text_model
        self._image_model = image_model
        self._timeout_seconds = timeout_seconds
        self._max_retries = max(1, max_retries)
        self._initial_backoff_seconds = initial_backoff_seconds

        self._client = genai.Client(
            api_key=api_key.strip(),
            http_options=types.HttpOptions(timeout=int(timeout_seconds * 1000)),
        )

    def _classify_error(self, exc: Exception) -> tuple[ErrorCategory, bool]:
        """Classify error type and determine if retryable.

        Returns:
            Tuple of (category, is_retryable)
        """
        category = classify_error(_error_text(exc))
        return category, category is ErrorCategory.NETWORK

    def _retry(
        self,
        func: Callable[[], types.GenerateContentResponse],
        model_name: str,
        request_type: str,
    ) -> tuple[types.GenerateContentResponse, str]:
        """Execute function with bounded retries for transient failures and typed errors.

        Returns:
            Tuple of (response, request_id); the id belongs to this call only
        """
        last_exc: Exception | None = None
        last_category = ErrorCategory.GENERAL
        request_id = str(uuid.uuid4())
        attempt = 0

        while attempt < self._max_retries:
            try:
                with track_gemini_call(request_type):
                    response = func()
                return response, response.response_id or request_id

            except Exception as exc:  # noqa: BLE001
                last_exc = exc
                last_category, is_retryable = self._classify_error(exc)

                if not is_retryable or attempt + 1 >= self._max_retries:
                    logger.warning(
                        "gemini.%s failed request_id=%s model=%s attempt=%s/%s type=%s error=%s",
                        request_type,
                        request_id,
                        model_name,
                        attempt + 1,
                        self._max_retries,
                        last_category.value,
                        repr(exc),
                    )
                    break

                backoff = self._initial_backoff_seconds * (2**attempt)
                logger.info(
                    "gemini.%s retrying request_id=%s model=%s attempt=%s/%s backoff=%.2fs",
                    request_type,
                    request_id,
                    model_name,
                    attempt + 1,
                    self._max_retries,
                    backoff,
                )
                time.sleep(backoff)
                attempt += 1

        error_type = _ERROR_TYPES.get(last_category, GenerationError)
        raise error_type(
            f"Gemini {request_type} failed: {last_exc!r}",
            detail=str(last_exc) if last_exc is not None else None,
            request_id=request_id,
            model=model_name,
        ) from last_exc

    def _extract_text_from_response(
        self, response: types.GenerateContentResponse, model_name: str, request_id: str
    ) -> str:
        candidate = (response.candidates or [None])[0]
        if candidate is None or not candidate.content or not candidate.content.parts:
            raise GenerationError(
                "Gemini returned empty content",
                request_id=request_id,
                model=model_name,
            )

        text = "".join(part.text for part in candidate.content.parts if part.text)
        if not text.strip():
            raise GenerationError(
                "Gemini returned no textual content",
                request_id=request_id,
                model=model_name,
            )
        return text.strip()

    def _extract_image(
        self, response: types.GenerateContentResponse, model_name: str, request_id: str
    ) -> tuple[bytes, str]:
        # Image bytes may sit in any part of any candidate; text parts are skipped.
        for candidate in response.candidates or []:
            if not candidate.content or not candidate.content.parts:
                continue
            for part in candidate.content.parts:
                inline_data = part.inline_data
                if inline_data and inline_data.data:
                    return inline_data.data, inline_data.mime_type or "image/png"

        raise NoImageDataError(
            "Gemini returned no image data",
            detail="No image data received from API",
            request_id=request_id,
            model=model_name,
        )

    def generate_text(
        self,
        prompt: str,
        model: str | None = None,
        *,
        temperature: float | None = None,
        top_p: float | None = None,
        top_k: int | None = None,
        max_output_tokens: int | None = None,
        response_mime_type: str | None = None,
    ) -> str:
        """Generate text with the given sampling parameters.

        Raises:
            GenerationError: On failure (with a typed subclass per category)
        """
        model_name = model or self._text_model
        config = types.GenerateContentConfig(
            temperature=temperature,
            top_p=top_p,
            top_k=top_k,
            max_output_tokens=max_output_tokens,
            response_mime_type=response_mime_type,
        )
        response, request_id = self._retry(
            func=lambda: self._client.models.generate_content(
                model=model_name,
                contents=prompt,
                config=config,
            ),
            model_name=model_name,
            request_type="generate_text",
        )
        return self._extract_text_from_response(response, model_name, request_id)

    def generate_image(self, prompt: str, model: str | None = None) -> tuple[bytes, str]:
        """Generate a single image for a finished prompt.

        Returns:
            Tuple of (image_bytes, mime_type)

        Raises:
            NoImageDataError: If the response carries no inline image
            GenerationError: On transport failure (typed subclass per category)
        """
        model_name = model or self._image_model
        response, request_id = self._retry(
            func=lambda: self._client.models.generate_content(
                model=model_name,
                contents=prompt,
                config=types.GenerateContentConfig(image_config=_DEFAULT_IMAGE_CONFIG),
            ),
            model_name=model_name,
            request_type="generate_image",
        )
        return self._extract_image(response, model_name, request_id)
