from __future__ import annotations

import base64
import logging
from typing import TYPE_CHECKING

from comicbook.core.exceptions import NoImageDataError

if TYPE_CHECKING:
    from comicbook.services.gemini import GeminiClient

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MIME = "image/png"


def to_data_uri(image: bytes | str, mime_type: str | None = None) -> str:
    """Wrap an inline image payload as a ``data:`` URI.

    Raw bytes are base64-encoded; a ``str`` payload is assumed to already be
    base64 text and is used unchanged.
    """
    mime = mime_type or DEFAULT_IMAGE_MIME
    if isinstance(image, str):
        payload = image.strip()
    else:
        payload = base64.b64encode(image).decode("ascii")

    if not payload:
        raise NoImageDataError("Image payload is empty", detail="No image data received from API")
    return f"data:{mime};base64,{payload}"


def generate_image(prompt: str, *, gemini: "GeminiClient", model: str | None = None) -> str:
    """Send a finished prompt to the image model and return the image as a data URI.

    Raises:
        NoImageDataError: The response carried no inline image.
        AuthFailureError, QuotaExceededError, TransientNetworkError, GenerationError:
            Classified transport failures from the client.
    """
    if not prompt or not prompt.strip():
        raise ValueError("Prompt is required")

    image, mime_type = gemini.generate_image(prompt, model=model)
    data_uri = to_data_uri(image, mime_type)
    logger.info("panel_image_generated", extra={"mime_type": mime_type, "size": len(image)})
    return data_uri
