import json

import pytest
import httpx

from comicbook.core import settings as settings_module
from comicbook.main import app

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image"


def story_json(panel_count: int = 3, **overrides) -> str:
    payload = {
        "visualStyle": "Watercolor children's book style, warm palette",
        "optimizedStory": "A boy and his dog explore the park.",
        "characters": [
            "Lin: 8-year-old boy, short black hair, red jacket",
            "Momo: small white dog with a blue collar",
        ],
        "panels": [
            {"id": i, "text": f"Panel text {i}", "imagePrompt": f"Scene {i}: the park at noon"}
            for i in range(1, panel_count + 1)
        ],
    }
    payload.update(overrides)
    return json.dumps(payload, ensure_ascii=False)


class FakeGemini:
    """In-memory stand-in for GeminiClient.

    Story calls and prompt-rewrite calls are told apart by model name, the
    same way the pipeline selects them from settings.
    """

    def __init__(
        self,
        story_text: str | None = None,
        *,
        rewrite_text: str = "Cinematic watercolor scene of Lin and Momo in the park.",
        rewrite_error: Exception | None = None,
        story_error: Exception | None = None,
        image: tuple[bytes | str, str] = (PNG_BYTES, "image/png"),
        image_error: Exception | None = None,
    ):
        self.story_text = story_text if story_text is not None else story_json()
        self.rewrite_text = rewrite_text
        self.rewrite_error = rewrite_error
        self.story_error = story_error
        self.image = image
        self.image_error = image_error
        self.text_calls: list[dict] = []
        self.image_calls: list[str] = []

    def generate_text(self, prompt: str, model=None, **config):
        self.text_calls.append({"prompt": prompt, "model": model, **config})
        if model == settings_module.settings.gemini_prompt_model:
            if self.rewrite_error is not None:
                raise self.rewrite_error
            return self.rewrite_text
        if self.story_error is not None:
            raise self.story_error
        return self.story_text

    def generate_image(self, prompt: str, model=None):
        self.image_calls.append(prompt)
        if self.image_error is not None:
            raise self.image_error
        return self.image


@pytest.fixture(autouse=True)
def _no_environment_key(monkeypatch):
    monkeypatch.setattr(settings_module.settings, "gemini_api_key", None)
    yield


@pytest.fixture()
def fake_gemini():
    return FakeGemini()


@pytest.fixture()
def use_gemini(monkeypatch):
    """Route the API's client factory to a fake, recording the key it was given."""
    from comicbook.api import deps
    from comicbook.core.exceptions import MissingCredentialError

    seen_keys: list[str | None] = []

    def _install(fake):
        def fake_build_client(api_key):
            seen_keys.append(api_key)
            if not api_key:
                raise MissingCredentialError()
            return fake

        monkeypatch.setattr(deps, "_build_client", fake_build_client)
        return seen_keys

    return _install


@pytest.fixture()
async def client():
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            yield client


@pytest.fixture()
def anyio_backend():
    return "asyncio"
