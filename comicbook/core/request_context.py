import contextvars
from contextlib import contextmanager

request_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar("request_id", default=None)
story_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar("story_id", default=None)
panel_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar("panel_id", default=None)


def set_request_id(request_id: str) -> contextvars.Token:
    """Store the current request ID in a context variable."""
    return request_id_var.set(request_id)


def reset_request_id(token: contextvars.Token) -> None:
    """Reset the request ID context variable to a previous state."""
    request_id_var.reset(token)


def get_request_id() -> str | None:
    """Retrieve the current request ID from the context."""
    return request_id_var.get()


def get_story_id() -> str | None:
    return story_id_var.get()


def get_panel_id() -> str | None:
    return panel_id_var.get()


@contextmanager
def log_context(story_id: str | None = None, panel_id: int | str | None = None):
    """Temporarily scope story/panel context for structured logs."""
    tokens: list[tuple[contextvars.ContextVar[str | None], contextvars.Token]] = []
    if story_id is not None:
        tokens.append((story_id_var, story_id_var.set(str(story_id))))
    if panel_id is not None:
        tokens.append((panel_id_var, panel_id_var.set(str(panel_id))))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)
