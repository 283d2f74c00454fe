import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from comicbook.core.request_context import get_panel_id, get_request_id, get_story_id

_CONTEXT_FIELDS = ("request_id", "story_id", "panel_id")

# Attributes every LogRecord carries; anything else on a record came from `extra=`.
_RESERVED_FIELDS = frozenset(vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))) | {
    "message",
    "asctime",
    *_CONTEXT_FIELDS,
}


class RequestIdFilter(logging.Filter):
    """Copy request/story/panel ids from the current context onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "unknown"
        record.story_id = get_story_id() or ""
        record.panel_id = get_panel_id() or ""
        return True


class StructuredJsonFormatter(logging.Formatter):
    """One JSON object per record; ``extra`` fields are merged in at top level."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "unknown"),
        }
        for field in ("story_id", "panel_id"):
            value = getattr(record, field, None)
            if value:
                payload[field] = value

        for key, value in record.__dict__.items():
            if key in _RESERVED_FIELDS or key.startswith("_") or value is None:
                continue
            payload[key] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack_info"] = record.stack_info
        return json.dumps(payload, default=str, ensure_ascii=False)


def configure_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """Install JSON handlers on the root logger: stderr always, plus a rotating file when asked."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    formatter = StructuredJsonFormatter(datefmt="%Y-%m-%dT%H:%M:%S%z")
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(log_path, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(RequestIdFilter())
        root_logger.addHandler(handler)

    # request_complete already covers what uvicorn's access log would say.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
