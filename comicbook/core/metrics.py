from __future__ import annotations

from contextlib import contextmanager

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

registry = CollectorRegistry(auto_describe=True)

GEMINI_CALL_DURATION = Histogram(
    "comicbook_gemini_call_duration_seconds",
    "Latency for Gemini API calls per operation.",
    ["operation"],
    registry=registry,
)

GEMINI_CALLS_TOTAL = Counter(
    "comicbook_gemini_calls_total",
    "Total Gemini API calls partitioned by operation and status.",
    ["operation", "status"],
    registry=registry,
)

JSON_PARSE_FAILURES = Counter(
    "comicbook_json_parse_failures_total",
    "Number of story responses that could not be parsed, labeled by reason.",
    ["reason"],
    registry=registry,
)

PANEL_TRUNCATIONS = Counter(
    "comicbook_panel_truncations_total",
    "Number of story responses whose panel list exceeded the budget.",
    registry=registry,
)

PROMPT_FALLBACKS = Counter(
    "comicbook_prompt_fallbacks_total",
    "Number of panel prompts built by the deterministic fallback.",
    ["reason"],
    registry=registry,
)


@contextmanager
def track_gemini_call(operation: str):
    timer = GEMINI_CALL_DURATION.labels(operation=operation).time()
    timer.__enter__()
    try:
        yield
        GEMINI_CALLS_TOTAL.labels(operation=operation, status="success").inc()
    except Exception:
        GEMINI_CALLS_TOTAL.labels(operation=operation, status="error").inc()
        raise
    finally:
        timer.__exit__(None, None, None)


def increment_json_parse_failure(reason: str) -> None:
    JSON_PARSE_FAILURES.labels(reason=reason).inc()


def record_panel_truncation() -> None:
    PANEL_TRUNCATIONS.inc()


def record_prompt_fallback(reason: str) -> None:
    PROMPT_FALLBACKS.labels(reason=reason).inc()


def get_metrics_payload() -> bytes:
    return generate_latest(registry)
