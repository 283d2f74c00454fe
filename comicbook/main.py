from contextlib import asynccontextmanager
import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from comicbook.api.v1.router import api_router
from comicbook.core.exceptions import AppError, ErrorCategory, remediation_for
from comicbook.core.logging import configure_logging
from comicbook.core.metrics import get_metrics_payload
from comicbook.core.request_context import reset_request_id, set_request_id
from comicbook.core.settings import settings
from comicbook.core.telemetry import setup_telemetry


logger = logging.getLogger("comicbook")

ERROR_STATUS: dict[ErrorCategory, int] = {
    ErrorCategory.AUTH: 401,
    ErrorCategory.CREDENTIAL: 401,
    ErrorCategory.QUOTA: 429,
    ErrorCategory.NETWORK: 503,
    ErrorCategory.PARSE: 502,
    ErrorCategory.NO_IMAGE: 502,
    ErrorCategory.GENERAL: 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level, settings.log_file)
    yield


app = FastAPI(lifespan=lifespan)

# Instrumentation adds middleware, which must happen before the first request.
setup_telemetry(app, service_name="comicbook")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


_QUIET_PATHS = frozenset({"/health", "/metrics"})


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """Tag every log line of a request with one id and echo it back to the caller."""
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    request.state.request_id = request_id
    token = set_request_id(request_id)
    start = time.perf_counter()
    fields = {"method": request.method, "path": request.url.path}
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("request_failed", extra={**fields, "duration_ms": (time.perf_counter() - start) * 1000})
        raise
    else:
        log = logger.debug if request.url.path in _QUIET_PATHS else logger.info
        log(
            "request_complete",
            extra={**fields, "status": response.status_code, "duration_ms": (time.perf_counter() - start) * 1000},
        )
        response.headers["x-request-id"] = request_id
        return response
    finally:
        reset_request_id(token)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    request_id = getattr(request.state, "request_id", None)
    status_code = ERROR_STATUS.get(exc.category, 500)
    log = logger.error if status_code >= 500 else logger.warning
    log(
        "request_error",
        extra={
            "error_type": exc.category.value,
            "error": str(exc),
            "model": getattr(exc, "model", None),
            "upstream_request_id": getattr(exc, "request_id", None),
        },
    )
    return JSONResponse(
        status_code=status_code,
        content={
            "detail": exc.detail,
            "error_type": exc.category.value,
            "remediation": remediation_for(exc),
            "request_id": request_id,
        },
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    request_id = getattr(request.state, "request_id", None)
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc), "request_id": request_id},
    )


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/metrics")
def metrics_endpoint():
    return PlainTextResponse(get_metrics_payload(), media_type="text/plain; version=0.0.4; charset=utf-8")


app.include_router(api_router)
