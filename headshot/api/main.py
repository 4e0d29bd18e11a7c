"""FastAPI application entrypoint for the headshot generation service."""

from __future__ import annotations

from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
import uvicorn

from headshot.core.config import get_settings
from headshot.core.logger import bind_request_context, clear_request_context, get_logger
from headshot.core.metrics import record_http_request, render_prometheus_metrics
from headshot.core.observability import init_sentry, sentry_scope
from headshot.media.router import router as media_router
from headshot.media.store import get_content_store


settings = get_settings()
logger = get_logger("headshot.api")

app = FastAPI(title=settings.app_name, version=settings.app_version)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


def check_storage_connection() -> tuple[bool, str | None]:
    store = get_content_store()
    try:
        store.root.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        return False, str(exc)
    if not store.root.is_dir():
        return False, "storage path is not a directory"
    return True, None


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    started_at = perf_counter()
    request_id = request.headers.get("x-request-id", str(uuid4()))
    bind_request_context(request_id=request_id, job_id=request.headers.get("x-job-id"))

    status_code = 500
    try:
        with sentry_scope(request_id=request_id, job_id=request.headers.get("x-job-id")):
            response = await call_next(request)
        status_code = int(response.status_code)
    finally:
        duration = perf_counter() - started_at
        if settings.metrics_enabled:
            record_http_request(
                method=request.method,
                path=request.url.path,
                status_code=status_code,
                duration_seconds=duration,
            )
        clear_request_context()

    response.headers["x-request-id"] = request_id
    return response


@app.on_event("startup")
def on_startup() -> None:
    sentry_enabled = init_sentry()
    logger.info(
        "application_startup",
        env=settings.env,
        version=settings.app_version,
        image_provider=settings.image_provider,
        model=settings.gemini_model,
        sentry_enabled=sentry_enabled,
        metrics_enabled=settings.metrics_enabled,
    )


@app.get("/")
def root() -> PlainTextResponse:
    return PlainTextResponse("Headshot generation service is running.\n")


@app.get("/health")
def health() -> JSONResponse:
    storage_ok, storage_error = check_storage_connection()
    payload = {
        "status": "ok" if storage_ok else "degraded",
        "env": settings.env,
        "services": {
            "storage": {"ok": storage_ok, "error": storage_error},
        },
    }
    return JSONResponse(content=payload, status_code=200 if storage_ok else 503)


@app.get("/version")
def version() -> dict[str, str]:
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "env": settings.env,
    }


@app.get("/metrics")
def metrics() -> PlainTextResponse:
    if not settings.metrics_enabled:
        return PlainTextResponse("metrics disabled\n", status_code=404)

    payload = render_prometheus_metrics(
        app_name=settings.app_name,
        app_version=settings.app_version,
        env=settings.env,
    )
    return PlainTextResponse(
        payload,
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


app.include_router(media_router)


def run() -> None:
    uvicorn.run("headshot.api.main:app", host="0.0.0.0", port=settings.port)
