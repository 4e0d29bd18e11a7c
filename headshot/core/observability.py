"""Sentry bootstrap and scoping for the headshot service."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Optional

try:  # pragma: no cover - availability depends on runtime image.
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
except Exception:  # pragma: no cover
    sentry_sdk = None
    FastApiIntegration = None

from headshot.core.config import get_settings
from headshot.core.logger import get_logger, redact_image_payloads


_SENTRY_INITIALIZED = False
_SENTRY_AVAILABLE = sentry_sdk is not None and FastApiIntegration is not None


def scrub_event(event: dict[str, Any], hint: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    """Strip uploaded and generated image payloads from an outgoing event."""

    del hint
    scrubbed = redact_image_payloads(None, "before_send", dict(event))
    request = scrubbed.get("request")
    if isinstance(request, dict) and "data" in request:
        request["data"] = "[image payload removed]"
    return scrubbed


def _call_sentry_init(**kwargs: Any) -> None:
    if sentry_sdk is None:  # pragma: no cover
        raise RuntimeError("sentry_sdk is not available")
    sentry_sdk.init(**kwargs)


def init_sentry() -> bool:
    """Initialize Sentry once when DSN is configured."""

    global _SENTRY_INITIALIZED
    if _SENTRY_INITIALIZED:
        return True

    settings = get_settings()
    dsn = settings.sentry_dsn.strip()
    if not dsn:
        return False
    if not _SENTRY_AVAILABLE:
        get_logger("headshot.observability").warning("sentry_sdk_not_installed")
        return False

    _call_sentry_init(
        dsn=dsn,
        environment=settings.env,
        release=f"{settings.app_name}@{settings.app_version}",
        traces_sample_rate=settings.sentry_traces_sample_rate,
        send_default_pii=False,
        max_request_body_size="never",
        before_send=scrub_event,
        integrations=[FastApiIntegration()],
    )
    _SENTRY_INITIALIZED = True
    get_logger("headshot.observability").info(
        "sentry_initialized",
        env=settings.env,
        traces_sample_rate=settings.sentry_traces_sample_rate,
        image_provider=settings.image_provider,
    )
    return True


@contextmanager
def sentry_scope(*, request_id: str | None = None, job_id: str | None = None):
    """Isolate request tags so concurrent generations do not share them."""

    if not _SENTRY_AVAILABLE:
        yield
        return

    assert sentry_sdk is not None
    with sentry_sdk.new_scope() as scope:
        if request_id:
            scope.set_tag("request_id", request_id)
        if job_id:
            scope.set_tag("job_id", job_id)
        yield


def capture_exception(exc: BaseException, *, job_id: str | None = None, mode: str | None = None) -> None:
    if not _SENTRY_AVAILABLE:
        return
    assert sentry_sdk is not None
    with sentry_sdk.new_scope() as scope:
        scope.set_context("generation", {"job_id": job_id, "mode": mode})
        sentry_sdk.capture_exception(exc)


def reset_observability_for_tests() -> None:
    global _SENTRY_INITIALIZED
    _SENTRY_INITIALIZED = False
