"""structlog configuration shared by the API and the generation pipeline.

Log lines never carry image payloads: raw ``bytes`` values and long base64
strings are replaced with a short size marker before rendering.
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
import re
from typing import Any, Iterator

import structlog

from headshot.core.config import get_settings


_CONFIGURED = False
_BASE64_RUN = re.compile(r"^[A-Za-z0-9+/=\s]+$")
REDACT_MIN_LENGTH = 256


def _add_default_context(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    del logger, method_name
    event_dict.setdefault("request_id", None)
    event_dict.setdefault("job_id", None)
    return event_dict


def _redact_value(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return f"<{len(value)} bytes>"
    if isinstance(value, str) and len(value) >= REDACT_MIN_LENGTH and _BASE64_RUN.match(value):
        return f"<base64 {len(value)} chars>"
    if isinstance(value, dict):
        return {key: _redact_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_redact_value(item) for item in value]
    return value


def redact_image_payloads(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    del logger, method_name
    return {key: _redact_value(value) for key, value in event_dict.items()}


def _renderer(log_format: str) -> Any:
    if log_format == "console":
        return structlog.dev.ConsoleRenderer(colors=False)
    return structlog.processors.JSONRenderer()


def configure_logging() -> None:
    """Initialize structlog once; JSON unless LOG_FORMAT=console."""

    global _CONFIGURED
    if _CONFIGURED:
        return

    settings = get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(message)s")

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _add_default_context,
            redact_image_payloads,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _renderer(settings.log_format.strip().lower()),
        ],
        logger_factory=structlog.PrintLoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )

    _CONFIGURED = True


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    configure_logging()
    return structlog.get_logger(name)


def bind_request_context(request_id: str, job_id: str | None = None) -> None:
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        job_id=job_id,
    )


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()


@contextmanager
def generation_context(*, job_id: str, mode: str) -> Iterator[None]:
    """Tag every log line emitted inside the block with the job and mode."""

    with structlog.contextvars.bound_contextvars(job_id=job_id, mode=mode):
        yield
