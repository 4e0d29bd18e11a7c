"""Central runtime configuration for the headshot generation service."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    env: str = "development"
    log_level: str = "INFO"
    log_format: str = "json"
    port: int = 5000
    app_name: str = "headshot_studio"
    app_version: str = "0.1.0"
    cors_allow_origins: str = "*"
    uploads_storage_path: str = "uploads"
    max_upload_bytes: int = 50 * 1024 * 1024
    # Effectively unbounded; the model provider enforces its own size policy.
    max_image_width: int = 100000
    max_image_height: int = 100000
    image_provider: str = "gemini"
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash-image"
    gemini_api_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_timeout_seconds: int = 30
    gemini_probe_timeout_seconds: int = 15
    sentry_dsn: str = ""
    sentry_traces_sample_rate: float = 0.0
    metrics_enabled: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


def _validate(settings: Settings) -> Settings:
    is_production = settings.env.lower() in {"prod", "production"}
    provider = settings.image_provider.strip().lower()
    if provider not in {"gemini", "mock"}:
        raise ValueError("IMAGE_PROVIDER must be one of: gemini, mock.")
    if settings.log_format.strip().lower() not in {"json", "console"}:
        raise ValueError("LOG_FORMAT must be one of: json, console.")
    if is_production and provider == "gemini" and not settings.gemini_api_key.strip():
        raise ValueError("Missing required production secrets/config: GEMINI_API_KEY.")
    if settings.sentry_traces_sample_rate < 0 or settings.sentry_traces_sample_rate > 1:
        raise ValueError("SENTRY_TRACES_SAMPLE_RATE must be between 0 and 1.")
    if settings.max_image_width <= 0 or settings.max_image_height <= 0:
        raise ValueError("MAX_IMAGE_WIDTH and MAX_IMAGE_HEIGHT must be positive.")
    if settings.max_upload_bytes <= 0:
        raise ValueError("MAX_UPLOAD_BYTES must be positive.")
    if settings.gemini_timeout_seconds <= 0:
        raise ValueError("GEMINI_TIMEOUT_SECONDS must be positive.")
    if settings.gemini_probe_timeout_seconds <= 0:
        raise ValueError("GEMINI_PROBE_TIMEOUT_SECONDS must be positive.")
    if not settings.uploads_storage_path.strip():
        raise ValueError("UPLOADS_STORAGE_PATH must not be empty.")
    return settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return validated settings as a cached singleton."""

    return _validate(Settings())
