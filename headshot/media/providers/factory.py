"""Factory to resolve active image provider."""

from __future__ import annotations

from functools import lru_cache

from headshot.core.config import get_settings
from headshot.media.providers.base import ImageProvider
from headshot.media.providers.gemini_provider import GeminiImageProvider
from headshot.media.providers.mock_provider import MockImageProvider


@lru_cache(maxsize=1)
def get_image_provider() -> ImageProvider:
    settings = get_settings()
    provider = settings.image_provider.strip().lower()
    if provider == "gemini":
        return GeminiImageProvider(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            base_url=settings.gemini_api_base_url,
            timeout_seconds=settings.gemini_timeout_seconds,
            probe_timeout_seconds=settings.gemini_probe_timeout_seconds,
        )
    return MockImageProvider()


def reset_image_provider_cache() -> None:
    get_image_provider.cache_clear()
