"""Image generation provider integrations."""

from headshot.media.providers.base import ImageProvider, ModelReply, ProbeResult
from headshot.media.providers.factory import get_image_provider, reset_image_provider_cache
from headshot.media.providers.gemini_provider import GeminiImageProvider, build_request_body
from headshot.media.providers.mock_provider import MockImageProvider

__all__ = [
    "ImageProvider",
    "ModelReply",
    "ProbeResult",
    "GeminiImageProvider",
    "MockImageProvider",
    "build_request_body",
    "get_image_provider",
    "reset_image_provider_cache",
]
