from headshot.core.config import get_settings
from headshot.media.assets import ImageAsset
from headshot.media.extractor import extract_image
from headshot.media.prompts import StyleSelect, compile_prompt
from headshot.media.providers import GeminiImageProvider, MockImageProvider, get_image_provider, reset_image_provider_cache
from headshot.media.sniffer import sniff_dimensions
from tests.helpers import jpeg_bytes


def _payload(enforce_change: bool = False):
    subject = ImageAsset.from_bytes(jpeg_bytes(200, 300), name="photo-1.jpg")
    return compile_prompt(StyleSelect(style_key="creative"), subject, enforce_change=enforce_change)


def test_mock_reply_carries_an_extractable_png() -> None:
    provider = MockImageProvider(width=48, height=32)

    image = extract_image(provider.generate(_payload()))

    assert image is not None
    assert image.mime_type == "image/png"
    dimensions = sniff_dimensions(image.content, "png")
    assert (dimensions.width, dimensions.height) == (48, 32)


def test_mock_output_is_deterministic_per_payload() -> None:
    provider = MockImageProvider()

    first = extract_image(provider.generate(_payload()))
    again = extract_image(provider.generate(_payload()))
    escalated = extract_image(provider.generate(_payload(enforce_change=True)))

    assert first == again
    assert first.content != escalated.content
    assert provider.probe().ok is True


def test_factory_selects_provider_from_settings(monkeypatch) -> None:
    monkeypatch.setenv("ENV", "development")
    monkeypatch.setenv("IMAGE_PROVIDER", "mock")
    get_settings.cache_clear()
    reset_image_provider_cache()

    assert isinstance(get_image_provider(), MockImageProvider)
    assert get_image_provider() is get_image_provider()

    monkeypatch.setenv("IMAGE_PROVIDER", "gemini")
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    get_settings.cache_clear()
    reset_image_provider_cache()

    assert isinstance(get_image_provider(), GeminiImageProvider)

    get_settings.cache_clear()
    reset_image_provider_cache()
