import json

import httpx
import pytest

from headshot.media.assets import ImageAsset
from headshot.media.errors import ModelTransportError
from headshot.media.prompts import SYSTEM_PROMPT, ReferenceGuided, StyleSelect, compile_prompt
from headshot.media.providers import GeminiImageProvider, build_request_body
from tests.helpers import b64, inline_reply, jpeg_bytes, png_bytes


def _provider(handler, **kwargs) -> GeminiImageProvider:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return GeminiImageProvider(
        api_key=kwargs.pop("api_key", "test-key"),
        model=kwargs.pop("model", "gemini-2.5-flash-image"),
        base_url="https://gemini.test/v1beta",
        client=client,
        **kwargs,
    )


def _style_payload():
    subject = ImageAsset.from_bytes(jpeg_bytes(800, 600), name="photo-1.jpg")
    return subject, compile_prompt(StyleSelect(style_key="corporate"), subject)


def test_request_body_carries_system_instruction_and_inline_images() -> None:
    subject = ImageAsset.from_bytes(jpeg_bytes(800, 600), name="photo-1.jpg")
    reference = ImageAsset.from_bytes(png_bytes(64, 64), name="ref-1.png")
    body = build_request_body(compile_prompt(ReferenceGuided(prompt="x"), subject, reference))

    assert body["system_instruction"] == {"role": "system", "parts": [{"text": SYSTEM_PROMPT}]}
    assert [content["role"] for content in body["contents"]] == ["user", "user"]
    subject_parts = body["contents"][0]["parts"]
    assert len(subject_parts) == 5
    assert subject_parts[2] == {"inline_data": {"mime_type": "image/jpeg", "data": b64(subject.content)}}
    assert subject_parts[4] == subject_parts[2]
    reference_parts = body["contents"][1]["parts"]
    assert reference_parts[1] == {"inline_data": {"mime_type": "image/png", "data": b64(reference.content)}}


def test_generate_posts_to_model_endpoint_with_api_key_header() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["key"] = request.headers.get("x-goog-api-key")
        seen["timeout"] = request.extensions["timeout"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=inline_reply(b"generated"))

    _, payload = _style_payload()
    reply = _provider(handler).generate(payload)

    assert seen["url"] == "https://gemini.test/v1beta/models/gemini-2.5-flash-image:generateContent"
    assert seen["key"] == "test-key"
    assert seen["body"]["contents"][0]["parts"][0]["text"].startswith("Generate a professional corporate headshot")
    assert reply == inline_reply(b"generated")
    assert seen["timeout"]["read"] == 30
    assert seen["timeout"]["connect"] == 30


def test_non_2xx_raises_transport_error_with_upstream_detail() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"error": {"code": 429, "message": "quota exceeded"}})

    _, payload = _style_payload()
    with pytest.raises(ModelTransportError) as exc_info:
        _provider(handler).generate(payload)

    assert exc_info.value.status_code == 429
    assert exc_info.value.upstream_detail == {"error": {"code": 429, "message": "quota exceeded"}}
    assert exc_info.value.kind == "transport_error"


def test_non_json_error_body_is_truncated() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="x" * 1000)

    _, payload = _style_payload()
    with pytest.raises(ModelTransportError) as exc_info:
        _provider(handler).generate(payload)

    assert exc_info.value.status_code == 500
    assert exc_info.value.upstream_detail == "x" * 240 + "..."


def test_timeout_maps_to_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    _, payload = _style_payload()
    with pytest.raises(ModelTransportError, match="timeout"):
        _provider(handler).generate(payload)


def test_network_error_maps_to_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    _, payload = _style_payload()
    with pytest.raises(ModelTransportError) as exc_info:
        _provider(handler).generate(payload)
    assert exc_info.value.status_code is None
    assert "connection refused" in exc_info.value.upstream_detail


def test_invalid_json_reply_is_a_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>oops</html>")

    _, payload = _style_payload()
    with pytest.raises(ModelTransportError, match="invalid_json"):
        _provider(handler).generate(payload)


def test_missing_api_key_fails_before_any_request() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={})

    _, payload = _style_payload()
    with pytest.raises(ModelTransportError, match="gemini_api_key_missing"):
        _provider(handler, api_key="  ").generate(payload)
    assert calls == []


def test_probe_sends_ping_and_reports_status() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["timeout"] = request.extensions["timeout"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"candidates": []})

    result = _provider(handler).probe()

    assert result.ok is True
    assert result.status_code == 200
    assert seen["body"] == {"contents": [{"parts": [{"text": "ping"}]}]}
    assert seen["timeout"]["read"] == 15


def test_probe_reports_failure_without_raising() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"error": {"message": "API key not valid"}})

    result = _provider(handler).probe()

    assert result.ok is False
    assert result.status_code == 403
    assert result.error == {"error": {"message": "API key not valid"}}
