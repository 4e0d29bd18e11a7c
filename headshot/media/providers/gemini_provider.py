"""Gemini generateContent transport."""

from __future__ import annotations

import base64
from typing import Any, Dict, List, Optional

import httpx

from headshot.core.logger import get_logger
from headshot.media.errors import ModelTransportError
from headshot.media.prompts import SYSTEM_PROMPT, ContentBlock, PromptPayload
from headshot.media.providers.base import ImageProvider, ModelReply, ProbeResult


logger = get_logger("headshot.media.gemini")

_DETAIL_LIMIT = 240


def _encode_block(block: ContentBlock) -> List[Dict[str, Any]]:
    parts: List[Dict[str, Any]] = []
    if block.text:
        parts.append({"text": block.text})
    if block.image is not None:
        parts.append(
            {
                "inline_data": {
                    "mime_type": block.image.mime_type,
                    "data": base64.b64encode(block.image.content).decode("ascii"),
                }
            }
        )
    return parts


def build_request_body(payload: PromptPayload) -> Dict[str, Any]:
    contents = []
    for turn in payload.turns:
        parts: List[Dict[str, Any]] = []
        for block in turn:
            parts.extend(_encode_block(block))
        contents.append({"role": "user", "parts": parts})
    return {
        "system_instruction": {"role": "system", "parts": [{"text": SYSTEM_PROMPT}]},
        "contents": contents,
    }


def _upstream_detail(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        detail = response.text.strip()
        if len(detail) > _DETAIL_LIMIT:
            detail = detail[:_DETAIL_LIMIT] + "..."
        return detail


class GeminiImageProvider(ImageProvider):
    provider_name = "gemini"

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout_seconds: int = 30,
        probe_timeout_seconds: int = 15,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._api_key = api_key.strip()
        self._model = model.strip()
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = max(1, timeout_seconds)
        self._probe_timeout_seconds = max(1, probe_timeout_seconds)
        self._client = client

    def _endpoint(self) -> str:
        if not self._api_key:
            raise ModelTransportError("gemini_api_key_missing")
        if not self._model:
            raise ModelTransportError("gemini_model_missing")
        return f"{self._base_url}/models/{self._model}:generateContent"

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json", "x-goog-api-key": self._api_key}

    def _post(self, body: Dict[str, Any], *, timeout_seconds: int) -> httpx.Response:
        endpoint = self._endpoint()
        try:
            if self._client is not None:
                response = self._client.post(endpoint, headers=self._headers(), json=body, timeout=timeout_seconds)
            else:
                with httpx.Client(timeout=timeout_seconds) as client:
                    response = client.post(endpoint, headers=self._headers(), json=body)
        except httpx.TimeoutException as exc:
            raise ModelTransportError(
                f"gemini_request_timeout after={timeout_seconds}s",
                upstream_detail=str(exc) or type(exc).__name__,
            ) from exc
        except httpx.HTTPError as exc:
            raise ModelTransportError(
                "gemini_request_failed",
                upstream_detail=str(exc) or type(exc).__name__,
            ) from exc

        if response.status_code < 200 or response.status_code >= 300:
            raise ModelTransportError(
                f"gemini_request_failed status={response.status_code}",
                status_code=response.status_code,
                upstream_detail=_upstream_detail(response),
            )
        return response

    def generate(self, payload: PromptPayload) -> ModelReply:
        body = build_request_body(payload)
        logger.info(
            "gemini_generate_request",
            model=self._model,
            mode=payload.mode,
            enforce_change=payload.enforce_change,
            turns=len(payload.turns),
            images=len(payload.image_blocks()),
        )
        response = self._post(body, timeout_seconds=self._timeout_seconds)
        logger.info("gemini_generate_response", model=self._model, status=response.status_code)
        try:
            return response.json()
        except ValueError as exc:
            raise ModelTransportError(
                "gemini_invalid_json_response",
                status_code=response.status_code,
                upstream_detail=_upstream_detail(response),
            ) from exc

    def probe(self) -> ProbeResult:
        body = {"contents": [{"parts": [{"text": "ping"}]}]}
        try:
            response = self._post(body, timeout_seconds=self._probe_timeout_seconds)
        except ModelTransportError as exc:
            logger.warning("gemini_probe_failed", reason=exc.reason, status=exc.status_code)
            return ProbeResult(ok=False, status_code=exc.status_code, error=exc.upstream_detail or exc.reason)
        return ProbeResult(ok=True, status_code=response.status_code)
