from __future__ import annotations

import base64
import struct
from typing import Any, Dict, List, Optional
import zlib

from headshot.media.errors import GenerationError
from headshot.media.prompts import PromptPayload
from headshot.media.providers import ProbeResult


def png_bytes(width: int, height: int) -> bytes:
    header = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    crc = zlib.crc32(b"IHDR" + header) & 0xFFFFFFFF
    ihdr = struct.pack(">I", len(header)) + b"IHDR" + header + struct.pack(">I", crc)
    return b"\x89PNG\r\n\x1a\n" + ihdr + b"\x00\x00\x00\x00IEND\xaeB`\x82"


def jpeg_bytes(width: int, height: int, *, sof_marker: int = 0xC0, payload: bytes = b"") -> bytes:
    app0 = b"\xff\xe0" + struct.pack(">H", 16) + b"JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00"
    dqt = b"\xff\xdb" + struct.pack(">H", 67) + bytes(65)
    components = b"\x01\x22\x00\x02\x11\x01\x03\x11\x01"
    sof = bytes([0xFF, sof_marker]) + struct.pack(">HBHHB", 17, 8, height, width, 3) + components
    sos = b"\xff\xda" + struct.pack(">H", 12) + bytes(10)
    return b"\xff\xd8" + app0 + dqt + sof + sos + payload + b"\xff\xd9"


def webp_extended_bytes(width: int, height: int) -> bytes:
    chunk = (
        b"VP8X"
        + struct.pack("<I", 10)
        + b"\x10\x00\x00\x00"
        + (width - 1).to_bytes(3, "little")
        + (height - 1).to_bytes(3, "little")
    )
    return b"RIFF" + struct.pack("<I", 4 + len(chunk)) + b"WEBP" + chunk


def webp_lossy_bytes() -> bytes:
    chunk = b"VP8 " + struct.pack("<I", 10) + bytes(10)
    return b"RIFF" + struct.pack("<I", 4 + len(chunk)) + b"WEBP" + chunk


def b64(content: bytes) -> str:
    return base64.b64encode(content).decode("ascii")


def inline_reply(content: bytes, mime_type: str = "image/png", *, camel_case: bool = True) -> Dict[str, Any]:
    if camel_case:
        part = {"inlineData": {"mimeType": mime_type, "data": b64(content)}}
    else:
        part = {"inline_data": {"mime_type": mime_type, "data": b64(content)}}
    return {"candidates": [{"content": {"role": "model", "parts": [part]}}]}


def text_only_reply(text: str = "I cannot help with that.") -> Dict[str, Any]:
    return {
        "candidates": [{"content": {"parts": [{"text": text}]}, "finishReason": "STOP"}],
        "promptFeedback": {"blockReason": "OTHER"},
    }


class FakeProvider:
    """Returns scripted replies in order and records every payload it receives."""

    provider_name = "fake"

    def __init__(self, *replies: Any, probe: Optional[ProbeResult] = None) -> None:
        self._replies: List[Any] = list(replies)
        self._probe = probe or ProbeResult(ok=True, status_code=200)
        self.payloads: List[PromptPayload] = []

    @property
    def calls(self) -> int:
        return len(self.payloads)

    def generate(self, payload: PromptPayload) -> Any:
        self.payloads.append(payload)
        if not self._replies:
            raise AssertionError("FakeProvider received more calls than scripted replies")
        reply = self._replies.pop(0)
        if isinstance(reply, GenerationError):
            raise reply
        return reply

    def probe(self) -> ProbeResult:
        return self._probe
