"""Deterministic mock image provider for local/dev usage."""

from __future__ import annotations

import base64
import hashlib
import struct
import zlib

from headshot.media.prompts import PromptPayload
from headshot.media.providers.base import ImageProvider, ModelReply, ProbeResult
from headshot.media.sniffer import PNG_SIGNATURE


def _png_chunk(kind: bytes, data: bytes) -> bytes:
    crc = zlib.crc32(kind + data) & 0xFFFFFFFF
    return struct.pack(">I", len(data)) + kind + data + struct.pack(">I", crc)


def solid_png(width: int, height: int, rgb: bytes) -> bytes:
    """Encode a solid-colour 8-bit RGB PNG."""

    header = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    row = b"\x00" + rgb * width
    pixels = zlib.compress(row * height)
    return (
        PNG_SIGNATURE
        + _png_chunk(b"IHDR", header)
        + _png_chunk(b"IDAT", pixels)
        + _png_chunk(b"IEND", b"")
    )


class MockImageProvider(ImageProvider):
    provider_name = "mock"

    def __init__(self, *, width: int = 64, height: int = 64) -> None:
        self._width = width
        self._height = height

    def generate(self, payload: PromptPayload) -> ModelReply:
        seed = hashlib.sha1()
        seed.update(payload.mode.encode("utf-8"))
        seed.update(b"1" if payload.enforce_change else b"0")
        for block in payload.blocks:
            if block.text:
                seed.update(block.text.encode("utf-8"))
            if block.image is not None:
                seed.update(block.image.sha256.encode("ascii"))
        digest = seed.digest()
        image = solid_png(self._width, self._height, digest[:3])
        return {
            "candidates": [
                {
                    "content": {
                        "role": "model",
                        "parts": [
                            {"text": f"mock render {digest.hex()[:12]}"},
                            {
                                "inlineData": {
                                    "mimeType": "image/png",
                                    "data": base64.b64encode(image).decode("ascii"),
                                }
                            },
                        ],
                    }
                }
            ]
        }

    def probe(self) -> ProbeResult:
        return ProbeResult(ok=True, status_code=200)
