"""Header-only image inspection.

Dimensions are read straight from container headers, so no pixel decoding
library is required. Every parser degrades to ``None`` on malformed input.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePath
import struct
from typing import Callable, Dict, Optional

from headshot.media.errors import ImageValidationError


PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
JPEG_SOI = b"\xff\xd8"

# SOF0..SOF3: baseline, extended sequential, progressive, lossless.
_JPEG_SOF_MARKERS = frozenset({0xC0, 0xC1, 0xC2, 0xC3})
_JPEG_EOI = 0xD9
_JPEG_SOS = 0xDA

FORMAT_MIME_TYPES: Dict[str, str] = {
    "png": "image/png",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
}

_EXTENSION_FORMATS: Dict[str, str] = {
    ".png": "png",
    ".jpg": "jpeg",
    ".jpeg": "jpeg",
    ".webp": "webp",
}

_MIME_FORMATS: Dict[str, str] = {
    "image/png": "png",
    "image/jpeg": "jpeg",
    "image/jpg": "jpeg",
    "image/webp": "webp",
}


@dataclass(frozen=True)
class ImageDimensions:
    width: int
    height: int


def png_dimensions(data: bytes) -> Optional[ImageDimensions]:
    # IHDR width/height are big-endian u32 at fixed offsets 16 and 20.
    if len(data) < 24 or not data.startswith(PNG_SIGNATURE):
        return None
    width, height = struct.unpack(">II", data[16:24])
    return ImageDimensions(width=width, height=height)


def jpeg_dimensions(data: bytes) -> Optional[ImageDimensions]:
    if not data.startswith(JPEG_SOI):
        return None
    index = 2
    size = len(data)
    while index + 1 < size:
        if data[index] != 0xFF:
            index += 1
            continue
        marker = data[index + 1]
        index += 2
        if marker in (_JPEG_EOI, _JPEG_SOS):
            break
        if index + 1 >= size:
            break
        (length,) = struct.unpack(">H", data[index : index + 2])
        if length < 2:
            break
        if marker in _JPEG_SOF_MARKERS:
            # length(2) precision(1) height(2) width(2)
            if index + 7 <= size:
                height, width = struct.unpack(">HH", data[index + 3 : index + 7])
                return ImageDimensions(width=width, height=height)
            break
        index += length
    return None


def webp_dimensions(data: bytes) -> Optional[ImageDimensions]:
    if len(data) < 16 or data[0:4] != b"RIFF" or data[8:12] != b"WEBP":
        return None
    if data[12:16] != b"VP8X" or len(data) < 30:
        # Lossy (VP8) and lossless (VP8L) bitstreams are not inspected.
        return None
    width = 1 + int.from_bytes(data[24:27], "little")
    height = 1 + int.from_bytes(data[27:30], "little")
    return ImageDimensions(width=width, height=height)


_PARSERS: Dict[str, Callable[[bytes], Optional[ImageDimensions]]] = {
    "png": png_dimensions,
    "jpeg": jpeg_dimensions,
    "webp": webp_dimensions,
}

_PROBES = (png_dimensions, jpeg_dimensions, webp_dimensions)


def normalize_format_hint(hint: Optional[str]) -> str:
    """Map an extension, filename, mime type or format name onto a known format."""

    if not hint:
        return "unknown"
    value = hint.strip().lower()
    if value in _PARSERS:
        return value
    if value in _MIME_FORMATS:
        return _MIME_FORMATS[value]
    if value == "jpg":
        return "jpeg"
    suffix = value if value.startswith(".") and "/" not in value else PurePath(value).suffix
    return _EXTENSION_FORMATS.get(suffix, "unknown")


def sniff_format(data: bytes) -> str:
    if data.startswith(PNG_SIGNATURE):
        return "png"
    if data.startswith(JPEG_SOI):
        return "jpeg"
    if len(data) >= 12 and data[0:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"
    return "unknown"


def detect_format(data: bytes, hint: Optional[str] = None) -> str:
    """Format from magic bytes, falling back to the filename/mime hint."""

    sniffed = sniff_format(data)
    if sniffed != "unknown":
        return sniffed
    return normalize_format_hint(hint)


def mime_type_for_format(image_format: str) -> str:
    # Uploads of unknown type are sent as JPEG, matching what browsers usually produce.
    return FORMAT_MIME_TYPES.get(image_format, "image/jpeg")


def sniff_dimensions(data: bytes, format_hint: Optional[str] = None) -> Optional[ImageDimensions]:
    """Return the encoded dimensions of ``data`` or ``None`` when they cannot be read."""

    if not data:
        return None
    image_format = normalize_format_hint(format_hint)
    try:
        parser = _PARSERS.get(image_format)
        if parser is not None:
            return parser(data)
        for probe in _PROBES:
            found = probe(data)
            if found is not None:
                return found
    except (struct.error, IndexError, ValueError):
        return None
    return None


def enforce_dimension_limit(
    dimensions: Optional[ImageDimensions],
    *,
    max_width: int,
    max_height: int,
) -> None:
    if dimensions is None:
        return
    if dimensions.width > max_width or dimensions.height > max_height:
        raise ImageValidationError(
            f"Image too large: {dimensions.width}x{dimensions.height}. "
            f"Max allowed is {max_width}x{max_height} px."
        )
