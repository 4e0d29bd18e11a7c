"""Immutable image values passed between pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass
import hashlib
from typing import Optional

from headshot.media.sniffer import (
    ImageDimensions,
    detect_format,
    mime_type_for_format,
    sniff_dimensions,
)


def content_hash(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


@dataclass(frozen=True)
class ImageAsset:
    content: bytes
    format: str
    mime_type: str
    sha256: str
    dimensions: Optional[ImageDimensions] = None
    name: Optional[str] = None

    @classmethod
    def from_bytes(
        cls,
        content: bytes,
        *,
        name: Optional[str] = None,
        hint: Optional[str] = None,
        mime_type: Optional[str] = None,
    ) -> "ImageAsset":
        """Build an asset, sniffing format and dimensions from the header bytes.

        ``hint`` is a filename, extension or mime type used when the magic
        bytes are not recognised. ``mime_type`` overrides the sniffed type.
        """

        image_format = detect_format(content, hint or name)
        return cls(
            content=content,
            format=image_format,
            mime_type=mime_type or mime_type_for_format(image_format),
            sha256=content_hash(content),
            dimensions=sniff_dimensions(content, image_format),
            name=name,
        )

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class ExtractedImage:
    content: bytes
    mime_type: str = "image/png"

    @property
    def sha256(self) -> str:
        return content_hash(self.content)
