"""Deep search for an embedded image inside an untyped model reply.

A node yields an image when, checked in this order, it carries:

1. an inline-binary field (``inline_data``/``inlineData`` with ``data``),
2. a ``text`` field containing a ``data:image/...;base64,`` URI,
3. is itself a string containing such a URI,
4. a ``data`` field made only of base64 characters and longer than
   ``HEURISTIC_MIN_LENGTH`` (taken as PNG).

Rule 4 can match non-image base64; it is kept for providers that return bare
payloads. Candidates' content parts are searched first, then the whole reply.
Lists are walked in order and mappings in key order, so the result is
deterministic.
"""

from __future__ import annotations

import base64
import binascii
import re
from typing import Any, Dict, Iterator, Optional

from headshot.media.assets import ExtractedImage


DATA_URI_PATTERN = re.compile(
    r"data:(image/(?:png|jpeg|jpg|webp));base64,([A-Za-z0-9+/=]+)",
    re.IGNORECASE,
)
BASE64_ONLY_PATTERN = re.compile(r"^[A-Za-z0-9+/=]+$")
HEURISTIC_MIN_LENGTH = 100
MAX_DEPTH = 128

_INLINE_KEYS = ("inline_data", "inlineData")
_MIME_KEYS = ("mime_type", "mimeType")


def _decode(data: str, mime_type: str) -> Optional[ExtractedImage]:
    payload = data.strip()
    # Trailing padding is optional in provider payloads.
    payload += "=" * (-len(payload) % 4)
    try:
        content = base64.b64decode(payload)
    except (binascii.Error, ValueError):
        return None
    if not content:
        return None
    return ExtractedImage(content=content, mime_type=mime_type)


def normalize_mime(mime_type: str) -> str:
    normalized = mime_type.strip().lower()
    if normalized == "image/jpg":
        return "image/jpeg"
    return normalized


def parse_data_uri(text: Any) -> Optional[ExtractedImage]:
    if not isinstance(text, str):
        return None
    match = DATA_URI_PATTERN.search(text)
    if match is None:
        return None
    return _decode(match.group(2), normalize_mime(match.group(1)))


def _inline_image(node: Dict[str, Any]) -> Optional[ExtractedImage]:
    for key in _INLINE_KEYS:
        inline = node.get(key)
        if not isinstance(inline, dict):
            continue
        data = inline.get("data")
        if not isinstance(data, str) or not data:
            continue
        mime_type = next(
            (str(inline[mime_key]) for mime_key in _MIME_KEYS if inline.get(mime_key)),
            "image/png",
        )
        found = _decode(data, normalize_mime(mime_type))
        if found is not None:
            return found
    return None


def _heuristic_image(node: Dict[str, Any]) -> Optional[ExtractedImage]:
    data = node.get("data")
    if not isinstance(data, str) or len(data) <= HEURISTIC_MIN_LENGTH:
        return None
    if BASE64_ONLY_PATTERN.match(data) is None:
        return None
    return _decode(data, "image/png")


def _match_node(node: Any) -> Optional[ExtractedImage]:
    if isinstance(node, str):
        return parse_data_uri(node)
    if not isinstance(node, dict):
        return None
    found = _inline_image(node)
    if found is None:
        found = parse_data_uri(node.get("text"))
    if found is None:
        found = _heuristic_image(node)
    return found


def deep_search(node: Any, *, depth: int = 0) -> Optional[ExtractedImage]:
    if node is None or depth > MAX_DEPTH:
        return None
    found = _match_node(node)
    if found is not None:
        return found
    if isinstance(node, list):
        children = iter(node)
    elif isinstance(node, dict):
        children = iter(node.values())
    else:
        return None
    for child in children:
        found = deep_search(child, depth=depth + 1)
        if found is not None:
            return found
    return None


def iter_candidate_parts(reply: Any) -> Iterator[Any]:
    if not isinstance(reply, dict):
        return
    candidates = reply.get("candidates")
    if not isinstance(candidates, list):
        return
    for candidate in candidates:
        if not isinstance(candidate, dict):
            continue
        content = candidate.get("content")
        if not isinstance(content, dict):
            continue
        parts = content.get("parts")
        if not isinstance(parts, list):
            continue
        yield from parts


def extract_image(reply: Any) -> Optional[ExtractedImage]:
    """Return the first image embedded in ``reply``, or ``None``."""

    for part in iter_candidate_parts(reply):
        found = deep_search(part)
        if found is not None:
            return found
    return deep_search(reply)


def summarize_reply(reply: Any) -> Dict[str, Any]:
    """Diagnostic summary of a reply that yielded no image."""

    summary: Dict[str, Any] = {"rawSummary": "no candidates"}
    if not isinstance(reply, dict):
        return summary
    candidates = reply.get("candidates")
    if isinstance(candidates, list):
        summary["rawSummary"] = f"candidates={len(candidates)}"
        finish_reasons = [
            candidate.get("finishReason")
            for candidate in candidates
            if isinstance(candidate, dict) and candidate.get("finishReason")
        ]
        if finish_reasons:
            summary["finishReasons"] = finish_reasons
    if reply.get("promptFeedback") is not None:
        summary["promptFeedback"] = reply["promptFeedback"]
    return summary
