"""Provider contracts for image generation backends."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Union

from headshot.media.prompts import PromptPayload


# Untyped reply document; its image-bearing shape is not contractually fixed.
ModelReply = Union[Dict[str, Any], List[Any], str, int, float, bool, None]


@dataclass(frozen=True)
class ProbeResult:
    ok: bool
    status_code: Optional[int] = None
    error: Optional[Any] = None


class ImageProvider(Protocol):
    provider_name: str

    def generate(self, payload: PromptPayload) -> ModelReply:
        raise NotImplementedError

    def probe(self) -> ProbeResult:
        raise NotImplementedError
