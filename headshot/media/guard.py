"""Echo detection and the single-retry decision."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional

from headshot.media.assets import ExtractedImage
from headshot.media.errors import EchoedInputError, GenerationError, ImageExtractionError
from headshot.media.prompts import PromptPayload


ACCEPT = "accept"
RETRY = "retry"
FAIL = "fail"

MAX_ATTEMPTS = 2


@dataclass(frozen=True)
class GenerationAttempt:
    payload: PromptPayload
    image: Optional[ExtractedImage]
    echoed: bool = False


@dataclass(frozen=True)
class GuardDecision:
    action: str
    error: Optional[GenerationError] = None

    @property
    def accepted(self) -> bool:
        return self.action == ACCEPT


class IdentityGuard:
    """Compares each attempt's output to the input hashes.

    The first echo asks for a retry; a second echo, or a retry that returns no
    image, fails the request. No image on the first attempt fails immediately
    since there is nothing to compare.
    """

    def __init__(self, input_hashes: Iterable[Optional[str]]) -> None:
        self._input_hashes = frozenset(value for value in input_hashes if value)
        self._attempts = 0

    @property
    def attempts(self) -> int:
        return self._attempts

    def is_echo(self, image: ExtractedImage) -> bool:
        return image.sha256 in self._input_hashes

    def inspect(self, image: Optional[ExtractedImage], *, diagnostics: Optional[Any] = None) -> GuardDecision:
        if self._attempts >= MAX_ATTEMPTS:
            raise RuntimeError("identity guard attempt budget exhausted")
        self._attempts += 1
        is_retry = self._attempts > 1

        if image is None:
            reason = "no image returned after retry" if is_retry else "no image returned"
            return GuardDecision(action=FAIL, error=ImageExtractionError(reason, detail=diagnostics))

        if self.is_echo(image):
            if is_retry:
                return GuardDecision(
                    action=FAIL,
                    error=EchoedInputError(
                        "echoed input",
                        detail="Generated image appears identical to one of the inputs after retry",
                    ),
                )
            return GuardDecision(action=RETRY)

        return GuardDecision(action=ACCEPT)
