"""Error taxonomy for the generation pipeline."""

from __future__ import annotations

from typing import Any, Optional, Tuple


class GenerationError(RuntimeError):
    """Base error for a generation request; recovered at the request boundary."""

    kind = "generation_error"

    def __init__(self, reason: str, *, detail: Optional[Any] = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.detail = detail
        # Generation attempts made before the failure, filled in by the pipeline.
        self.attempts: Tuple[Any, ...] = ()


class ImageValidationError(GenerationError):
    """Missing or unacceptable input. Never retried."""

    kind = "validation_error"


class UploadNotFoundError(ImageValidationError):
    """The referenced upload identifier is not in the content store."""

    kind = "not_found"


class ModelTransportError(GenerationError):
    """Network failure, timeout or non-2xx response from the model endpoint."""

    kind = "transport_error"

    def __init__(
        self,
        reason: str,
        *,
        status_code: Optional[int] = None,
        upstream_detail: Optional[Any] = None,
    ) -> None:
        super().__init__(reason, detail=upstream_detail)
        self.status_code = status_code
        self.upstream_detail = upstream_detail


class ImageExtractionError(GenerationError):
    """A well-formed reply carried no image payload."""

    kind = "extraction_error"


class EchoedInputError(GenerationError):
    """The model returned one of the inputs unchanged, even after the retry."""

    kind = "echo_error"


class PersistenceError(GenerationError):
    """Accepted bytes could not be written, or were written empty."""

    kind = "persistence_error"
