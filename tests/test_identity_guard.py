import pytest

from headshot.media.assets import ExtractedImage, content_hash
from headshot.media.errors import EchoedInputError, ImageExtractionError
from headshot.media.guard import ACCEPT, FAIL, RETRY, IdentityGuard


SUBJECT = b"subject-image-bytes"
REFERENCE = b"reference-image-bytes"


def _guard(with_reference: bool = True) -> IdentityGuard:
    return IdentityGuard([content_hash(SUBJECT), content_hash(REFERENCE) if with_reference else None])


def test_novel_output_is_accepted() -> None:
    guard = _guard()
    decision = guard.inspect(ExtractedImage(content=b"brand new portrait"))
    assert decision.action == ACCEPT
    assert decision.accepted is True
    assert decision.error is None


@pytest.mark.parametrize("echoed", [SUBJECT, REFERENCE])
def test_first_echo_requests_a_retry(echoed: bytes) -> None:
    guard = _guard()
    assert guard.inspect(ExtractedImage(content=echoed)).action == RETRY


def test_second_echo_fails_with_echo_error() -> None:
    guard = _guard()
    guard.inspect(ExtractedImage(content=SUBJECT))
    decision = guard.inspect(ExtractedImage(content=REFERENCE))

    assert decision.action == FAIL
    assert isinstance(decision.error, EchoedInputError)
    assert decision.error.reason == "echoed input"


def test_retry_with_novel_output_is_accepted() -> None:
    guard = _guard()
    guard.inspect(ExtractedImage(content=SUBJECT))
    assert guard.inspect(ExtractedImage(content=b"second try")).action == ACCEPT
    assert guard.attempts == 2


def test_missing_image_on_first_attempt_fails_without_retry() -> None:
    guard = _guard()
    decision = guard.inspect(None, diagnostics={"rawSummary": "candidates=0"})

    assert decision.action == FAIL
    assert isinstance(decision.error, ImageExtractionError)
    assert decision.error.reason == "no image returned"
    assert decision.error.detail == {"rawSummary": "candidates=0"}


def test_missing_image_on_retry_fails_with_extraction_error() -> None:
    guard = _guard()
    guard.inspect(ExtractedImage(content=SUBJECT))
    decision = guard.inspect(None)

    assert decision.action == FAIL
    assert isinstance(decision.error, ImageExtractionError)


def test_absent_reference_hash_is_ignored() -> None:
    guard = _guard(with_reference=False)
    assert guard.inspect(ExtractedImage(content=REFERENCE)).action == ACCEPT


def test_attempt_budget_is_bounded() -> None:
    guard = _guard()
    guard.inspect(ExtractedImage(content=SUBJECT))
    guard.inspect(ExtractedImage(content=SUBJECT))
    with pytest.raises(RuntimeError):
        guard.inspect(ExtractedImage(content=b"third"))
