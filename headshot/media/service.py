"""Headshot generation pipeline and upload handling."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePath
from typing import Any, List, Optional, Tuple

from headshot.core.config import Settings, get_settings
from headshot.core.logger import generation_context, get_logger
from headshot.core.metrics import record_generation_attempt, record_generation_echo, record_generation_result
from headshot.media.assets import ExtractedImage, ImageAsset
from headshot.media.errors import (
    GenerationError,
    ImageValidationError,
    PersistenceError,
    UploadNotFoundError,
)
from headshot.media.extractor import extract_image, summarize_reply
from headshot.media.guard import ACCEPT, RETRY, GenerationAttempt, IdentityGuard
from headshot.media.prompts import GenerationMode, ReferenceGuided, StyleSelect, compile_prompt
from headshot.media.providers import ImageProvider, ProbeResult, get_image_provider
from headshot.media.sniffer import enforce_dimension_limit
from headshot.media.store import ContentStore, NameFactory, ResultPersister, get_content_store


logger = get_logger("headshot.media.service")

_UPLOAD_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp"}
_FORMAT_EXTENSIONS = {"png": ".png", "jpeg": ".jpg", "webp": ".webp"}


@dataclass(frozen=True)
class GenerationResult:
    success: bool
    status: str
    message: str
    mode: str
    result_name: Optional[str] = None
    asset: Optional[ImageAsset] = None
    error_kind: Optional[str] = None
    detail: Optional[Any] = None
    attempts: Tuple[GenerationAttempt, ...] = ()


def _clean(value: Optional[str]) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip()


def resolve_mode(*, style: Optional[str], prompt: Optional[str], ref_id: Optional[str]) -> GenerationMode:
    """A reference upload takes precedence over a style key."""

    if _clean(ref_id):
        return ReferenceGuided(prompt=_clean(prompt))
    if _clean(style):
        return StyleSelect(style_key=_clean(style), prompt=_clean(prompt))
    raise ImageValidationError(
        "Missing style or refId. Provide either a style selection or reference image."
    )


def load_asset(store: ContentStore, name: str) -> ImageAsset:
    try:
        content = store.read(name)
    except (ValueError, FileNotFoundError) as exc:
        raise UploadNotFoundError(f"Unknown upload: {name}") from exc
    except OSError as exc:
        raise ImageValidationError(f"Uploaded image could not be read: {name}", detail=str(exc)) from exc
    if not content:
        raise ImageValidationError(f"Uploaded image is empty: {name}")
    return ImageAsset.from_bytes(content, name=name)


def load_reference(store: ContentStore, ref_id: str) -> Optional[ImageAsset]:
    """Load the style reference; a missing one degrades the request to subject-only."""

    try:
        return load_asset(store, ref_id)
    except ImageValidationError as exc:
        logger.warning("reference_image_unavailable", ref_id=ref_id, error=str(exc))
        return None


def run_generation(
    provider: ImageProvider,
    mode: GenerationMode,
    subject: ImageAsset,
    reference: Optional[ImageAsset] = None,
) -> Tuple[ExtractedImage, List[GenerationAttempt]]:
    """Compile, call the model and extract until the guard accepts or fails.

    At most two model calls are made. Raises ``GenerationError`` on failure;
    the attempts made so far are attached as ``error.attempts``.
    """

    guard = IdentityGuard([subject.sha256, reference.sha256 if reference is not None else None])
    attempts: List[GenerationAttempt] = []
    enforce_change = False

    while True:
        payload = compile_prompt(mode, subject, reference, enforce_change=enforce_change)
        record_generation_attempt(mode=mode.name)
        try:
            reply = provider.generate(payload)
        except GenerationError as exc:
            exc.attempts = tuple(attempts)
            raise

        image = extract_image(reply)
        decision = guard.inspect(image, diagnostics=summarize_reply(reply) if image is None else None)
        echoed = image is not None and guard.is_echo(image)
        attempts.append(GenerationAttempt(payload=payload, image=image, echoed=echoed))
        logger.info(
            "generation_attempt_completed",
            attempt=guard.attempts,
            mode=mode.name,
            enforce_change=enforce_change,
            found_image=image is not None,
            echoed=echoed,
            decision=decision.action,
        )

        if decision.action == ACCEPT:
            assert image is not None  # accepted attempts always carry an image
            return image, attempts
        if decision.action == RETRY:
            record_generation_echo(mode=mode.name)
            logger.warning("model_echoed_input", mode=mode.name, retry_with_enforce_change=True)
            enforce_change = True
            continue

        if echoed:
            record_generation_echo(mode=mode.name)
        assert decision.error is not None
        decision.error.attempts = tuple(attempts)
        raise decision.error


def _failed(mode: str, exc: GenerationError) -> GenerationResult:
    return GenerationResult(
        success=False,
        status="failed",
        message=exc.reason,
        mode=mode,
        error_kind=exc.kind,
        detail=exc.detail,
        attempts=exc.attempts,
    )


def _produce(
    mode: GenerationMode,
    *,
    job_id: str,
    ref_id: str,
    store: ContentStore,
    provider: Optional[ImageProvider],
    persister: Optional[ResultPersister],
    settings: Settings,
) -> Tuple[ImageAsset, List[GenerationAttempt]]:
    subject = load_asset(store, job_id)
    enforce_dimension_limit(
        subject.dimensions,
        max_width=settings.max_image_width,
        max_height=settings.max_image_height,
    )
    reference = load_reference(store, ref_id) if isinstance(mode, ReferenceGuided) else None

    provider = provider or get_image_provider()
    logger.info(
        "generation_started",
        provider=provider.provider_name,
        subject_format=subject.format,
        subject_bytes=subject.size,
        has_reference=reference is not None,
    )
    image, attempts = run_generation(provider, mode, subject, reference)

    persister = persister or ResultPersister(store)
    try:
        asset = persister.persist(image)
    except GenerationError as exc:
        exc.attempts = tuple(attempts)
        raise
    return asset, attempts


def generate_headshot(
    *,
    job_id: Optional[str],
    style: Optional[str] = None,
    prompt: Optional[str] = None,
    ref_id: Optional[str] = None,
    store: Optional[ContentStore] = None,
    provider: Optional[ImageProvider] = None,
    persister: Optional[ResultPersister] = None,
    settings: Optional[Settings] = None,
) -> GenerationResult:
    """Run one generation request end to end.

    Every ``GenerationError`` is converted into a failed result so callers
    never see pipeline exceptions.
    """

    settings = settings or get_settings()
    store = store or get_content_store()
    mode_name = "unknown"

    try:
        if not _clean(job_id):
            raise ImageValidationError("Missing jobId")
        mode = resolve_mode(style=style, prompt=prompt, ref_id=ref_id)
        mode_name = mode.name
        with generation_context(job_id=_clean(job_id), mode=mode_name):
            asset, attempts = _produce(
                mode,
                job_id=_clean(job_id),
                ref_id=_clean(ref_id),
                store=store,
                provider=provider,
                persister=persister,
                settings=settings,
            )
    except GenerationError as exc:
        logger.warning(
            "generation_failed",
            mode=mode_name,
            kind=exc.kind,
            reason=exc.reason,
            attempts=len(exc.attempts),
        )
        record_generation_result(mode=mode_name, outcome=exc.kind)
        return _failed(mode_name, exc)

    record_generation_result(mode=mode_name, outcome="accepted")
    logger.info("generation_accepted", mode=mode_name, result=asset.name, attempts=len(attempts))
    return GenerationResult(
        success=True,
        status="accepted",
        message="generation_accepted",
        mode=mode_name,
        result_name=asset.name,
        asset=asset,
        attempts=tuple(attempts),
    )


def save_upload(
    content: bytes,
    *,
    field: str,
    filename: Optional[str] = None,
    store: Optional[ContentStore] = None,
    names: Optional[NameFactory] = None,
    settings: Optional[Settings] = None,
) -> str:
    """Store an uploaded image under a generated name and return that name."""

    settings = settings or get_settings()
    store = store or get_content_store()
    names = names or NameFactory()

    if not content:
        raise ImageValidationError("No file uploaded")
    if len(content) > settings.max_upload_bytes:
        raise ImageValidationError(
            f"Upload too large: {len(content)} bytes. Max allowed is {settings.max_upload_bytes} bytes."
        )

    suffix = PurePath(filename or "").suffix.lower()
    if suffix not in _UPLOAD_EXTENSIONS:
        asset = ImageAsset.from_bytes(content)
        suffix = _FORMAT_EXTENSIONS.get(asset.format, "")
        if not suffix:
            raise ImageValidationError("Unsupported image type. Upload a PNG, JPEG or WEBP image.")

    name = names(field, suffix)
    try:
        store.save(name, content)
    except OSError as exc:
        logger.error("upload_write_failed", field=field, name=name, error=str(exc))
        raise PersistenceError("upload could not be written", detail=str(exc)) from exc
    logger.info("upload_stored", field=field, name=name, bytes=len(content))
    return name


def probe_model(provider: Optional[ImageProvider] = None) -> ProbeResult:
    provider = provider or get_image_provider()
    result = provider.probe()
    logger.info("model_probe", provider=provider.provider_name, ok=result.ok, status=result.status_code)
    return result
