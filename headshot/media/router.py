"""Upload, generation and result-serving API routes."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.responses import FileResponse, JSONResponse

from headshot.core.logger import get_logger
from headshot.core.observability import capture_exception
from headshot.media.errors import GenerationError
from headshot.media.providers import ImageProvider, get_image_provider
from headshot.media.service import GenerationResult, generate_headshot, probe_model, save_upload
from headshot.media.store import ContentStore, get_content_store
from headshot.schemas.generation import (
    GenerateRequest,
    GenerateResponse,
    GenerationErrorResponse,
    PingResponse,
    UploadRefResponse,
    UploadResponse,
)


router = APIRouter(tags=["headshots"])
logger = get_logger("headshot.api.media")

ERROR_STATUS_CODES = {
    "validation_error": status.HTTP_400_BAD_REQUEST,
    "not_found": status.HTTP_404_NOT_FOUND,
    "transport_error": status.HTTP_502_BAD_GATEWAY,
    "extraction_error": status.HTTP_502_BAD_GATEWAY,
    "echo_error": status.HTTP_502_BAD_GATEWAY,
    "persistence_error": status.HTTP_502_BAD_GATEWAY,
}


def _error_response(
    *,
    kind: str,
    reason: str,
    detail: object = None,
    attempts: int = 0,
) -> JSONResponse:
    body = GenerationErrorResponse(error=reason, kind=kind, detail=detail, attempts=attempts)
    return JSONResponse(
        status_code=ERROR_STATUS_CODES.get(kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
        content=body.model_dump(),
    )


def _failure_response(result: GenerationResult) -> JSONResponse:
    return _error_response(
        kind=result.error_kind or "generation_error",
        reason=result.message,
        detail=result.detail,
        attempts=len(result.attempts),
    )


def _read_upload(upload: Optional[UploadFile]) -> bytes:
    if upload is None:
        return b""
    try:
        return upload.file.read()
    finally:
        upload.file.close()


def _store_upload(field: str, upload: Optional[UploadFile], store: ContentStore) -> str:
    content = _read_upload(upload)
    try:
        return save_upload(
            content,
            field=field,
            filename=upload.filename if upload is not None else None,
            store=store,
        )
    except GenerationError as exc:
        raise HTTPException(
            status_code=ERROR_STATUS_CODES.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
            detail=exc.reason,
        ) from exc


@router.post("/api/upload", response_model=UploadResponse)
def upload_photo(
    photo: Optional[UploadFile] = File(default=None),
    style: Optional[str] = Form(default=None),
    store: ContentStore = Depends(get_content_store),
) -> UploadResponse:
    job_id = _store_upload("photo", photo, store)
    return UploadResponse(job_id=job_id, style=style)


@router.post("/api/upload-ref", response_model=UploadRefResponse)
def upload_reference(
    ref: Optional[UploadFile] = File(default=None),
    store: ContentStore = Depends(get_content_store),
) -> UploadRefResponse:
    if ref is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No reference file uploaded")
    ref_id = _store_upload("ref", ref, store)
    return UploadRefResponse(ref_id=ref_id)


@router.post(
    "/api/generate",
    response_model=GenerateResponse,
    responses={
        400: {"model": GenerationErrorResponse},
        404: {"model": GenerationErrorResponse},
        502: {"model": GenerationErrorResponse},
    },
)
def generate(
    payload: GenerateRequest,
    store: ContentStore = Depends(get_content_store),
    provider: ImageProvider = Depends(get_image_provider),
):
    try:
        result = generate_headshot(
            job_id=payload.job_id,
            style=payload.style,
            prompt=payload.prompt,
            ref_id=payload.ref_id,
            store=store,
            provider=provider,
        )
    except Exception as exc:
        logger.exception("generation_unexpected_error", job_id=payload.job_id, error=str(exc))
        capture_exception(exc, job_id=payload.job_id, mode="reference" if payload.ref_id else "style")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": f"Failed to generate headshot: {exc}", "kind": "internal_error"},
        )

    if not result.success or result.result_name is None:
        return _failure_response(result)
    return GenerateResponse(result=result.result_name)


@router.get("/api/ping", response_model=PingResponse)
def ping(provider: ImageProvider = Depends(get_image_provider)):
    result = probe_model(provider)
    body = PingResponse(ok=result.ok, status=result.status_code, error=result.error)
    if not result.ok:
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body.model_dump())
    return body


@router.get("/uploads/{name}")
def stored_file(name: str, store: ContentStore = Depends(get_content_store)):
    if not store.exists(name):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="file_not_found")
    path = store.resolve(name)
    return FileResponse(path, filename=path.name)
