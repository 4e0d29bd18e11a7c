"""Schemas for upload and generation endpoints."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class GenerateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: Optional[str] = Field(default=None, alias="jobId", max_length=200)
    style: Optional[str] = Field(default=None, max_length=40)
    prompt: Optional[str] = Field(default=None, max_length=2000)
    ref_id: Optional[str] = Field(default=None, alias="refId", max_length=200)


class GenerateResponse(BaseModel):
    result: str


class GenerationErrorResponse(BaseModel):
    error: str
    kind: str
    detail: Optional[Any] = None
    attempts: int = 0


class UploadResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(alias="jobId")
    style: Optional[str] = None


class UploadRefResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ref_id: str = Field(alias="refId")


class PingResponse(BaseModel):
    ok: bool
    status: Optional[int] = None
    error: Optional[Any] = None
