from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class UploadResponse(BaseModel):
    ok: Literal[True] = True
    hash: str
    fileName: str
    fileUrl: str | None = None
    mimeType: str | None = None
    size: int | None = None


class ErrorResponse(BaseModel):
    ok: Literal[False] = False
    error: str
    message: str


class ConfigResponse(BaseModel):
    backendEnabled: bool
    backend: Literal["local", "native", "s3"]
    bucketName: str | None = None
    publicBaseUrl: str | None = None


class ReadinessResponse(BaseModel):
    status: Literal["ready", "resolving"]
    backend: Literal["local", "native", "s3"] | None = None
    attempts: int = 0
