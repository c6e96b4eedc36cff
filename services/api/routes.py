from __future__ import annotations

from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from fastapi.responses import FileResponse, HTMLResponse, PlainTextResponse, RedirectResponse, Response

from core.exceptions import NotFoundError
from core.storage.resolver import BackendResolver
from services.api.dependencies import get_orchestrator, get_resolver, get_verifier
from services.api.rendering import MISSING_HASH_TEXT, render_verification
from services.api.schemas import ConfigResponse, ErrorResponse, ReadinessResponse, UploadResponse
from services.api.uploads import UploadOrchestrator
from services.api.verification import VerificationService, VerificationStatus


router = APIRouter()

_ERRORS = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
}


def content_disposition(display_name: str) -> str:
    """Inline disposition carrying the display name; non-ASCII names also get an RFC 5987 form."""
    fallback = "".join(ch if " " <= ch < "\x7f" else "_" for ch in display_name)
    fallback = fallback.replace("\\", "\\\\").replace('"', '\\"')
    value = f'inline; filename="{fallback}"'
    if not display_name.isascii():
        value += f"; filename*=utf-8''{quote(display_name, safe='')}"
    return value


@router.get("/verify", response_class=HTMLResponse, tags=["verify"])
async def verify_document(
    verifier: Annotated[VerificationService, Depends(get_verifier)],
    hash_value: Annotated[str | None, Query(alias="hash")] = None,
) -> Response:
    result = verifier.verify(hash_value)
    if result.status is VerificationStatus.MISSING_HASH:
        return PlainTextResponse(MISSING_HASH_TEXT, status_code=400)
    return HTMLResponse(render_verification(result))


@router.get("/file", tags=["verify"], responses=_ERRORS)
async def fetch_file(
    verifier: Annotated[VerificationService, Depends(get_verifier)],
    hash_value: Annotated[str | None, Query(alias="hash")] = None,
) -> Response:
    artifact = await verifier.fetch_artifact(hash_value)
    if artifact.redirect_url:
        return RedirectResponse(artifact.redirect_url, status_code=302)
    if artifact.path is None:
        raise NotFoundError("Stored file not found", {"hash": hash_value or ""})
    return FileResponse(
        artifact.path,
        media_type=artifact.mime_type,
        headers={"Content-Disposition": content_disposition(artifact.display_name)},
    )


@router.get("/config", response_model=ConfigResponse, tags=["meta"])
async def backend_config(resolver: Annotated[BackendResolver, Depends(get_resolver)]) -> ConfigResponse:
    config = await resolver.resolve()
    return ConfigResponse(
        backendEnabled=config.enabled,
        backend=config.kind.value,
        bucketName=config.bucket_name,
        publicBaseUrl=config.public_base_url,
    )


@router.post(
    "/upload",
    response_model=UploadResponse,
    response_model_exclude_none=True,
    tags=["upload"],
    responses=_ERRORS,
)
async def upload_document(
    request: Request,
    orchestrator: Annotated[UploadOrchestrator, Depends(get_orchestrator)],
    file: Annotated[UploadFile | None, File(description="Document to register")] = None,
    hash_value: Annotated[str | None, Form(alias="hash")] = None,
    target_name: Annotated[str | None, Form(alias="targetName")] = None,
    file_name: Annotated[str | None, Form(alias="fileName")] = None,
) -> UploadResponse:
    data = await file.read() if file is not None else None
    result = await orchestrator.handle_upload(
        data,
        filename=file.filename if file is not None else None,
        declared_mime=file.content_type if file is not None else None,
        hash_value=hash_value,
        target_name=target_name or file_name,
        base_url=str(request.base_url),
    )
    return UploadResponse(
        hash=result.hash,
        fileName=result.display_name,
        fileUrl=result.file_url,
        mimeType=result.mime_type,
        size=result.size,
    )


@router.get("/healthz", tags=["meta"])
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz", response_model=ReadinessResponse, tags=["meta"])
async def readiness(resolver: Annotated[BackendResolver, Depends(get_resolver)]) -> ReadinessResponse:
    if not resolver.ready:
        return ReadinessResponse(status="resolving", attempts=resolver.attempts)
    config = await resolver.resolve()
    return ReadinessResponse(status="ready", backend=config.kind.value, attempts=resolver.attempts)
