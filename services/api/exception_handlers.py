"""FastAPI exception handlers for custom exceptions."""

from __future__ import annotations

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from core.exceptions import (
    ClientInputError,
    DocProofError,
    NotFoundError,
    StorageWriteError,
)
from core.storage import BackendKind


def status_for(exc: DocProofError) -> int:
    if isinstance(exc, ClientInputError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, StorageWriteError):
        if exc.details.get("backend") == BackendKind.LOCAL.value:
            return status.HTTP_500_INTERNAL_SERVER_ERROR
        return status.HTTP_502_BAD_GATEWAY
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def docproof_exception_handler(request: Request, exc: DocProofError) -> JSONResponse:
    """Handle docproof-specific exceptions."""
    status_code = status_for(exc)
    log = logger.warning if status_code < 500 else logger.error
    log(
        "{type} on {method} {path}: {message}",
        type=type(exc).__name__,
        method=request.method,
        path=request.url.path,
        message=exc.message,
        details=exc.details,
    )
    return JSONResponse(
        status_code=status_code,
        content={"ok": False, "error": type(exc).__name__, "message": exc.message},
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request fields with the same envelope as other client errors."""
    fields = sorted({".".join(str(part) for part in error.get("loc", ())[1:]) or "request" for error in exc.errors()})
    return await docproof_exception_handler(
        request,
        ClientInputError(f"Invalid request field: {', '.join(fields)}", {"fields": ", ".join(fields)}),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Hide unexpected failures behind a generic message; the traceback stays in the log."""
    logger.opt(exception=exc).error("Unhandled exception on {method} {path}", method=request.method, path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"ok": False, "error": "InternalServerError", "message": "Internal server error"},
    )
