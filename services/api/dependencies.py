"""Request-scoped accessors for the components owned by the application."""

from __future__ import annotations

from fastapi import Request

from core.storage.resolver import BackendResolver
from services.api.uploads import UploadOrchestrator
from services.api.verification import VerificationService


def get_resolver(request: Request) -> BackendResolver:
    return request.app.state.resolver


def get_verifier(request: Request) -> VerificationService:
    return request.app.state.verifier


def get_orchestrator(request: Request) -> UploadOrchestrator:
    return request.app.state.orchestrator
