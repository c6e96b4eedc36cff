import asyncio
import os
from pathlib import Path

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from loguru import logger

from core.exceptions import DocProofError
from core.logging_config import setup_logging
from core.records import DEFAULT_MIME_TYPE, Record, RecordStatus, RecordStore
from core.settings import Settings, get_settings
from core.storage.local import LocalStorage
from core.storage.resolver import BackendResolver, default_connectors
from services.api.exception_handlers import (
    docproof_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from services.api.routes import router
from services.api.uploads import UploadOrchestrator
from services.api.verification import VerificationService


def seeded_record_store(settings: Settings) -> RecordStore:
    return RecordStore(
        Record(
            hash=hash_value,
            display_name=seed.display_name,
            status=RecordStatus.VERIFIED,
            locator=seed.locator,
            mime_type=seed.mime_type or DEFAULT_MIME_TYPE,
        )
        for hash_value, seed in settings.server.seed_records.items()
    )


def create_app(
    settings: Settings | None = None,
    *,
    records: RecordStore | None = None,
    resolver: BackendResolver | None = None,
) -> FastAPI:
    # Setup structured logging
    json_logging = os.getenv("JSON_LOGGING", "false").lower() in {"true", "1", "yes"}
    log_level = os.getenv("LOG_LEVEL", "INFO")
    log_file = os.getenv("LOG_FILE")
    setup_logging(
        level=log_level,
        json_format=json_logging,
        log_file=Path(log_file) if log_file else None,
    )

    settings = settings or get_settings()
    server = settings.server

    local = resolver.local if resolver is not None else LocalStorage(server.upload_root, mount=server.uploads_mount)
    records = records if records is not None else seeded_record_store(settings)
    resolver = resolver or BackendResolver(local, default_connectors(settings.storage))

    app = FastAPI(
        title="docproof API",
        version="0.1.0",
        description="Document upload, content-hash registration and authenticity checks",
    )
    app.state.settings = settings
    app.state.records = records
    app.state.resolver = resolver
    app.state.verifier = VerificationService(records, local)
    app.state.orchestrator = UploadOrchestrator(records, resolver, local)
    app.state.warm_up = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=server.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    async def _warm_up_backend() -> None:
        logger.info(
            "API initialised with storage provider={provider}, uploads at {root}",
            provider=settings.storage.provider,
            root=local.root,
        )
        if server.resolve_on_startup:
            # Same in-flight task the first request would start; never raises.
            app.state.warm_up = asyncio.ensure_future(resolver.resolve())

    @app.on_event("shutdown")
    async def _close_backend() -> None:
        await resolver.aclose()

    # Register exception handlers
    app.add_exception_handler(DocProofError, docproof_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(router)

    app.mount(server.uploads_mount, StaticFiles(directory=local.root, check_dir=False), name="uploads")
    app.mount("/", StaticFiles(directory=server.public_root, html=True, check_dir=False), name="public")

    return app


app = create_app()


__all__ = ["app", "create_app", "seeded_record_store"]
