"""One-time selection of the active storage backend.

Connectors are tried in order; the first one that connects becomes the
active backend for the rest of the process. Resolution never raises: when
nothing is configured, or every connector fails, the local filesystem is
used and the config reports ``enabled=False``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

from core.exceptions import BackendUnavailableError
from core.logging_config import get_logger
from core.settings import StorageSettings
from core.storage import BackendKind, ObjectStorage
from core.storage.local import LocalStorage

Connector = Callable[[], Awaitable[ObjectStorage]]

log = get_logger("storage.resolver")


@dataclass(frozen=True)
class BackendConfig:
    enabled: bool
    kind: BackendKind
    bucket_name: str | None = None
    public_base_url: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class _Resolution:
    config: BackendConfig
    storage: ObjectStorage


class BackendResolver:
    def __init__(self, local: LocalStorage, connectors: Sequence[Connector] = ()) -> None:
        self.local = local
        self._connectors = list(connectors)
        self._task: asyncio.Task[_Resolution] | None = None
        self._resolution: _Resolution | None = None
        self.attempts = 0

    @property
    def ready(self) -> bool:
        """Readiness probe: True once the active backend has been decided."""
        return self._resolution is not None

    async def resolve(self) -> BackendConfig:
        return (await self._resolved()).config

    async def backend(self) -> ObjectStorage:
        return (await self._resolved()).storage

    async def _resolved(self) -> _Resolution:
        if self._resolution is not None:
            return self._resolution
        if self._task is None:
            self._task = asyncio.ensure_future(self._run())
        # Shielded so a cancelled request does not cancel resolution for everyone else.
        return await asyncio.shield(self._task)

    async def _run(self) -> _Resolution:
        self.attempts += 1
        errors: list[str] = []
        for connector in self._connectors:
            try:
                storage = await connector()
            except BackendUnavailableError as exc:
                log.warning("Storage backend unavailable, trying next option: {error}", error=exc.message)
                errors.append(exc.message)
                continue
            except Exception as exc:
                log.opt(exception=exc).error("Unexpected error while activating storage backend")
                errors.append(f"{type(exc).__name__}: {exc}")
                continue
            config = BackendConfig(
                enabled=True,
                kind=storage.kind,
                bucket_name=storage.bucket_name,
                public_base_url=storage.public_base_url,
            )
            log.info("Storage backend {kind} active (bucket={bucket})", kind=config.kind.value, bucket=config.bucket_name)
            self._resolution = _Resolution(config, storage)
            return self._resolution

        if self._connectors:
            log.warning("No cloud storage backend could be activated; using local disk at {root}", root=self.local.root)
        else:
            log.info("Cloud storage not configured; using local disk at {root}", root=self.local.root)
        config = BackendConfig(
            enabled=False,
            kind=BackendKind.LOCAL,
            error="; ".join(errors) or None,
        )
        self._resolution = _Resolution(config, self.local)
        return self._resolution

    async def aclose(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        storage = self._resolution.storage if self._resolution else None
        aclose = getattr(storage, "aclose", None)
        if aclose is not None:
            await aclose()


def default_connectors(settings: StorageSettings) -> list[Connector]:
    """Build the connector chain described by ``settings``."""
    if settings.provider == "local" or not settings.configured:
        return []

    async def _native() -> ObjectStorage:
        from core.storage.native import NativeCloudStorage

        storage = NativeCloudStorage(
            key_id=settings.key_id or "",
            application_key=settings.secret_key or "",
            bucket_name=settings.bucket or "",
            api_url=settings.native_api_url,
            public_base_url=settings.public_base_url,
            prefix=settings.prefix,
            timeout=settings.timeout_seconds,
        )
        try:
            return await storage.connect()
        except Exception:
            await storage.aclose()
            raise

    async def _s3() -> ObjectStorage:
        from core.storage.s3 import S3Storage

        storage = S3Storage(
            settings.bucket or "",
            prefix=settings.prefix,
            region=settings.region,
            endpoint_url=settings.endpoint,
            access_key_id=settings.key_id,
            secret_access_key=settings.secret_key,
            public_base_url=settings.public_base_url,
            timeout=settings.timeout_seconds,
        )
        return await storage.connect()

    chains: dict[str, list[Connector]] = {
        "native": [_native],
        "s3": [_s3],
        "auto": [_native, _s3],
    }
    return chains[settings.provider]


__all__ = ["BackendConfig", "BackendResolver", "Connector", "default_connectors"]
