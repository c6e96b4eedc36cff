from __future__ import annotations

import asyncio
from dataclasses import dataclass

from loguru import logger

from core.exceptions import ClientInputError
from core.hashing import digest, is_digest
from core.records import DEFAULT_MIME_TYPE, Record, RecordStatus, RecordStore, is_remote_locator
from core.storage.local import LocalStorage
from core.storage.resolver import BackendResolver


@dataclass(frozen=True)
class UploadResult:
    hash: str
    display_name: str
    locator: str
    file_url: str
    mime_type: str
    size: int


def _first_text(*values: str | None) -> str | None:
    for value in values:
        if value is not None and value.strip():
            return value.strip()
    return None


class UploadOrchestrator:
    def __init__(self, records: RecordStore, resolver: BackendResolver, local: LocalStorage) -> None:
        self.records = records
        self.resolver = resolver
        self.local = local
        self._writes = asyncio.Lock()

    def _holder_of(self, locator: str, hash_value: str) -> str | None:
        for held_hash, record in self.records.snapshot().items():
            if record.locator == locator and held_hash != hash_value:
                return held_hash
        return None

    async def handle_upload(
        self,
        data: bytes | None,
        *,
        filename: str | None = None,
        declared_mime: str | None = None,
        hash_value: str | None = None,
        target_name: str | None = None,
        base_url: str = "",
    ) -> UploadResult:
        """Store an uploaded document and register it under its hash.

        The record is only written once the backend has accepted the bytes;
        a failed store leaves the record store untouched.
        """
        if not data:
            raise ClientInputError("No file uploaded")

        resolved_hash = _first_text(hash_value) or digest(data)
        name = _first_text(target_name, filename) or resolved_hash
        mime_type = _first_text(declared_mime) or DEFAULT_MIME_TYPE

        storage = await self.resolver.backend()
        async with self._writes:
            # A stored object belongs to exactly one hash.
            holder = self._holder_of(storage.locator_for(name), resolved_hash)
            if holder is not None:
                raise ClientInputError(
                    "Target name already holds a different document",
                    {"targetName": name, "hash": holder},
                )
            locator = await storage.store(name, data, mime_type)
            previous = self.records.put(
                Record(
                    hash=resolved_hash,
                    display_name=name,
                    status=RecordStatus.VERIFIED,
                    locator=locator,
                    mime_type=mime_type,
                )
            )

        file_url = locator if is_remote_locator(locator) else self.local.url_for(locator, base_url)
        logger.info(
            "Stored {name} ({size} bytes) via {backend} under hash {hash}{replaced}",
            name=name,
            size=len(data),
            backend=storage.kind.value,
            hash=resolved_hash,
            replaced=" (replaced previous record)" if previous else "",
        )
        if hash_value and not is_digest(resolved_hash):
            logger.debug("Client-supplied hash {hash} is not a SHA-256 digest", hash=resolved_hash)

        return UploadResult(
            hash=resolved_hash,
            display_name=name,
            locator=locator,
            file_url=file_url,
            mime_type=mime_type,
            size=len(data),
        )


__all__ = ["UploadOrchestrator", "UploadResult"]
