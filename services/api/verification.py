"""Hash lookup and artifact retrieval for verifiers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from core.exceptions import ClientInputError, NotFoundError
from core.records import Record, RecordStore
from core.storage.local import LocalStorage


class VerificationStatus(str, Enum):
    MISSING_HASH = "missing_hash"
    NOT_ORIGINAL = "not_original"
    ORIGINAL = "original"


@dataclass(frozen=True)
class VerificationResult:
    status: VerificationStatus
    hash: str | None = None
    record: Record | None = None

    @property
    def original(self) -> bool:
        return self.status is VerificationStatus.ORIGINAL


@dataclass(frozen=True)
class Artifact:
    display_name: str
    mime_type: str
    redirect_url: str | None = None
    path: Path | None = None


def _clean_hash(hash_value: str | None) -> str | None:
    cleaned = (hash_value or "").strip()
    return cleaned or None


class VerificationService:
    def __init__(self, records: RecordStore, local: LocalStorage) -> None:
        self.records = records
        self.local = local

    def verify(self, hash_value: str | None) -> VerificationResult:
        cleaned = _clean_hash(hash_value)
        if cleaned is None:
            return VerificationResult(VerificationStatus.MISSING_HASH)
        record = self.records.get(cleaned)
        if record is None:
            return VerificationResult(VerificationStatus.NOT_ORIGINAL, hash=cleaned)
        return VerificationResult(VerificationStatus.ORIGINAL, hash=cleaned, record=record)

    async def fetch_artifact(self, hash_value: str | None) -> Artifact:
        """Locate the stored bytes for ``hash_value``.

        Raises:
            ClientInputError: no hash was given.
            NotFoundError: the hash is unknown, has no locator, or its local file is gone.
        """
        cleaned = _clean_hash(hash_value)
        if cleaned is None:
            raise ClientInputError("No hash supplied")
        record = self.records.get(cleaned)
        if record is None or not record.locator:
            raise NotFoundError("No stored file for this hash", {"hash": cleaned})
        if record.is_remote:
            return Artifact(record.display_name, record.mime_type, redirect_url=record.locator)
        if not await self.local.fetchable(record.locator):
            raise NotFoundError("Stored file not found", {"hash": cleaned})
        return Artifact(record.display_name, record.mime_type, path=self.local.path_for(record.locator))


__all__ = ["Artifact", "VerificationResult", "VerificationService", "VerificationStatus"]
