"""In-memory verification records keyed by document hash."""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlparse

DEFAULT_MIME_TYPE = "application/octet-stream"


class RecordStatus(str, Enum):
    VERIFIED = "verified"


@dataclass(frozen=True)
class Record:
    hash: str
    display_name: str
    status: RecordStatus = RecordStatus.VERIFIED
    locator: str | None = None
    mime_type: str = DEFAULT_MIME_TYPE

    @property
    def retrievable(self) -> bool:
        return bool(self.locator)

    @property
    def is_remote(self) -> bool:
        return is_remote_locator(self.locator)


def is_remote_locator(locator: str | None) -> bool:
    if not locator:
        return False
    return urlparse(locator).scheme.lower() in {"http", "https"}


class RecordStore:
    """Process-lifetime mapping of hash -> Record.

    Each read and write holds the store lock, so handlers running on the
    event loop or in worker threads always observe whole records. Writes
    replace the record for a hash (last write wins).
    """

    def __init__(self, seed: Iterable[Record] | None = None) -> None:
        self._records: dict[str, Record] = {}
        self._lock = threading.Lock()
        for record in seed or ():
            self._records[record.hash] = record

    def get(self, hash_value: str) -> Record | None:
        with self._lock:
            return self._records.get(hash_value)

    def put(self, record: Record) -> Record | None:
        """Insert or replace the record for ``record.hash``; return the replaced one."""
        with self._lock:
            previous = self._records.get(record.hash)
            self._records[record.hash] = record
            return previous

    def snapshot(self) -> dict[str, Record]:
        with self._lock:
            return dict(self._records)

    def __contains__(self, hash_value: object) -> bool:
        with self._lock:
            return hash_value in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


__all__ = ["DEFAULT_MIME_TYPE", "Record", "RecordStatus", "RecordStore", "is_remote_locator"]
