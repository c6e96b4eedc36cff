"""Storage abstraction (native cloud API, S3-compatible API, or local filesystem fallback)."""

from __future__ import annotations

from enum import Enum
from typing import Protocol
from urllib.parse import quote

from core.exceptions import ClientInputError


class BackendKind(str, Enum):
    LOCAL = "local"
    NATIVE = "native"
    S3 = "s3"


class ObjectStorage(Protocol):
    kind: BackendKind
    bucket_name: str | None
    public_base_url: str | None

    def locator_for(self, name: str) -> str:
        ...

    async def store(self, name: str, data: bytes, mime_type: str) -> str:  # returns locator
        ...

    async def fetchable(self, locator: str) -> bool:
        ...


def normalize_object_name(name: str | None) -> list[str]:
    """Split a target name into path segments, rejecting traversal.

    Backslashes count as separators and empty segments are dropped, so
    ``"/a//b\\c.pdf"`` becomes ``["a", "b", "c.pdf"]``.
    """
    cleaned = (name or "").replace("\\", "/")
    segments = [segment for segment in cleaned.split("/") if segment]
    for segment in segments:
        if segment in {".", ".."} or "\x00" in segment:
            raise ClientInputError("Invalid target name", {"targetName": name or ""})
    if not segments:
        raise ClientInputError("Invalid target name", {"targetName": name or ""})
    return segments


def encode_object_key(segments: list[str]) -> str:
    """Percent-encode each segment on its own so ``/`` keeps its meaning as hierarchy."""
    return "/".join(quote(segment, safe="") for segment in segments)


def join_prefix(prefix: str, segments: list[str]) -> list[str]:
    return [part for part in prefix.strip("/").split("/") if part] + segments


__all__ = [
    "BackendKind",
    "ObjectStorage",
    "encode_object_key",
    "join_prefix",
    "normalize_object_name",
]
