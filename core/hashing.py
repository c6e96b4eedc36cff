"""Content digests used as document identifiers."""

from __future__ import annotations

import hashlib
import string

DIGEST_LENGTH = 64

_HEX = frozenset(string.hexdigits)


def digest(data: bytes) -> str:
    """Return the SHA-256 digest of ``data`` as 64 lowercase hex characters."""
    return hashlib.sha256(data).hexdigest()


def is_digest(value: object) -> bool:
    if not isinstance(value, str) or len(value) != DIGEST_LENGTH:
        return False
    return all(ch in _HEX for ch in value)


__all__ = ["DIGEST_LENGTH", "digest", "is_digest"]
