"""Custom exception hierarchy for docproof."""

from __future__ import annotations


class DocProofError(Exception):
    """Base exception for all docproof-specific errors."""

    def __init__(self, message: str, details: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ClientInputError(DocProofError):
    """Raised for user-correctable request problems (missing file, missing hash, bad target name)."""
    pass


class NotFoundError(DocProofError):
    """Raised when a hash is unknown or its artifact cannot be retrieved."""
    pass


class StorageError(DocProofError):
    """Raised when storage operations fail."""
    pass


class BackendUnavailableError(StorageError):
    """Raised when a cloud backend cannot be activated (auth failure, missing bucket)."""
    pass


class StorageWriteError(StorageError):
    """Raised when a backend accepted a write attempt but the write failed."""
    pass
