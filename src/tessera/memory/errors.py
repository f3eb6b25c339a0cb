"""Error types for the memory system.

Each error carries the status code the HTTP layer should answer with, so
surfaces can map failures without knowing every subclass.
"""

from __future__ import annotations


class MemoryServiceError(Exception):
    """Base exception for memory operations."""

    status: int = 500

    def __init__(self, message: str, *, detail: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationError(MemoryServiceError):
    """Malformed caller input (missing query, bad id, bad body shape)."""

    status = 400


class EmbeddingError(MemoryServiceError):
    """Embedding provider unavailable or rejected the input."""

    status = 502


class StorageError(MemoryServiceError):
    """Persistence layer failure."""

    status = 500


class NotFoundError(MemoryServiceError):
    """Target does not exist or is not owned by the caller."""

    status = 404
