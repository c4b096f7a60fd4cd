"""Ingestion error taxonomy.

Each pipeline stage wraps the library failures it sees into one of these,
so orchestrators can decide between isolating a sub-task and aborting the
whole sync without knowing about httpx, zipfile, protobuf or SQLAlchemy.
"""

from __future__ import annotations


class IngestError(Exception):
    """Base exception for all ingestion failures."""


class NetworkError(IngestError):
    """Raised on transport failure or non-success HTTP status."""


class ArchiveError(IngestError):
    """Raised when a downloaded static feed is not a usable zip archive."""


class SchemaValidationError(IngestError):
    """Raised when a CSV row fails its table schema; rejects the whole file."""

    def __init__(self, message: str, filename: str = "", line: int | None = None) -> None:
        super().__init__(message)
        self.filename = filename
        self.line = line


class DecodeError(IngestError):
    """Raised when a GTFS-realtime protobuf payload cannot be decoded."""


class StorageError(IngestError):
    """Raised when a database write or transaction fails."""


class FilesystemError(IngestError):
    """Raised when a directory cannot be prepared or a snapshot committed."""
