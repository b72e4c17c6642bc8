"""
Custom exception hierarchy for photo_trail.

Extraction problems never leave the metadata layer; validation and storage
errors propagate to the caller unchanged.
"""
from typing import Any, Optional


class PhotoTrailError(Exception):
    """Base exception for all photo_trail errors."""
    pass


class ExtractionSkipped(PhotoTrailError):
    """
    Raised inside the metadata extractor when a field is absent or unreadable.
    Always absorbed by MetadataExtractor.extract(); the fallback policy takes over.
    """
    pass


class InvalidQuery(PhotoTrailError):
    """Raised when caller-supplied geometry or radius is malformed or out of range."""

    def __init__(self, field: str, constraint: str, value: Optional[Any] = None):
        self.field = field
        self.constraint = constraint
        self.value = value
        super().__init__(f"Invalid {field}={value!r}: must be {constraint}")


class StorageFailure(PhotoTrailError):
    """Raised when the underlying database fails. Nothing was committed."""
    pass


class NotFound(PhotoTrailError):
    """Raised by callers that require a record to exist. Store lookups return None instead."""
    pass
