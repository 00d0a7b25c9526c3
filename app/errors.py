"""
Failure taxonomy shared by the repositories, the service and the HTTP layer.

Every failure a caller can see is a ResourceError carrying a kind and a human
message. File cleanup problems are never raised: FileStore logs them with
kind ``file_io`` and carries on.
"""

from __future__ import annotations

import sqlite3
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    REFERENTIAL = "referential"
    STORAGE = "storage"
    FILE_IO = "file_io"


class ResourceError(Exception):
    """Base class for caller-visible failures."""

    kind: ErrorKind = ErrorKind.STORAGE
    status_code: int = 500

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationFailure(ResourceError):
    """Malformed or missing input (bad id, required field absent, empty patch)."""

    kind = ErrorKind.VALIDATION
    status_code = 400


class NotFound(ResourceError):
    """The targeted record id does not exist."""

    kind = ErrorKind.NOT_FOUND
    status_code = 404


class ReferentialFailure(ResourceError):
    """A write violated a required relationship, e.g. material -> missing model."""

    kind = ErrorKind.REFERENTIAL
    status_code = 500


class StorageFailure(ResourceError):
    """Unexpected backing-store error."""

    kind = ErrorKind.STORAGE
    status_code = 500


def from_store_error(error: sqlite3.Error, message: str = "Internal server error") -> ResourceError:
    """Translate a sqlite3 error into the caller-visible taxonomy."""
    text = str(error)
    if isinstance(error, sqlite3.IntegrityError) and "FOREIGN KEY" in text.upper():
        return ReferentialFailure(message, details="Referenced model does not exist")
    return StorageFailure(message, details=type(error).__name__)
