"""Error kinds raised by the persistence and aggregation layer.

The HTTP layer maps each kind to a status code; the core never does.
"""

from typing import Optional


class TrackerError(Exception):
    code = "ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(TrackerError):
    """Missing or malformed input, including non-positive or non-numeric amounts."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class NotFoundError(TrackerError):
    """Record is absent or owned by another user. The two cases are never told apart."""

    code = "NOT_FOUND"


class ConflictError(TrackerError):
    code = "CONFLICT"


class CorruptStoreError(TrackerError):
    code = "STORE_CORRUPT"


class StoreWriteError(TrackerError):
    code = "STORE_WRITE_FAILED"
