"""
Exceptions raised by the sync audit core.

Per-record audit failures ("Missing", stage rejections) are data, not
exceptions. Everything here aborts the batch, run, or repair it occurs in.
"""

from typing import Optional


class SyncAuditError(Exception):
    """Base class for sync audit errors."""
    pass


class ValidationInputError(SyncAuditError):
    """Raised when an audit batch contains something that is not a Record."""
    pass


class StoreUnavailable(SyncAuditError):
    """Raised when the search index errors or returns a malformed envelope."""
    pass


class SyncUnavailable(SyncAuditError):
    """Raised when the replication pipeline does not allow syncing."""
    pass


class AlreadyRunning(SyncAuditError):
    """Raised when a replication drive is already in flight for a tenant."""
    pass


class DrainError(SyncAuditError):
    """
    Raised when a replication drive fails to start or a drain step errors.

    Attributes:
        code: Error code reported by the replication pipeline
    """

    def __init__(self, code: str, message: Optional[str] = None):
        self.code = code
        super().__init__(message or f"Sync errored with code: {code}")
