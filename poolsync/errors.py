"""Error taxonomy for a sync run."""
from typing import Any, Dict, Optional


class PoolSyncError(Exception):
    """Base class for all poolsync errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class FetchError(PoolSyncError):
    """The pool page could not be retrieved. Aborts the run."""

    def __init__(self, message: str, url: str, status_code: Optional[int] = None):
        super().__init__(message, {"url": url, "status_code": status_code})
        self.url = url
        self.status_code = status_code


class DecodeError(PoolSyncError):
    """The fetched payload does not have the expected campaign shape. Aborts the run."""


class PersistenceError(PoolSyncError):
    """A store write or read failed for a reason other than an existing key."""

    def __init__(self, message: str, batch: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.batch = batch
