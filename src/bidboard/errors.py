"""Exception hierarchy shared by the bidboard engine."""
from __future__ import annotations


class BidboardError(Exception):
    """Base class for all engine errors."""


class ValidationError(BidboardError, ValueError):
    """Input rejected before any state was touched."""


class StorageError(BidboardError):
    """The durable snapshot could not be read or written."""


class RemoteError(BidboardError):
    """A call to the remote catalog failed."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(BidboardError, LookupError):
    """An operation referenced an id absent from the addressed collection."""


class SyncInProgressError(BidboardError):
    """A reconciliation pass already holds the cache."""


__all__ = [
    "BidboardError",
    "ValidationError",
    "StorageError",
    "RemoteError",
    "NotFoundError",
    "SyncInProgressError",
]
