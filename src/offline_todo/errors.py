# src/offline_todo/errors.py

"""
Error taxonomy for the data layer.

Every failure here is recoverable by retrying the user action that triggered it.
Connectivity failures are usually absorbed into ConnectivityState instead of raised.
"""

from __future__ import annotations


class TodoError(Exception):
    """Base class for all data-layer errors."""


class StorageFailure(TodoError):
    """Local persistence is unavailable or a write was rejected."""


class NotConfigured(TodoError):
    """No remote endpoint is configured."""


class NetworkFailure(TodoError):
    """A probe or sync request errored or timed out."""


class ProtocolMismatch(TodoError):
    """The remote answered with something we do not understand."""


class RemoteRejected(TodoError):
    """The remote answered with a non-success status."""

    def __init__(self, message: str, *, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class ValidationFailure(TodoError):
    """A record or import payload failed validation."""


class SyncFailure(TodoError):
    """
    A sync run did not complete.

    `inserted`/`expected` are set when the local collection was already cleared
    and only part of the merged set could be written back.
    """

    def __init__(
        self,
        reason: str,
        *,
        collection: str | None = None,
        inserted: int | None = None,
        expected: int | None = None,
    ) -> None:
        super().__init__(reason)
        self.reason = reason
        self.collection = collection
        self.inserted = inserted
        self.expected = expected

    @property
    def partial(self) -> bool:
        return self.inserted is not None


def friendly_error_message(err: Exception) -> str:
    """Map a data-layer error to a short user-facing message."""
    if isinstance(err, SyncFailure):
        cause = err.__cause__
        if isinstance(cause, NotConfigured):
            return "Sync is not configured. Set an API URL with /api <url> or TODO_API_URL."
        if err.partial:
            return (
                f"Sync of {err.collection} failed after clearing local data: "
                f"restored {err.inserted}/{err.expected} items. Run /sync again."
            )
        return f"Sync failed: {err.reason}. Try again."
    if isinstance(err, StorageFailure):
        return f"Local storage error: {err}. Try again."
    if isinstance(err, ValidationFailure):
        return f"Invalid data: {err}"
    if isinstance(err, NotConfigured):
        return "Remote backend is not configured."
    if isinstance(err, NetworkFailure):
        return "Network is unreachable. Your changes are kept locally."
    if isinstance(err, ProtocolMismatch):
        return "Remote backend answered unexpectedly (incompatible server?)."
    return str(err).strip() or "Unexpected error."
