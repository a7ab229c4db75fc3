"""Exception hierarchy for the collection sync engine.

Not-found conditions are never raised: providers model them as ``None``
or an empty list.  Everything else surfaces as a ``SyncError`` subclass:

- ``NotConfiguredError``: no remote provider could be resolved.
- ``RemoteTransportError``: connection failure or timeout.
- ``RemoteProtocolError``: unexpected non-2xx response.
- ``SyncConflictError``: the same path changed on both sides, or an
  optimistic-concurrency precondition no longer matched the remote.
- ``StatePersistenceError``: the remote accepted a change but the local
  file-state could not be written back.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for all sync engine errors."""


class NotConfiguredError(SyncError):
    """Raised when no remote provider is configured for the scope."""

    def __init__(self, message: str = "Remote not configured") -> None:
        super().__init__(message)


class RemoteTransportError(SyncError):
    """Network-level failure (connection refused, DNS, timeout)."""


class RemoteProtocolError(SyncError):
    """The remote answered with an unexpected HTTP status.

    Attributes:
        status_code: HTTP status returned by the remote.
    """

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        super().__init__(f"{message} (HTTP {status_code})")


class SyncConflictError(SyncError):
    """Version conflict on one or more remote paths.

    Attributes:
        paths: Every conflicted remote path.
    """

    def __init__(
        self, paths: list[str], message: str | None = None
    ) -> None:
        self.paths = list(paths)
        super().__init__(
            message or f"Sync conflict on files: {', '.join(self.paths)}"
        )


class StatePersistenceError(SyncError):
    """Local file-state write failed after a successful remote commit.

    Carries the computed state so a caller can retry persisting it.
    """

    def __init__(self, collection_id: str, file_state: str) -> None:
        self.collection_id = collection_id
        self.file_state = file_state
        super().__init__(
            f"Remote updated but local sync state for collection "
            f"'{collection_id}' could not be saved"
        )
