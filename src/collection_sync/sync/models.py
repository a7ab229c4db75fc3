"""Pydantic models for the collection sync engine.

Defines the data contracts shared across the sync modules:

- ``FileState``: base record for one remote path.
- ``FileChange``: classification of one path during a push.
- ``PushPlan``: what a push will upsert and delete.
- ``SyncConflict``: a collection that changed on both sides.
- ``SyncResult``: aggregate outcome of a batch operation.

``FileState``, ``SyncConflict`` and ``SyncResult`` are frozen.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class FileChange(str, Enum):
    """Classification of one path relative to the last synced base."""

    UNCHANGED = "unchanged"
    NEW = "new"
    LOCAL_CHANGED = "local_changed"
    REMOTE_CHANGED = "remote_changed"
    CONFLICT = "conflict"
    DELETED = "deleted"


class FileState(BaseModel):
    """State of one remote path as of the last successful sync.

    Attributes:
        content_hash: SHA-256 of the serialized content bytes.
        remote_id: Provider identifier of that content (blob SHA).
        secondary_id: Commit identifier, for providers that guard
            single-file updates with it.
    """

    content_hash: str = ""
    remote_id: str | None = None
    secondary_id: str | None = None

    model_config = {"frozen": True}


class PushPlan(BaseModel):
    """Outcome of classifying a collection's files for a push.

    Attributes:
        changes: Classification per remote path.
        upserts: Path to content for every path to write.
        deletes: Paths to remove in the same commit.
        conflicts: Paths changed both locally and remotely.
    """

    changes: dict[str, FileChange] = Field(default_factory=dict)
    upserts: dict[str, str] = Field(default_factory=dict)
    deletes: list[str] = Field(default_factory=list)
    conflicts: list[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """True when there is nothing to send to the remote."""
        return not self.upserts and not self.deletes


class SyncConflict(BaseModel):
    """A collection whose local and remote copies both changed.

    Attributes:
        collection_id: Id of the local collection.
        collection_name: Display name, for the resolution prompt.
        local_updated_at: When the local copy last changed.
        remote_updated_at: When the remote copy was last synced, if known.
    """

    collection_id: str
    collection_name: str
    local_updated_at: str | None = None
    remote_updated_at: str | None = None

    model_config = {"frozen": True}


class SyncResult(BaseModel):
    """Outcome of ``pull`` or ``push_all``.

    Attributes:
        success: False when any collection failed or nothing is configured.
        message: Human-readable summary.
        pulled: Collections imported or updated from the remote.
        pushed: Collections pushed to the remote.
        conflicts: Collections left untouched because both sides changed.
        errors: One ``"<collection>: <reason>"`` line per failure.
    """

    success: bool = True
    message: str = ""
    pulled: int = 0
    pushed: int = 0
    conflicts: list[SyncConflict] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}
