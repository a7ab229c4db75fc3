"""Pydantic models for locally stored collections, folders and requests.

All models are frozen; the repository replaces instances with
``model_copy(update=...)`` instead of mutating them.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


def utc_now() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


class Collection(BaseModel):
    """A named tree of API requests; the unit of synchronization.

    Attributes:
        id: Collection id, also its remote directory name.
        workspace_id: Owning workspace, or None for the global scope.
        name: Display name.
        description: Optional free text.
        order: Position among the workspace's collections.
        variables: ``[{key, value, enabled}]`` entries.
        remote_sha: Remote id of the root descriptor as of the last sync.
        remote_synced_at: ISO 8601 timestamp of the last successful sync.
        is_dirty: True when local changes have not been pushed.
        sync_enabled: Whether batch operations include this collection.
        file_shas: Serialized file-state (JSON text), owned by the sync
            engine.  Reflects the last successfully synced state only.
        created_at: ISO 8601 creation time.
        updated_at: ISO 8601 time of the last local content change.
    """

    id: str
    workspace_id: str | None = None
    name: str
    description: str | None = None
    order: int = 0
    variables: list[dict[str, Any]] = Field(default_factory=list)
    remote_sha: str | None = None
    remote_synced_at: str | None = None
    is_dirty: bool = False
    sync_enabled: bool = False
    file_shas: str | None = None
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)

    model_config = {"frozen": True}


class Folder(BaseModel):
    """A folder inside a collection; ``parent_id`` is None at the root."""

    id: str
    collection_id: str
    parent_id: str | None = None
    name: str
    order: int = 0

    model_config = {"frozen": True}


class Request(BaseModel):
    """One stored API request.

    ``headers`` and ``query_params`` hold ``[{key, value, enabled}]``
    entries.  ``body`` is kept as text whatever its ``body_type``.
    """

    id: str
    collection_id: str
    folder_id: str | None = None
    name: str
    method: str = "GET"
    url: str = ""
    headers: list[dict[str, Any]] = Field(default_factory=list)
    query_params: list[dict[str, Any]] = Field(default_factory=list)
    body: str | None = None
    body_type: str = "none"
    auth: dict[str, Any] | None = None
    scripts: dict[str, Any] | None = None
    order: int = 0

    model_config = {"frozen": True}
