"""Interfaces the sync engine needs from its local collaborators."""

from __future__ import annotations

from typing import Any, Iterable, Protocol, runtime_checkable

from ..providers.base import FileContent
from .models import Collection, Folder, Request


@runtime_checkable
class CollectionStore(Protocol):
    """Read collections and write back sync metadata.

    ``update`` accepts partial fields such as ``remote_sha``,
    ``file_shas``, ``remote_synced_at``, ``is_dirty`` and
    ``sync_enabled``, and returns the updated collection.
    """

    def find_by_id(self, collection_id: str) -> Collection | None: ...

    def update(self, collection_id: str, **fields: Any) -> Collection: ...

    def list_collections(
        self, workspace_id: str | None = None
    ) -> list[Collection]: ...

    def get_request(self, request_id: str) -> Request | None: ...

    def list_folders(self, collection_id: str) -> list[Folder]: ...

    def list_requests(self, collection_id: str) -> list[Request]: ...


class ContentSerializer(Protocol):
    """Translate a collection to and from a ``{path: text}`` file map.

    Paths returned by ``serialize_to_directory`` are relative to the
    remote ``collections/`` directory.
    """

    def serialize_to_directory(
        self, collection: Collection, sanitize: bool = False
    ) -> dict[str, str]: ...

    def serialize_request(
        self, request: Request, sanitize: bool = False
    ) -> str: ...

    def import_from_directory(
        self,
        files: Iterable[FileContent],
        existing_collection_id: str | None = None,
        workspace_id: str | None = None,
    ) -> str: ...
