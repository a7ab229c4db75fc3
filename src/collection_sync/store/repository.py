"""In-memory collection store with JSON file persistence.

Key design choices:

* **Atomic writes** -- ``save()`` writes to a temp file then calls
  ``os.replace()`` so readers never see partial data.
* **Immutable rows** -- every row is a frozen model; ``update()`` swaps in
  a copy, so a ``Collection`` handed to a caller never changes under it.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Iterable

from .models import Collection, Folder, Request, utc_now

logger = logging.getLogger(__name__)

STORE_VERSION = 1


class CollectionRepository:
    """Collections, folders and requests held in dicts keyed by id."""

    def __init__(self) -> None:
        self._collections: dict[str, Collection] = {}
        self._folders: dict[str, Folder] = {}
        self._requests: dict[str, Request] = {}

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def add_collection(self, collection: Collection) -> Collection:
        self._collections[collection.id] = collection
        return collection

    def find_by_id(self, collection_id: str) -> Collection | None:
        return self._collections.get(collection_id)

    def update(self, collection_id: str, **fields: Any) -> Collection:
        """Replace the named fields of a collection.

        Raises:
            KeyError: If the collection does not exist.
        """
        current = self._collections.get(collection_id)
        if current is None:
            raise KeyError(f"Collection not found: {collection_id}")
        updated = current.model_copy(update=fields)
        self._collections[collection_id] = updated
        return updated

    def mark_dirty(self, collection_id: str) -> Collection:
        """Flag a local content change."""
        return self.update(
            collection_id, is_dirty=True, updated_at=utc_now()
        )

    def list_collections(
        self, workspace_id: str | None = None
    ) -> list[Collection]:
        """Collections in *workspace_id* (None is the global scope), by order."""
        return sorted(
            (
                c
                for c in self._collections.values()
                if c.workspace_id == workspace_id
            ),
            key=lambda c: (c.order, c.name),
        )

    def next_order(self) -> int:
        return max((c.order for c in self._collections.values()), default=0) + 1

    def delete_collection(self, collection_id: str) -> bool:
        """Remove a collection with its folders and requests."""
        if self._collections.pop(collection_id, None) is None:
            return False
        self._drop_contents(collection_id)
        return True

    # ------------------------------------------------------------------
    # Folders and requests
    # ------------------------------------------------------------------

    def add_folder(self, folder: Folder) -> Folder:
        self._folders[folder.id] = folder
        return folder

    def add_request(self, request: Request) -> Request:
        self._requests[request.id] = request
        return request

    def get_request(self, request_id: str) -> Request | None:
        return self._requests.get(request_id)

    def list_folders(self, collection_id: str) -> list[Folder]:
        return sorted(
            (f for f in self._folders.values() if f.collection_id == collection_id),
            key=lambda f: f.order,
        )

    def list_requests(self, collection_id: str) -> list[Request]:
        return sorted(
            (r for r in self._requests.values() if r.collection_id == collection_id),
            key=lambda r: r.order,
        )

    def replace_contents(
        self,
        collection_id: str,
        folders: Iterable[Folder],
        requests: Iterable[Request],
    ) -> None:
        """Drop every folder and request of a collection, then add these."""
        self._drop_contents(collection_id)
        for folder in folders:
            self.add_folder(folder)
        for request in requests:
            self.add_request(request)

    def _drop_contents(self, collection_id: str) -> None:
        self._folders = {
            k: f for k, f in self._folders.items() if f.collection_id != collection_id
        }
        self._requests = {
            k: r
            for k, r in self._requests.items()
            if r.collection_id != collection_id
        }

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_dict(self) -> dict:
        return {
            "version": STORE_VERSION,
            "collections": [c.model_dump() for c in self._collections.values()],
            "folders": [f.model_dump() for f in self._folders.values()],
            "requests": [r.model_dump() for r in self._requests.values()],
        }

    @classmethod
    def from_dict(cls, data: dict) -> CollectionRepository:
        repo = cls()
        for raw in data.get("collections", []):
            repo.add_collection(Collection(**raw))
        for raw in data.get("folders", []):
            repo.add_folder(Folder(**raw))
        for raw in data.get("requests", []):
            repo.add_request(Request(**raw))
        return repo

    def save(self, path: Path) -> None:
        """Persist the store to *path* atomically.

        Writes to a temporary file in the same directory then atomically
        replaces the target.  Creates the parent directory if needed.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self.to_dict(), fh, indent=2)
            os.replace(tmp_path, path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        logger.debug("Saved %d collection(s) to %s", len(self._collections), path)

    @classmethod
    def load(cls, path: Path) -> CollectionRepository:
        """Load a store saved by ``save``; a missing file gives an empty store."""
        if not path.exists():
            logger.debug("No store at %s, starting empty", path)
            return cls()
        with open(path, encoding="utf-8") as fh:
            return cls.from_dict(json.load(fh))
