"""Remote path convention for synced collections.

Layout under the repository root::

    collections/{collection_id}/_collection.yaml
    collections/{collection_id}/_manifest.yaml
    collections/{collection_id}/{request_id}.yaml
    collections/{collection_id}/{folder_id}/.../_folder.yaml
    collections/{collection_id}/{folder_id}/.../{request_id}.yaml

Folder segments run from the outermost ancestor to the innermost.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Protocol

from ..providers.base import DirectoryItem

logger = logging.getLogger(__name__)

COLLECTIONS_PATH = "collections"
ROOT_DESCRIPTOR = "_collection.yaml"


class _FolderLike(Protocol):
    id: str
    parent_id: str | None


def collection_base_path(collection_id: str) -> str:
    return f"{COLLECTIONS_PATH}/{collection_id}"


def collection_root_path(collection_id: str) -> str:
    """Path of the collection's root descriptor file."""
    return f"{collection_base_path(collection_id)}/{ROOT_DESCRIPTOR}"


def request_remote_path(
    collection_id: str, folder_path: str, request_id: str
) -> str:
    """Path of one request file.

    Args:
        collection_id: Owning collection.
        folder_path: Output of ``build_folder_path`` (``""`` or ``"a/b/"``).
        request_id: The request.
    """
    return f"{collection_base_path(collection_id)}/{folder_path}{request_id}.yaml"


def yaml_files(items: Iterable[DirectoryItem]) -> list[DirectoryItem]:
    """Keep the ``.yaml`` file entries of a listing; the serializer owns nothing else."""
    return [
        item for item in items if item.kind == "file" and item.path.endswith(".yaml")
    ]


def group_collection_dirs(
    items: Iterable[DirectoryItem],
) -> dict[str, list[DirectoryItem]]:
    """Group a listing of ``collections/`` into per-collection entries.

    A directory counts as a collection only when it holds a root descriptor
    directly at ``collections/{id}/_collection.yaml``; descriptors deeper in
    the tree are ignored.  Insertion order follows the listing.

    Returns:
        ``{collection_id: [yaml files under collections/{id}/]}``.
    """
    items = list(items)
    roots: dict[str, list[DirectoryItem]] = {}
    for item in items:
        parts = item.path.split("/")
        if (
            item.kind == "file"
            and len(parts) == 3
            and parts[0] == COLLECTIONS_PATH
            and parts[2] == ROOT_DESCRIPTOR
        ):
            roots.setdefault(parts[1], [])

    for item in yaml_files(items):
        parts = item.path.split("/")
        if len(parts) >= 3 and parts[0] == COLLECTIONS_PATH and parts[1] in roots:
            roots[parts[1]].append(item)
    return roots


def build_folder_path(
    folder_id: str | None, folders_by_id: Mapping[str, _FolderLike]
) -> str:
    """Return the ``a/b/`` folder prefix for a request in *folder_id*.

    Walks parent pointers through the id-indexed lookup, stopping at a
    root, a missing id, or an id already visited.  The loop runs at most
    ``len(folders_by_id) + 1`` times, so cyclic parent chains terminate.
    """
    segments: list[str] = []
    visited: set[str] = set()
    current = folder_id

    for _ in range(len(folders_by_id) + 1):
        if current is None or current in visited:
            break
        folder = folders_by_id.get(current)
        if folder is None:
            break
        visited.add(current)
        segments.append(folder.id)
        current = folder.parent_id

    if current is not None and current in visited:
        logger.warning(
            "Folder parent chain starting at %s is cyclic; truncated", folder_id
        )
    return "".join(f"{segment}/" for segment in reversed(segments))
