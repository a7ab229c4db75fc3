"""File-state tracking for synced collections.

A collection's file-state maps every remote path to a ``FileState``
recording the content hash and remote identifiers as of the last
successful sync.  It is the "base" of the three-way merge.  The store
persists it as JSON text in ``Collection.file_shas``; this module is the
only code that reads or writes that text.

Key design choices:

* **Content hashing** -- ``content_hash()`` is SHA-256 over the exact UTF-8
  bytes the serializer produced, so any edit, whitespace included, counts
  as a change and hashes written by older clients still match.
* **Legacy tolerance** -- stored text written by older clients may map a
  path straight to a SHA string, or use ``remote_sha``/``commit_sha`` keys;
  ``normalize_file_state()`` accepts all of them.
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Any, Iterable, Mapping

from ..providers.base import DirectoryItem, FileContent
from .models import FileState

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Content hashing
# ------------------------------------------------------------------


def content_hash(content: str) -> str:
    """SHA-256 hex digest of the UTF-8 encoding of *content*, unmodified."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


# ------------------------------------------------------------------
# Serialization
# ------------------------------------------------------------------


def normalize_file_state(raw: Mapping[str, Any]) -> dict[str, FileState]:
    """Coerce a decoded file-state mapping into ``FileState`` values.

    Accepts three shapes per path:

    - ``"sha"`` (oldest clients): the remote id only.
    - ``{"content_hash", "remote_sha", "commit_sha"}``.
    - ``{"content_hash", "remote_id", "secondary_id"}`` (current).

    Entries of any other type are dropped.
    """
    normalized: dict[str, FileState] = {}
    for path, value in raw.items():
        if isinstance(value, str):
            normalized[path] = FileState(remote_id=value)
        elif isinstance(value, dict):
            normalized[path] = FileState(
                content_hash=value.get("content_hash") or "",
                remote_id=value.get("remote_id", value.get("remote_sha")),
                secondary_id=value.get(
                    "secondary_id", value.get("commit_sha")
                ),
            )
        else:
            logger.debug("Dropping malformed file-state entry for %s", path)
    return normalized


def load_file_state(text: str | None) -> dict[str, FileState]:
    """Parse the stored JSON text; empty or missing text is an empty state."""
    if not text:
        return {}
    try:
        raw = json.loads(text)
    except json.JSONDecodeError:
        logger.warning("Stored file-state is not valid JSON, treating as empty")
        return {}
    if not isinstance(raw, dict):
        return {}
    return normalize_file_state(raw)


def dump_file_state(state: Mapping[str, FileState]) -> str:
    """Serialize *state* to the JSON text stored on the collection."""
    return json.dumps(
        {path: entry.model_dump() for path, entry in sorted(state.items())},
        sort_keys=True,
    )


# ------------------------------------------------------------------
# Builders and queries
# ------------------------------------------------------------------


def build_file_state_from_remote(
    files: Iterable[FileContent],
) -> dict[str, FileState]:
    """Build a fresh state from files fetched from the remote."""
    return {
        file.path: FileState(
            content_hash=content_hash(file.content),
            remote_id=file.remote_id,
            secondary_id=file.secondary_id,
        )
        for file in files
    }


def remote_file_ids(items: Iterable[DirectoryItem]) -> dict[str, str | None]:
    """Map each file path of a listing to its remote id; dirs are skipped."""
    return {item.path: item.remote_id for item in items if item.kind == "file"}


def has_remote_file_changes(
    stored: Mapping[str, FileState],
    remote_items: Iterable[DirectoryItem],
) -> bool:
    """Return True if the remote differs from the stored base.

    A difference is a file whose remote id changed, a file the base does
    not know, or a base path that is gone from the remote.
    """
    remote = remote_file_ids(remote_items)
    for path, remote_id in remote.items():
        entry = stored.get(path)
        if entry is None or entry.remote_id != remote_id:
            return True
    return any(path not in remote for path in stored)
