"""Collection synchronization engine.

Keeps locally stored collections in step with a remote Git repository by
a file-level three-way merge: each remote path is compared on the local
side by content hash and on the remote side by remote id, both against
the file-state recorded at the last successful sync.

Modules:

- ``coordinator`` -- ``SyncCoordinator``: pull, push, single-file push,
  force resolution and remote deletion.
- ``state``       -- content hashing and file-state (de)serialization.
- ``merger``      -- ``plan_local_changes`` / ``apply_remote_state``.
- ``paths``       -- remote directory layout and folder path resolution.
- ``models``      -- ``FileState``, ``FileChange``, ``PushPlan``,
  ``SyncConflict``, ``SyncResult``.
- ``resolver``    -- ``resolve_conflict`` for keep-local / keep-remote.
- ``reporter``    -- human-readable and JSON result formatting.

Usage example
-------------
::

    from collection_sync.config import load_settings
    from collection_sync.serializer import YamlCollectionSerializer
    from collection_sync.store import CollectionRepository
    from collection_sync.sync import SyncCoordinator, format_sync_result

    store = CollectionRepository.load(Path("collections.json"))
    coordinator = SyncCoordinator.for_workspace(
        load_settings(), store, YamlCollectionSerializer(store)
    )
    result = await coordinator.pull()
    print(format_sync_result(result, "Pull"))
"""

from .coordinator import SyncCoordinator
from .models import (
    FileChange,
    FileState,
    PushPlan,
    SyncConflict,
    SyncResult,
)
from .reporter import format_sync_result, result_to_json
from .resolver import RESOLUTIONS, resolve_conflict

__all__ = [
    "FileChange",
    "FileState",
    "PushPlan",
    "RESOLUTIONS",
    "SyncConflict",
    "SyncCoordinator",
    "SyncResult",
    "format_sync_result",
    "resolve_conflict",
    "result_to_json",
]
