"""Three-way classification of a collection's files for a push.

Merging happens at file granularity: each remote path is compared on the
local side by content hash and on the remote side by remote id, both
against the last synced base.  File contents are never merged; a path
that changed on both sides is reported as a conflict.

The work is split in two so a push with nothing to send never touches
the network:

* ``plan_local_changes`` compares the freshly serialized files with the
  base only.
* ``apply_remote_state`` folds in the remote ids from one fresh listing.
"""

from __future__ import annotations

from typing import Mapping

from .models import FileChange, FileState, PushPlan
from .state import content_hash


def plan_local_changes(
    local_files: Mapping[str, str], base: Mapping[str, FileState]
) -> PushPlan:
    """Classify every path against the base, without any remote data.

    Args:
        local_files: Remote path to freshly serialized content.
        base: Stored file-state of the last successful sync.

    Returns:
        A plan whose upserts are the new and locally changed paths and
        whose deletes are the base paths no longer produced locally.
    """
    changes: dict[str, FileChange] = {}
    upserts: dict[str, str] = {}

    for path, content in local_files.items():
        entry = base.get(path)
        if entry is None:
            changes[path] = FileChange.NEW
        elif not entry.content_hash or entry.content_hash != content_hash(
            content
        ):
            # A legacy entry without a hash counts as changed.
            changes[path] = FileChange.LOCAL_CHANGED
        else:
            changes[path] = FileChange.UNCHANGED
            continue
        upserts[path] = content

    deletes = sorted(path for path in base if path not in local_files)
    for path in deletes:
        changes[path] = FileChange.DELETED

    return PushPlan(changes=changes, upserts=upserts, deletes=deletes)


def apply_remote_state(
    plan: PushPlan,
    base: Mapping[str, FileState],
    remote_ids: Mapping[str, str | None],
) -> PushPlan:
    """Refine *plan* with the remote's current ids.

    A path is conflicted when it changed (or was deleted) locally and its
    remote id differs from a known base id.  Deletions of paths already
    gone from the remote are dropped.  Unchanged paths whose remote id
    moved are marked ``REMOTE_CHANGED`` and left alone.

    Args:
        plan: Output of ``plan_local_changes``.
        base: The same base the plan was built from.
        remote_ids: Remote path to current remote id, files only.

    Returns:
        A new plan; ``conflicts`` is sorted and non-empty on conflict.
    """
    changes = dict(plan.changes)
    conflicts: list[str] = []

    def remote_moved(path: str) -> bool:
        entry = base.get(path)
        if entry is None or entry.remote_id is None:
            return False
        current = remote_ids.get(path)
        return current is not None and current != entry.remote_id

    for path, change in plan.changes.items():
        if change in (FileChange.LOCAL_CHANGED, FileChange.DELETED):
            if remote_moved(path):
                changes[path] = FileChange.CONFLICT
                conflicts.append(path)
        elif change is FileChange.UNCHANGED and remote_moved(path):
            changes[path] = FileChange.REMOTE_CHANGED

    upserts = {
        path: content
        for path, content in plan.upserts.items()
        if changes[path] is not FileChange.CONFLICT
    }
    deletes = [
        path
        for path in plan.deletes
        if changes[path] is FileChange.DELETED and path in remote_ids
    ]

    return PushPlan(
        changes=changes,
        upserts=upserts,
        deletes=deletes,
        conflicts=sorted(conflicts),
    )
