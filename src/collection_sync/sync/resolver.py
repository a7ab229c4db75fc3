"""Conflict resolution entry point.

A collection in the conflicted state is only ever resolved by an explicit
user choice:

- ``keep-local``: overwrite the remote with the local collection
  (``SyncCoordinator.force_keep_local``).
- ``keep-remote``: overwrite the local collection with the remote one
  (``SyncCoordinator.force_keep_remote``).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..store.models import Collection
from .models import SyncResult

if TYPE_CHECKING:
    from .coordinator import SyncCoordinator

logger = logging.getLogger(__name__)

RESOLUTIONS = frozenset({"keep-local", "keep-remote"})


def validate_resolution(resolution: str) -> tuple[bool, str]:
    """Check a resolution name.

    Returns:
        Tuple of (is_valid, error_message).
    """
    if resolution in RESOLUTIONS:
        return (True, "")
    return (
        False,
        f"Unknown resolution '{resolution}'. "
        f"Valid options: {', '.join(sorted(RESOLUTIONS))}",
    )


async def resolve_conflict(
    coordinator: SyncCoordinator, collection: Collection, resolution: str
) -> SyncResult:
    """Resolve a conflicted collection with the chosen strategy.

    Args:
        coordinator: Coordinator scoped to the collection's workspace.
        collection: The conflicted collection.
        resolution: ``"keep-local"`` or ``"keep-remote"``.

    Returns:
        A ``SyncResult`` counting one push or pull on success; failures are
        folded into an unsuccessful result.

    Raises:
        ValueError: If *resolution* is not a known strategy.
    """
    ok, reason = validate_resolution(resolution)
    if not ok:
        raise ValueError(reason)

    try:
        if resolution == "keep-local":
            await coordinator.force_keep_local(collection)
        else:
            await coordinator.force_keep_remote(collection)
    except Exception as exc:
        logger.error(
            "Resolving %s with %s failed: %s", collection.id, resolution, exc
        )
        return SyncResult(
            success=False,
            message=f"Failed to resolve '{collection.name}': {exc}",
            errors=[f"{collection.name}: {exc}"],
        )

    if resolution == "keep-local":
        return SyncResult(
            message=f"Kept local version of '{collection.name}'", pushed=1
        )
    return SyncResult(
        message=f"Kept remote version of '{collection.name}'", pulled=1
    )
