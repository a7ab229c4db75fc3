"""Sync coordinator: pull, push and conflict resolution for collections.

The ``SyncCoordinator`` ties together the remote provider, the collection
store, the content serializer and the session log.  Per collection it
decides whether to pull, push or report a conflict using a file-level
three-way merge over content hashes and remote ids.

Guarantees:

* A push sends every remote mutation for a collection in one atomic
  ``commit_multiple_files`` call, or nothing at all.
* File-state is written back only after the remote accepted the change.
* A push with nothing to send makes no provider call.
* Batch operations (``pull``, ``push_all``) isolate failures per
  collection and fold them into the ``SyncResult``.

Callers must not run two operations on the same collection concurrently;
there is no internal locking.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

from ..config_schema import UnifiedConfig, resolve_provider_config
from ..core.async_utils import run_with_timeout
from ..exceptions import (
    NotConfiguredError,
    StatePersistenceError,
    SyncConflictError,
    SyncError,
)
from ..providers import RemoteProvider, create_provider
from ..providers.base import DirectoryItem, FileContent
from ..session_log import SessionLog
from ..store.base import CollectionStore, ContentSerializer
from ..store.models import Collection, utc_now
from .merger import apply_remote_state, plan_local_changes
from .models import FileState, PushPlan, SyncConflict, SyncResult
from .paths import (
    COLLECTIONS_PATH,
    build_folder_path,
    collection_base_path,
    collection_root_path,
    group_collection_dirs,
    request_remote_path,
    yaml_files,
)
from .state import (
    build_file_state_from_remote,
    content_hash,
    dump_file_state,
    has_remote_file_changes,
    load_file_state,
    remote_file_ids,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def summarize(
    verb: str, count: int, conflicts: list[SyncConflict], errors: list[str]
) -> str:
    """Build the one-line message of a batch ``SyncResult``."""
    if errors:
        return f"Failed to process {len(errors)} collection(s): " + "; ".join(
            errors
        )
    if count or conflicts:
        message = f"{verb} {count} collection(s)"
        if conflicts:
            message += f", {len(conflicts)} conflict(s)"
        return message
    return "Everything up to date"


class SyncCoordinator:
    """Synchronize the collections of one workspace with a remote repository.

    Args:
        provider: Remote adapter, or ``None`` when no remote is configured.
        store: Collection store; the coordinator is the only writer of
            ``file_shas``.
        serializer: Translates collections to and from file maps.
        session_log: Optional sink for user-visible sync events.
        workspace_id: Scope for batch operations and imports.
        operation_timeout: Optional deadline in seconds for each provider
            call, on top of the per-request HTTP timeout.
    """

    def __init__(
        self,
        provider: RemoteProvider | None,
        store: CollectionStore,
        serializer: ContentSerializer,
        session_log: SessionLog | None = None,
        workspace_id: str | None = None,
        operation_timeout: float | None = None,
    ) -> None:
        self.provider = provider
        self.store = store
        self.serializer = serializer
        self.session_log = session_log
        self.workspace_id = workspace_id
        self.operation_timeout = operation_timeout

    @classmethod
    def for_workspace(
        cls,
        config: UnifiedConfig,
        store: CollectionStore,
        serializer: ContentSerializer,
        session_log: SessionLog | None = None,
        workspace_id: str | None = None,
    ) -> SyncCoordinator:
        """Build a coordinator with the provider resolved for *workspace_id*."""
        provider_config = resolve_provider_config(config, workspace_id)
        provider = create_provider(provider_config) if provider_config else None
        if provider is None:
            logger.debug("No remote configured for workspace %s", workspace_id)
        return cls(
            provider,
            store,
            serializer,
            session_log=session_log,
            workspace_id=workspace_id,
            operation_timeout=config.sync.operation_timeout,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def is_configured(self) -> bool:
        return self.provider is not None

    def _require_provider(self) -> RemoteProvider:
        if self.provider is None:
            raise NotConfiguredError()
        return self.provider

    async def _call(self, func: Callable[..., T], *args: Any) -> T:
        """Run one blocking provider call in a worker thread."""
        return await run_with_timeout(
            func, *args, timeout=self.operation_timeout
        )

    def _log(
        self, type: str, target: str, message: str, success: bool = True
    ) -> None:
        if self.session_log is not None:
            self.session_log.log_sync(type, target, message, success)

    def _persist(
        self, collection_id: str, file_state: dict[str, FileState], **fields: Any
    ) -> Collection:
        """Write sync metadata after a remote success.

        The identical update is attempted twice; if both fail, the computed
        state travels with ``StatePersistenceError`` so nothing is lost.
        """
        serialized = dump_file_state(file_state)
        fields = {
            **fields,
            "file_shas": serialized,
            "remote_synced_at": utc_now(),
        }
        try:
            return self.store.update(collection_id, **fields)
        except Exception as exc:
            logger.warning(
                "Saving sync state for %s failed (%s), retrying once",
                collection_id,
                exc,
            )
        try:
            return self.store.update(collection_id, **fields)
        except Exception as exc:
            logger.error(
                "Remote is updated but sync state for %s could not be saved: %s",
                collection_id,
                exc,
            )
            raise StatePersistenceError(collection_id, serialized) from exc

    def _mark_dirty(self, collection: Collection) -> None:
        if not collection.is_dirty:
            self.store.update(collection.id, is_dirty=True)

    async def _list_collection(
        self, provider: RemoteProvider, collection_id: str
    ) -> list[DirectoryItem]:
        items = await self._call(
            provider.list_directory_recursive,
            collection_base_path(collection_id),
        )
        return yaml_files(items)

    async def _fetch_collection_files(
        self, provider: RemoteProvider, collection_id: str
    ) -> tuple[list[FileContent], FileContent]:
        """Fetch every file of a remote collection and its root descriptor.

        Raises:
            SyncError: If the directory is empty or has no root descriptor.
        """
        base_path = collection_base_path(collection_id)
        files = await self._call(provider.get_directory_tree, base_path)
        root_path = collection_root_path(collection_id)
        root = next((f for f in files if f.path == root_path), None)
        if root is None:
            raise SyncError(f"Remote directory {base_path} not found or empty")
        return files, root

    def _import(
        self,
        files: list[FileContent],
        root: FileContent,
        existing_id: str | None,
        **fields: Any,
    ) -> Collection:
        collection_id = self.serializer.import_from_directory(
            files, existing_id, self.workspace_id
        )
        return self._persist(
            collection_id,
            build_file_state_from_remote(files),
            remote_sha=root.remote_id,
            is_dirty=False,
            **fields,
        )

    def _serialize(
        self, collection: Collection, sanitize: bool
    ) -> dict[str, str]:
        """Serialize to full remote paths (``collections/...``)."""
        return {
            f"{COLLECTIONS_PATH}/{path}": content
            for path, content in self.serializer.serialize_to_directory(
                collection, sanitize
            ).items()
        }

    async def _state_after_commit(
        self,
        provider: RemoteProvider,
        collection_id: str,
        local_files: dict[str, str],
        upserted: set[str],
        base: dict[str, FileState],
        commit_id: str,
    ) -> dict[str, FileState]:
        """Compute the file-state the remote now holds for *local_files*.

        Upserted paths get their predicted remote id; when the provider
        cannot predict ids, one confirmatory listing supplies them.  Other
        paths keep their base entry.
        """
        predicted = {
            path: provider.predict_remote_id(local_files[path])
            for path in upserted
        }
        if any(remote_id is None for remote_id in predicted.values()):
            listed = remote_file_ids(
                await self._list_collection(provider, collection_id)
            )
            predicted = {
                path: remote_id or listed.get(path)
                for path, remote_id in predicted.items()
            }

        secondary = commit_id if provider.uses_commit_precondition else None
        state: dict[str, FileState] = {}
        for path, content in local_files.items():
            if path in upserted:
                state[path] = FileState(
                    content_hash=content_hash(content),
                    remote_id=predicted[path],
                    secondary_id=secondary,
                )
            else:
                state[path] = base[path]
        return state

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    async def test_connection(self) -> bool:
        """Return True when the configured remote is reachable."""
        if self.provider is None:
            return False
        try:
            return await self._call(self.provider.test_connection)
        except SyncError as exc:
            logger.warning("Connection test failed: %s", exc)
            return False

    # ------------------------------------------------------------------
    # Pull
    # ------------------------------------------------------------------

    async def pull(self) -> SyncResult:
        """Import new remote collections and update unchanged local ones.

        One recursive listing of ``collections/`` drives change detection;
        file contents are fetched only for collections that are imported.
        A collection changed on both sides is reported as a conflict and
        left untouched.
        """
        if self.provider is None:
            return SyncResult(success=False, message="Remote not configured")
        provider = self.provider

        try:
            items = await self._call(
                provider.list_directory_recursive, COLLECTIONS_PATH
            )
        except SyncError as exc:
            logger.error("Failed to list remote collections: %s", exc)
            return SyncResult(
                success=False,
                message=f"Failed to list remote directories: {exc}",
            )

        pulled = 0
        conflicts: list[SyncConflict] = []
        errors: list[str] = []

        for collection_id, remote_items in group_collection_dirs(items).items():
            try:
                outcome = await self._pull_one(
                    provider, collection_id, remote_items
                )
            except Exception as exc:
                logger.error("Error pulling collection %s: %s", collection_id, exc)
                self._log("pull", collection_id, f"Failed: {exc}", success=False)
                errors.append(f"{collection_id}: {exc}")
                continue
            if isinstance(outcome, SyncConflict):
                conflicts.append(outcome)
            elif outcome:
                pulled += 1

        return SyncResult(
            success=not errors,
            message=summarize("Pulled", pulled, conflicts, errors),
            pulled=pulled,
            conflicts=conflicts,
            errors=errors,
        )

    async def _pull_one(
        self,
        provider: RemoteProvider,
        collection_id: str,
        remote_items: list[DirectoryItem],
    ) -> SyncConflict | bool:
        local = self.store.find_by_id(collection_id)

        if local is None:
            files, root = await self._fetch_collection_files(
                provider, collection_id
            )
            self._import(files, root, None, sync_enabled=True)
            self._log("pull", root.path, "New collection imported from remote")
            return True

        stored = load_file_state(local.file_shas)
        if not has_remote_file_changes(stored, remote_items):
            logger.debug("Collection %s unchanged on remote", collection_id)
            return False

        if local.is_dirty:
            self._log(
                "pull",
                local.name,
                "Conflict detected - both sides changed",
                success=False,
            )
            return SyncConflict(
                collection_id=local.id,
                collection_name=local.name,
                local_updated_at=local.updated_at,
                remote_updated_at=local.remote_synced_at,
            )

        files, root = await self._fetch_collection_files(provider, collection_id)
        self._import(files, root, local.id)
        self._log("pull", local.name, "Updated from remote")
        return True

    async def pull_single_collection(self, collection: Collection) -> bool:
        """Pull one collection.

        Returns:
            True if the collection was re-imported, False when it is absent
            remotely or unchanged.

        Raises:
            NotConfiguredError: If no remote is configured.
            SyncConflictError: If the remote changed and the collection is
                dirty.
        """
        provider = self._require_provider()
        remote_items = await self._list_collection(provider, collection.id)
        if not remote_items:
            return False

        stored = load_file_state(collection.file_shas)
        if not has_remote_file_changes(stored, remote_items):
            return False

        if collection.is_dirty:
            raise SyncConflictError(
                [collection_base_path(collection.id)],
                f"Conflict: local changes exist for '{collection.name}' "
                "and remote has been updated",
            )

        files, root = await self._fetch_collection_files(provider, collection.id)
        self._import(files, root, collection.id)
        self._log("pull", collection.name, "Pulled from remote successfully")
        return True

    # ------------------------------------------------------------------
    # Push
    # ------------------------------------------------------------------

    async def push_collection(
        self, collection: Collection, sanitize: bool = False
    ) -> None:
        """Push local changes of one collection as a single atomic commit.

        Raises:
            NotConfiguredError: If no remote is configured.
            SyncConflictError: If any path changed both locally and
                remotely; nothing is written in that case.
            StatePersistenceError: If the remote accepted the commit but
                the new file-state could not be saved.
        """
        provider = self._require_provider()
        local_files = self._serialize(collection, sanitize)
        base = load_file_state(collection.file_shas)

        plan = plan_local_changes(local_files, base)
        if plan.is_empty:
            if collection.is_dirty:
                self.store.update(collection.id, is_dirty=False)
            logger.debug("Collection %s has no local changes", collection.id)
            return

        remote_items = await self._list_collection(provider, collection.id)
        plan = apply_remote_state(plan, base, remote_file_ids(remote_items))
        if plan.conflicts:
            self._log(
                "push",
                collection.name,
                f"Conflict on {len(plan.conflicts)} file(s)",
                success=False,
            )
            raise SyncConflictError(plan.conflicts)

        await self._commit_plan(provider, collection, local_files, base, plan)
        self._log("push", collection.name, "Pushed to remote successfully")

    async def _commit_plan(
        self,
        provider: RemoteProvider,
        collection: Collection,
        local_files: dict[str, str],
        base: dict[str, FileState],
        plan: PushPlan,
    ) -> None:
        commit_id = ""
        if not plan.is_empty:
            commit_id = await self._call(
                provider.commit_multiple_files,
                plan.upserts,
                f"Sync: {collection.name}",
                plan.deletes,
            )
        else:
            logger.debug(
                "Deletions for %s already applied on remote", collection.id
            )

        state = await self._state_after_commit(
            provider,
            collection.id,
            local_files,
            set(plan.upserts),
            base,
            commit_id,
        )
        root = state.get(collection_root_path(collection.id))
        self._persist(
            collection.id,
            state,
            remote_sha=root.remote_id if root else None,
            is_dirty=False,
            sync_enabled=True,
        )

    async def push_all(self) -> SyncResult:
        """Push every sync-enabled collection that is dirty or never synced."""
        if self.provider is None:
            return SyncResult(success=False, message="Remote not configured")

        candidates = [
            c
            for c in self.store.list_collections(self.workspace_id)
            if c.sync_enabled and (c.is_dirty or c.remote_sha is None)
        ]

        pushed = 0
        conflicts: list[SyncConflict] = []
        errors: list[str] = []
        for collection in candidates:
            try:
                await self.push_collection(collection)
            except SyncConflictError:
                conflicts.append(
                    SyncConflict(
                        collection_id=collection.id,
                        collection_name=collection.name,
                        local_updated_at=collection.updated_at,
                        remote_updated_at=collection.remote_synced_at,
                    )
                )
                continue
            except Exception as exc:
                logger.error(
                    "Error pushing collection %s: %s", collection.id, exc
                )
                self._log("push", collection.name, f"Failed: {exc}", success=False)
                errors.append(f"{collection.name}: {exc}")
                continue
            pushed += 1

        return SyncResult(
            success=not errors,
            message=summarize("Pushed", pushed, conflicts, errors),
            pushed=pushed,
            conflicts=conflicts,
            errors=errors,
        )

    async def push_single_request(
        self,
        collection: Collection,
        request_id: str,
        sanitize: bool = False,
    ) -> bool:
        """Write one request file directly, guarded by its last-known id.

        Only for collections that have been synced before.  On any remote
        failure the collection is marked dirty so the next full push
        reconciles it.  Success updates only this path's file-state and
        leaves the dirty flag alone, since folders and manifests are not
        written by this path.

        Returns:
            True if the file was written, False otherwise (never raises on
            a version conflict).
        """
        provider = self.provider
        if provider is None:
            return False

        request = self.store.get_request(request_id)
        if request is None or request.collection_id != collection.id:
            logger.debug("Request %s not found in %s", request_id, collection.id)
            return False

        if not collection.remote_sha:
            self._mark_dirty(collection)
            return False

        folders = {f.id: f for f in self.store.list_folders(collection.id)}
        path = request_remote_path(
            collection.id, build_folder_path(request.folder_id, folders), request.id
        )
        content = self.serializer.serialize_request(request, sanitize)
        state = load_file_state(collection.file_shas)
        entry = state.get(path)

        try:
            if entry is not None and entry.remote_id:
                precondition = entry.remote_id
                if provider.uses_commit_precondition and entry.secondary_id:
                    precondition = entry.secondary_id
                remote_id = await self._call(
                    provider.update_file,
                    path,
                    content,
                    precondition,
                    f"Update: {request.name}",
                )
            else:
                remote_id = await self._call(
                    provider.create_file, path, content, f"Create: {request.name}"
                )

            secondary_id = None
            if provider.uses_commit_precondition:
                fresh = await self._call(provider.get_file, path)
                if fresh is not None:
                    remote_id = fresh.remote_id or remote_id
                    secondary_id = fresh.secondary_id
        except SyncConflictError:
            logger.info(
                "Single-file push of %s conflicted; full push needed", path
            )
            self._mark_dirty(collection)
            return False
        except SyncError as exc:
            logger.warning(
                "Single-file push failed for request %s: %s", request_id, exc
            )
            self._mark_dirty(collection)
            return False

        state[path] = FileState(
            content_hash=content_hash(content),
            remote_id=remote_id or None,
            secondary_id=secondary_id,
        )
        self._persist(collection.id, state)
        self._log("push", request.name, f"Pushed to {collection.name}")
        return True

    # ------------------------------------------------------------------
    # Conflict resolution
    # ------------------------------------------------------------------

    async def force_keep_local(self, collection: Collection) -> None:
        """Overwrite the remote with the full local state.

        Every serialized file is written and every other remote file of
        the collection is deleted, in one commit.  No merge checks run.
        """
        provider = self._require_provider()
        local_files = self._serialize(collection, sanitize=False)

        remote_items = await self._list_collection(provider, collection.id)
        deletes = sorted(
            item.path for item in remote_items if item.path not in local_files
        )
        commit_id = await self._call(
            provider.commit_multiple_files,
            local_files,
            f"Force sync (keep local): {collection.name}",
            deletes,
        )

        state = await self._state_after_commit(
            provider, collection.id, local_files, set(local_files), {}, commit_id
        )
        root = state.get(collection_root_path(collection.id))
        self._persist(
            collection.id,
            state,
            remote_sha=root.remote_id if root else None,
            is_dirty=False,
        )
        self._log("push", collection.name, "Force pushed (keep local)")

    async def force_keep_remote(self, collection: Collection) -> None:
        """Overwrite the local collection with the full remote state.

        Raises:
            SyncError: If the remote collection is missing or empty.
        """
        provider = self._require_provider()
        files, root = await self._fetch_collection_files(provider, collection.id)
        self._import(files, root, collection.id)
        self._log("pull", collection.name, "Force pulled (keep remote)")

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    async def delete_remote_collection(self, collection: Collection) -> None:
        """Delete the collection's remote directory; failures are only logged."""
        if not collection.remote_sha or self.provider is None:
            return
        try:
            await self._call(
                self.provider.delete_directory,
                collection_base_path(collection.id),
                f"Delete collection: {collection.name}",
            )
        except Exception as exc:
            logger.warning(
                "Failed to delete remote collection %s: %s", collection.id, exc
            )
            self._log(
                "delete", collection.name, f"Remote delete failed: {exc}", False
            )
            return
        self._log("delete", collection.name, "Deleted from remote")
