"""GitLab adapter built on the Repository API v4.

Remote ids are blob ids, but GitLab guards single-file updates with the
file's ``last_commit_id`` instead, which the adapter reports as
``secondary_id``.  Multi-file changes go through one
``POST /repository/commits`` call carrying create/update/delete actions,
which GitLab applies atomically.
"""

from __future__ import annotations

import base64
import logging
import posixpath
from urllib.parse import quote

from ..exceptions import RemoteTransportError, SyncConflictError
from .base import DirectoryItem, FileContent, HttpProvider

logger = logging.getLogger(__name__)

PER_PAGE = 100

# GitLab answers a stale last_commit_id or an action on a path in the wrong
# state with 400; newer versions use 409 for some of these.
_CONFLICT_STATUSES = (400, 409)


class GitLabProvider(HttpProvider):
    """gitlab.com or self-hosted project (``group/project`` or numeric id)."""

    uses_commit_precondition = True

    @property
    def project_url(self) -> str:
        return f"{self.api_url}/projects/{quote(self.config.repository, safe='')}"

    def _auth_headers(self) -> dict[str, str]:
        return {"PRIVATE-TOKEN": self.config.token}

    def _file_url(self, path: str) -> str:
        return f"{self.project_url}/repository/files/{quote(path, safe='')}"

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _paginate_tree(self, params: dict) -> list[dict]:
        """Collect every page of the tree API, following ``x-next-page``."""
        entries: list[dict] = []
        page = "1"
        while page:
            response = self._request(
                "GET",
                f"{self.project_url}/repository/tree",
                params={**params, "per_page": PER_PAGE, "page": page},
            )
            # Missing path, missing branch and empty repository all give 404.
            if response.status_code == 404:
                return entries
            self._raise_for_status(response, "list repository tree")
            entries.extend(response.json())
            page = response.headers.get("x-next-page", "").strip()
        return entries

    def list_directory_recursive(self, path: str) -> list[DirectoryItem]:
        params: dict = {"ref": self.branch, "recursive": "true"}
        if path:
            params["path"] = path.rstrip("/")
        return [
            DirectoryItem(
                kind="dir" if entry["type"] == "tree" else "file",
                path=entry["path"],
                remote_id=entry.get("id"),
            )
            for entry in self._paginate_tree(params)
            if entry["type"] in ("tree", "blob")
        ]

    def get_directory_tree(self, path: str) -> list[FileContent]:
        files: list[FileContent] = []
        for item in self.list_directory_recursive(path):
            if item.kind != "file" or not item.path.endswith(".yaml"):
                continue
            file = self.get_file(item.path)
            if file is not None:
                files.append(file)
        return files

    def get_file(self, path: str) -> FileContent | None:
        response = self._request(
            "GET", self._file_url(path), params={"ref": self.branch}
        )
        if response.status_code == 404:
            return None
        self._raise_for_status(response, f"read {path}")
        data = response.json()
        return FileContent(
            path=path,
            content=base64.b64decode(data["content"]).decode("utf-8"),
            remote_id=data.get("blob_id"),
            secondary_id=data.get("last_commit_id"),
        )

    def _blob_id(self, path: str) -> str:
        file = self.get_file(path)
        return file.remote_id if file and file.remote_id else ""

    # ------------------------------------------------------------------
    # Single-file writes
    # ------------------------------------------------------------------

    def create_file(self, path: str, content: str, message: str) -> str:
        response = self._request(
            "POST",
            self._file_url(path),
            json={
                "branch": self.branch,
                "content": content,
                "commit_message": message,
            },
        )
        if response.status_code in _CONFLICT_STATUSES:
            raise SyncConflictError(
                [path], f"File already exists on remote: {path}"
            )
        self._raise_for_status(response, f"create {path}")
        # The files API does not return the blob id of what it wrote.
        return self._blob_id(path)

    def update_file(
        self, path: str, content: str, precondition_id: str, message: str
    ) -> str:
        response = self._request(
            "PUT",
            self._file_url(path),
            json={
                "branch": self.branch,
                "content": content,
                "commit_message": message,
                "last_commit_id": precondition_id,
            },
        )
        if response.status_code in _CONFLICT_STATUSES:
            raise SyncConflictError(
                [path], f"Conflict: {path} has been modified on remote"
            )
        self._raise_for_status(response, f"update {path}")
        return self._blob_id(path)

    def delete_file(
        self, path: str, precondition_id: str, message: str
    ) -> None:
        body = {"branch": self.branch, "commit_message": message}
        if precondition_id:
            body["last_commit_id"] = precondition_id
        response = self._request("DELETE", self._file_url(path), json=body)
        if response.status_code == 404:
            return
        if response.status_code in _CONFLICT_STATUSES:
            raise SyncConflictError(
                [path], f"Conflict: {path} has been modified on remote"
            )
        self._raise_for_status(response, f"delete {path}")

    # ------------------------------------------------------------------
    # Atomic multi-file commit
    # ------------------------------------------------------------------

    def _existing_paths(self, paths: list[str]) -> set[str]:
        """Return which of *paths* exist, from one recursive listing."""
        if not paths:
            return set()
        root = posixpath.commonpath([posixpath.dirname(p) for p in paths])
        return {
            item.path
            for item in self.list_directory_recursive(root)
            if item.kind == "file"
        }

    def commit_multiple_files(
        self,
        upserts: dict[str, str],
        message: str,
        deletes: list[str] | None = None,
    ) -> str:
        deletes = deletes or []
        existing = self._existing_paths(list(upserts))

        actions: list[dict] = [
            {
                "action": "update" if path in existing else "create",
                "file_path": path,
                "content": content,
            }
            for path, content in upserts.items()
        ]
        actions.extend(
            {"action": "delete", "file_path": path} for path in deletes
        )

        response = self._request(
            "POST",
            f"{self.project_url}/repository/commits",
            json={
                "branch": self.branch,
                "commit_message": message,
                "actions": actions,
            },
        )
        if response.status_code in _CONFLICT_STATUSES:
            raise SyncConflictError(
                [*upserts, *deletes],
                "Remote rejected the commit; files changed since listing",
            )
        self._raise_for_status(response, "create commit")
        commit_id = response.json()["id"]

        logger.info(
            "Committed %d upsert(s) and %d deletion(s) to %s@%s as %s",
            len(upserts),
            len(deletes),
            self.config.repository,
            self.branch,
            commit_id[:12],
        )
        return commit_id

    # ------------------------------------------------------------------
    # Misc
    # ------------------------------------------------------------------

    def test_connection(self) -> bool:
        try:
            response = self._request("GET", self.project_url)
        except RemoteTransportError as exc:
            logger.warning("GitLab connection test failed: %s", exc)
            return False
        return response.ok
