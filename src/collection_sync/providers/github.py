"""GitHub adapter built on the Git Data and Contents APIs.

Remote ids are blob SHAs, so single-file updates are guarded by the blob
SHA and the adapter can predict the id of any content it is about to
write.  Multi-file changes are built from Git primitives:

1. read the branch ref and its commit's tree,
2. create a tree on top of it (inline content for upserts, ``sha: null``
   for deletions),
3. create a commit whose parent is the previous tip,
4. move the ref without ``force``, so a tip that moved in the meantime
   surfaces as a ``SyncConflictError`` instead of being overwritten.
"""

from __future__ import annotations

import base64
import hashlib
import logging
from urllib.parse import quote

from ..exceptions import RemoteTransportError, SyncConflictError, SyncError
from .base import DirectoryItem, FileContent, HttpProvider

logger = logging.getLogger(__name__)

FILE_MODE = "100644"


def git_blob_sha(content: str) -> str:
    """Return the Git blob SHA-1 that GitHub will assign to *content*."""
    data = content.encode("utf-8")
    header = f"blob {len(data)}\0".encode("ascii")
    return hashlib.sha1(header + data).hexdigest()


def _encode(content: str) -> str:
    return base64.b64encode(content.encode("utf-8")).decode("ascii")


def _decode(data: str) -> str:
    # The API wraps base64 payloads at 60 columns.
    return base64.b64decode(data.replace("\n", "")).decode("utf-8")


class GitHubProvider(HttpProvider):
    """GitHub or GitHub Enterprise repository (``owner/repo``)."""

    uses_commit_precondition = False

    @property
    def repo_url(self) -> str:
        return f"{self.api_url}/repos/{self.config.repository}"

    def _auth_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def _contents_url(self, path: str) -> str:
        return f"{self.repo_url}/contents/{quote(path)}"

    # ------------------------------------------------------------------
    # Git Data helpers
    # ------------------------------------------------------------------

    def _branch_tip(self) -> str | None:
        """Return the commit SHA at the branch tip, or None if it has none."""
        response = self._request(
            "GET", f"{self.repo_url}/git/ref/heads/{quote(self.branch)}"
        )
        # 409 is what GitHub answers for a repository with no commits.
        if response.status_code in (404, 409):
            return None
        self._raise_for_status(response, "read branch ref")
        return response.json()["object"]["sha"]

    def _commit_tree(self, commit_sha: str) -> str:
        response = self._request(
            "GET", f"{self.repo_url}/git/commits/{commit_sha}"
        )
        self._raise_for_status(response, "read commit")
        return response.json()["tree"]["sha"]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_directory_recursive(self, path: str) -> list[DirectoryItem]:
        tip = self._branch_tip()
        if tip is None:
            logger.debug("Branch %s has no commits", self.branch)
            return []

        tree_sha = self._commit_tree(tip)
        response = self._request(
            "GET",
            f"{self.repo_url}/git/trees/{tree_sha}",
            params={"recursive": "1"},
        )
        self._raise_for_status(response, "read tree")
        data = response.json()
        # A partial listing would read as remote deletions.
        if data.get("truncated"):
            raise SyncError(
                f"Tree listing for {path} was truncated by GitHub; "
                "refusing to sync from a partial listing"
            )

        prefix = path.rstrip("/") + "/"
        return [
            DirectoryItem(
                kind="dir" if entry["type"] == "tree" else "file",
                path=entry["path"],
                remote_id=entry.get("sha"),
            )
            for entry in data.get("tree", [])
            if entry["path"].startswith(prefix)
            and entry["type"] in ("tree", "blob")
        ]

    def get_directory_tree(self, path: str) -> list[FileContent]:
        files: list[FileContent] = []
        for item in self.list_directory_recursive(path):
            if item.kind != "file" or not item.path.endswith(".yaml"):
                continue
            response = self._request(
                "GET", f"{self.repo_url}/git/blobs/{item.remote_id}"
            )
            self._raise_for_status(response, f"read blob for {item.path}")
            files.append(
                FileContent(
                    path=item.path,
                    content=_decode(response.json()["content"]),
                    remote_id=item.remote_id,
                )
            )
        return files

    def get_file(self, path: str) -> FileContent | None:
        response = self._request(
            "GET", self._contents_url(path), params={"ref": self.branch}
        )
        if response.status_code == 404:
            return None
        self._raise_for_status(response, f"read {path}")
        data = response.json()
        if isinstance(data, list) or data.get("type") != "file":
            return None
        return FileContent(
            path=path,
            content=_decode(data["content"]),
            remote_id=data["sha"],
        )

    # ------------------------------------------------------------------
    # Single-file writes (Contents API)
    # ------------------------------------------------------------------

    def create_file(self, path: str, content: str, message: str) -> str:
        response = self._request(
            "PUT",
            self._contents_url(path),
            json={
                "message": message,
                "content": _encode(content),
                "branch": self.branch,
            },
        )
        # Creating over an existing path without a sha is rejected with 422.
        if response.status_code in (409, 422):
            raise SyncConflictError(
                [path], f"File already exists on remote: {path}"
            )
        self._raise_for_status(response, f"create {path}")
        return response.json()["content"]["sha"]

    def update_file(
        self, path: str, content: str, precondition_id: str, message: str
    ) -> str:
        response = self._request(
            "PUT",
            self._contents_url(path),
            json={
                "message": message,
                "content": _encode(content),
                "sha": precondition_id,
                "branch": self.branch,
            },
        )
        if response.status_code == 409:
            raise SyncConflictError(
                [path], f"SHA conflict: {path} has been modified on remote"
            )
        self._raise_for_status(response, f"update {path}")
        return response.json()["content"]["sha"]

    def delete_file(
        self, path: str, precondition_id: str, message: str
    ) -> None:
        response = self._request(
            "DELETE",
            self._contents_url(path),
            json={
                "message": message,
                "sha": precondition_id,
                "branch": self.branch,
            },
        )
        if response.status_code == 404:
            return
        if response.status_code == 409:
            raise SyncConflictError(
                [path], f"SHA conflict: {path} has been modified on remote"
            )
        self._raise_for_status(response, f"delete {path}")

    # ------------------------------------------------------------------
    # Atomic multi-file commit
    # ------------------------------------------------------------------

    def commit_multiple_files(
        self,
        upserts: dict[str, str],
        message: str,
        deletes: list[str] | None = None,
    ) -> str:
        deletes = deletes or []
        tip = self._branch_tip()

        tree_items: list[dict] = [
            {"path": path, "mode": FILE_MODE, "type": "blob", "content": content}
            for path, content in upserts.items()
        ]
        tree_items.extend(
            {"path": path, "mode": FILE_MODE, "type": "blob", "sha": None}
            for path in deletes
        )

        tree_body: dict = {"tree": tree_items}
        if tip is not None:
            tree_body["base_tree"] = self._commit_tree(tip)
        response = self._request(
            "POST", f"{self.repo_url}/git/trees", json=tree_body
        )
        self._raise_for_status(response, "create tree")
        new_tree = response.json()["sha"]

        response = self._request(
            "POST",
            f"{self.repo_url}/git/commits",
            json={
                "message": message,
                "tree": new_tree,
                "parents": [tip] if tip else [],
            },
        )
        self._raise_for_status(response, "create commit")
        new_commit = response.json()["sha"]

        if tip is None:
            response = self._request(
                "POST",
                f"{self.repo_url}/git/refs",
                json={"ref": f"refs/heads/{self.branch}", "sha": new_commit},
            )
            self._raise_for_status(response, "create branch ref")
        else:
            response = self._request(
                "PATCH",
                f"{self.repo_url}/git/refs/heads/{quote(self.branch)}",
                json={"sha": new_commit, "force": False},
            )
            if response.status_code == 422:
                raise SyncConflictError(
                    [*upserts, *deletes],
                    f"Branch {self.branch} moved during commit; pull and retry",
                )
            self._raise_for_status(response, "update branch ref")

        logger.info(
            "Committed %d upsert(s) and %d deletion(s) to %s@%s as %s",
            len(upserts),
            len(deletes),
            self.config.repository,
            self.branch,
            new_commit[:12],
        )
        return new_commit

    # ------------------------------------------------------------------
    # Misc
    # ------------------------------------------------------------------

    def test_connection(self) -> bool:
        try:
            response = self._request("GET", self.repo_url)
        except RemoteTransportError as exc:
            logger.warning("GitHub connection test failed: %s", exc)
            return False
        return response.ok

    def predict_remote_id(self, content: str) -> str | None:
        return git_blob_sha(content)
