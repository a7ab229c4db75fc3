"""Shared pytest fixtures for collection-sync tests."""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from unittest.mock import Mock, patch

import pytest

from collection_sync.exceptions import SyncConflictError
from collection_sync.providers.base import (
    DirectoryItem,
    FileContent,
    RemoteProvider,
)
from collection_sync.providers.github import git_blob_sha
from collection_sync.serializer import YamlCollectionSerializer
from collection_sync.session_log import SessionLog
from collection_sync.store import (
    Collection,
    CollectionRepository,
    Folder,
    Request,
)
from collection_sync.sync import SyncCoordinator

MUTATING_CALLS = ("create_file", "update_file", "delete_file", "commit")


class FakeProvider(RemoteProvider):
    """In-memory remote repository.

    Files live in a ``path -> content`` dict; remote ids are git blob SHAs
    and every write bumps a commit counter.  With ``commit_ids=True`` it
    behaves like a provider that guards single-file updates with the last
    commit id and cannot predict blob ids (GitLab-style).
    """

    def __init__(
        self,
        files: Optional[Dict[str, str]] = None,
        commit_ids: bool = False,
    ) -> None:
        self.files: Dict[str, str] = dict(files or {})
        self.commit_of: Dict[str, str] = {p: "c0" for p in self.files}
        self.uses_commit_precondition = commit_ids
        self.commit_count = 0
        self.calls: List[tuple] = []
        self.commits: List[dict] = []
        self.connected = True

    # -- helpers for tests ---------------------------------------------

    def blob_id(self, path: str) -> str:
        return git_blob_sha(self.files[path])

    def external_write(self, path: str, content: str) -> None:
        """Simulate a teammate changing the remote; not recorded."""
        self.files[path] = content
        self.commit_of[path] = self._next_commit()

    def external_delete(self, path: str) -> None:
        self.files.pop(path, None)
        self.commit_of.pop(path, None)

    @property
    def mutations(self) -> List[tuple]:
        return [c for c in self.calls if c[0] in MUTATING_CALLS]

    def _next_commit(self) -> str:
        self.commit_count += 1
        return f"c{self.commit_count}"

    # -- RemoteProvider ------------------------------------------------

    def list_directory_recursive(self, path: str) -> List[DirectoryItem]:
        self.calls.append(("list", path))
        prefix = path.rstrip("/") + "/"
        items: List[DirectoryItem] = []
        dirs = set()
        for file_path in sorted(self.files):
            if not file_path.startswith(prefix):
                continue
            parts = file_path[len(prefix):].split("/")
            for i in range(1, len(parts)):
                dirs.add(prefix + "/".join(parts[:i]))
            items.append(
                DirectoryItem(
                    kind="file",
                    path=file_path,
                    remote_id=self.blob_id(file_path),
                )
            )
        items.extend(
            DirectoryItem(kind="dir", path=d, remote_id=f"tree-{d}")
            for d in sorted(dirs)
        )
        return items

    def get_directory_tree(self, path: str) -> List[FileContent]:
        self.calls.append(("tree", path))
        prefix = path.rstrip("/") + "/"
        return [
            self._content(p)
            for p in sorted(self.files)
            if p.startswith(prefix) and p.endswith(".yaml")
        ]

    def get_file(self, path: str) -> Optional[FileContent]:
        self.calls.append(("get_file", path))
        if path not in self.files:
            return None
        return self._content(path)

    def _content(self, path: str) -> FileContent:
        return FileContent(
            path=path,
            content=self.files[path],
            remote_id=self.blob_id(path),
            secondary_id=self.commit_of.get(path),
        )

    def create_file(self, path: str, content: str, message: str) -> str:
        self.calls.append(("create_file", path, message))
        if path in self.files:
            raise SyncConflictError([path], f"File already exists: {path}")
        self.files[path] = content
        self.commit_of[path] = self._next_commit()
        return git_blob_sha(content)

    def update_file(
        self, path: str, content: str, precondition_id: str, message: str
    ) -> str:
        self.calls.append(("update_file", path, precondition_id, message))
        if path not in self.files:
            raise SyncConflictError([path])
        current = (
            self.commit_of.get(path)
            if self.uses_commit_precondition
            else self.blob_id(path)
        )
        if current != precondition_id:
            raise SyncConflictError([path])
        self.files[path] = content
        self.commit_of[path] = self._next_commit()
        return git_blob_sha(content)

    def delete_file(
        self, path: str, precondition_id: str, message: str
    ) -> None:
        self.calls.append(("delete_file", path, precondition_id, message))
        self.files.pop(path, None)
        self.commit_of.pop(path, None)

    def commit_multiple_files(
        self,
        upserts: Dict[str, str],
        message: str,
        deletes: Optional[List[str]] = None,
    ) -> str:
        deletes = list(deletes or [])
        self.calls.append(("commit", message))
        commit = self._next_commit()
        self.commits.append(
            {"message": message, "upserts": dict(upserts), "deletes": deletes}
        )
        for path, content in upserts.items():
            self.files[path] = content
            self.commit_of[path] = commit
        for path in deletes:
            self.files.pop(path, None)
            self.commit_of.pop(path, None)
        return commit

    def test_connection(self) -> bool:
        self.calls.append(("test",))
        return self.connected

    def predict_remote_id(self, content: str) -> Optional[str]:
        if self.uses_commit_precondition:
            return None
        return git_blob_sha(content)


# ---------------------------------------------------------------------------
# HTTP fakes for the REST adapters
# ---------------------------------------------------------------------------


def make_response(
    status_code: int = 200,
    json_data: Any = None,
    headers: Optional[Dict[str, str]] = None,
) -> Mock:
    """Create a mock ``requests.Response``."""
    response = Mock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.headers = headers or {}
    if json_data is None:
        response.json.side_effect = ValueError("No JSON body")
    else:
        response.json.return_value = json_data
    return response


class FakeHttp:
    """Route ``(method, url)`` to canned responses and record every call.

    Several responses for one route are served in order, the last one
    repeating.  An exception instance as a response is raised instead.
    Unrouted requests get a 404.
    """

    def __init__(self) -> None:
        self.routes: Dict[tuple, list] = {}
        self.calls: List[tuple] = []

    def add(self, method: str, url: str, *responses: Any) -> None:
        self.routes.setdefault((method, url), []).extend(responses)

    def __call__(self, method: str, url: str, **kwargs: Any) -> Any:
        self.calls.append((method, url, kwargs))
        queue = self.routes.get((method, url))
        if not queue:
            return make_response(404, {"message": "Not Found"})
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        return response

    @staticmethod
    def response(
        status_code: int = 200,
        json_data: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Mock:
        return make_response(status_code, json_data, headers)

    def sent(self, method: str, url: str) -> List[Dict[str, Any]]:
        """Keyword arguments of every call made to one route."""
        return [c[2] for c in self.calls if c[0] == method and c[1] == url]


@pytest.fixture
def http():
    """Patch ``requests.Session.request`` with a ``FakeHttp`` router."""
    fake = FakeHttp()
    with patch(
        "collection_sync.providers.base.requests.Session.request",
        side_effect=fake,
    ):
        yield fake


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def _add_sample_collection(
    repo: CollectionRepository,
    collection_id: str = "col1",
    name: str = "Sample API",
    requests: int = 2,
    with_folder: bool = False,
    **fields: Any,
) -> Collection:
    """Add a collection with *requests* root requests and an optional folder."""
    collection = repo.add_collection(
        Collection(id=collection_id, name=name, sync_enabled=True, **fields)
    )
    order = 0
    if with_folder:
        repo.add_folder(
            Folder(
                id=f"{collection_id}-f1",
                collection_id=collection_id,
                name="Users",
                order=order,
            )
        )
        repo.add_request(
            Request(
                id=f"{collection_id}-fr1",
                collection_id=collection_id,
                folder_id=f"{collection_id}-f1",
                name="List users",
                url="https://api.example.com/users",
            )
        )
        order += 1
    for i in range(1, requests + 1):
        repo.add_request(
            Request(
                id=f"{collection_id}-r{i}",
                collection_id=collection_id,
                name=f"Request {i}",
                method="POST" if i % 2 == 0 else "GET",
                url=f"https://api.example.com/items/{i}",
                order=order,
            )
        )
        order += 1
    return collection


def _remote_files_for(
    collection_id: str = "col1", requests: int = 2, **kwargs: Any
) -> Dict[str, str]:
    """Serialize a sample collection built in a scratch store.

    Returns full remote paths, as another client would have pushed them.
    """
    scratch = CollectionRepository()
    collection = _add_sample_collection(
        scratch, collection_id, requests=requests, **kwargs
    )
    serializer = YamlCollectionSerializer(scratch)
    return {
        f"collections/{path}": content
        for path, content in serializer.serialize_to_directory(
            collection
        ).items()
    }


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def repo() -> CollectionRepository:
    return CollectionRepository()


@pytest.fixture
def serializer(repo) -> YamlCollectionSerializer:
    return YamlCollectionSerializer(repo)


@pytest.fixture
def session_log() -> SessionLog:
    return SessionLog()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def coordinator(provider, repo, serializer, session_log) -> SyncCoordinator:
    return SyncCoordinator(provider, repo, serializer, session_log=session_log)


@pytest.fixture
def make_provider():
    """Factory fixture for extra in-memory remotes: ``make_provider(commit_ids=True)``."""
    return FakeProvider


@pytest.fixture
def add_sample_collection():
    """Factory fixture: ``add_sample_collection(repo, "col2", requests=1)``."""
    return _add_sample_collection


@pytest.fixture
def remote_files_for():
    """Factory fixture for the remote files of a sample collection."""
    return _remote_files_for
