"""Tests for the GitLab adapter.

Strategy: patch ``requests.Session.request`` with a ``FakeHttp`` router
(see conftest) and assert on the requests the adapter sends.
"""

import base64

import pytest
import requests

from collection_sync.config_schema import GitLabProviderConfig
from collection_sync.exceptions import (
    RemoteProtocolError,
    RemoteTransportError,
    SyncConflictError,
)
from collection_sync.providers import create_provider
from collection_sync.providers.gitlab import GitLabProvider


PROJECT = "https://gitlab.com/api/v4/projects/team%2Fcollections"
TREE = f"{PROJECT}/repository/tree"
COMMITS = f"{PROJECT}/repository/commits"


def _file_url(path: str) -> str:
    return f"{PROJECT}/repository/files/{path.replace('/', '%2F')}"


def _file_json(content: str, blob_id: str, commit_id: str) -> dict:
    return {
        "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
        "blob_id": blob_id,
        "last_commit_id": commit_id,
    }


@pytest.fixture
def gitlab():
    return GitLabProvider(
        GitLabProviderConfig(repository="team/collections", token="glpat-secret")
    )


class TestSetup:
    def test_factory_dispatches_on_provider(self):
        config = GitLabProviderConfig(repository="1234", token="t")
        assert isinstance(create_provider(config), GitLabProvider)

    def test_uses_commit_preconditions(self, gitlab):
        assert gitlab.uses_commit_precondition is True
        assert gitlab.predict_remote_id("x") is None

    def test_private_token_header(self, gitlab):
        assert gitlab.session.headers["PRIVATE-TOKEN"] == "glpat-secret"

    def test_project_path_is_url_encoded(self, gitlab):
        assert gitlab.project_url == PROJECT


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


class TestListDirectoryRecursive:
    def test_follows_pagination(self, http, gitlab):
        http.add(
            "GET",
            TREE,
            http.response(
                200,
                [
                    {"path": "collections/c1", "type": "tree", "id": "t1"},
                    {"path": "collections/c1/a.yaml", "type": "blob", "id": "ba"},
                ],
                headers={"x-next-page": "2"},
            ),
            http.response(
                200,
                [
                    {"path": "collections/c1/b.yaml", "type": "blob", "id": "bb"},
                    {"path": "collections/c1/sub", "type": "commit", "id": "s1"},
                ],
                headers={"x-next-page": ""},
            ),
        )

        items = gitlab.list_directory_recursive("collections")

        assert [(i.kind, i.path, i.remote_id) for i in items] == [
            ("dir", "collections/c1", "t1"),
            ("file", "collections/c1/a.yaml", "ba"),
            ("file", "collections/c1/b.yaml", "bb"),
        ]
        params = [kwargs["params"] for kwargs in http.sent("GET", TREE)]
        assert params == [
            {"ref": "main", "recursive": "true", "path": "collections", "per_page": 100, "page": "1"},
            {"ref": "main", "recursive": "true", "path": "collections", "per_page": 100, "page": "2"},
        ]

    def test_missing_path(self, http, gitlab):
        assert gitlab.list_directory_recursive("collections") == []


class TestGetFile:
    def test_reads_blob_and_commit_ids(self, http, gitlab):
        url = _file_url("collections/c1/a.yaml")
        http.add("GET", url, http.response(200, _file_json("x: 1\n", "ba", "c7")))

        file = gitlab.get_file("collections/c1/a.yaml")

        assert file.content == "x: 1\n"
        assert file.remote_id == "ba"
        assert file.secondary_id == "c7"
        assert http.sent("GET", url)[0]["params"] == {"ref": "main"}

    def test_missing(self, http, gitlab):
        assert gitlab.get_file("collections/c1/a.yaml") is None

    def test_directory_tree_reads_each_yaml_file(self, http, gitlab):
        http.add(
            "GET",
            TREE,
            http.response(
                200,
                [
                    {"path": "collections/c1/a.yaml", "type": "blob", "id": "ba"},
                    {"path": "collections/c1/image.png", "type": "blob", "id": "bp"},
                ],
            ),
        )
        http.add(
            "GET",
            _file_url("collections/c1/a.yaml"),
            http.response(200, _file_json("a: 1\n", "ba", "c1")),
        )

        files = gitlab.get_directory_tree("collections/c1")

        assert [(f.path, f.content, f.secondary_id) for f in files] == [
            ("collections/c1/a.yaml", "a: 1\n", "c1")
        ]


# ---------------------------------------------------------------------------
# Single-file writes
# ---------------------------------------------------------------------------


class TestSingleFileWrites:
    PATH = "collections/c1/a.yaml"

    def test_update_sends_last_commit_id_and_returns_blob_id(self, http, gitlab):
        url = _file_url(self.PATH)
        http.add("PUT", url, http.response(200, {"file_path": self.PATH}))
        http.add("GET", url, http.response(200, _file_json("x: 2\n", "b2", "c2")))

        assert gitlab.update_file(self.PATH, "x: 2\n", "c1", "Update: A") == "b2"
        assert http.sent("PUT", url)[0]["json"] == {
            "branch": "main",
            "content": "x: 2\n",
            "commit_message": "Update: A",
            "last_commit_id": "c1",
        }

    def test_update_stale_commit_conflicts(self, http, gitlab):
        http.add(
            "PUT",
            _file_url(self.PATH),
            http.response(400, {"message": "You are attempting to update a file that has changed since you started editing it."}),
        )

        with pytest.raises(SyncConflictError) as exc_info:
            gitlab.update_file(self.PATH, "x", "c0", "Update: A")
        assert exc_info.value.paths == [self.PATH]

    def test_create_existing_conflicts(self, http, gitlab):
        http.add(
            "POST",
            _file_url(self.PATH),
            http.response(400, {"message": "A file with this name already exists"}),
        )

        with pytest.raises(SyncConflictError, match="already exists"):
            gitlab.create_file(self.PATH, "x", "Create: A")

    def test_delete_without_precondition(self, http, gitlab):
        url = _file_url(self.PATH)
        http.add("DELETE", url, http.response(204))

        gitlab.delete_file(self.PATH, "", "Delete")

        assert "last_commit_id" not in http.sent("DELETE", url)[0]["json"]


# ---------------------------------------------------------------------------
# Atomic commit
# ---------------------------------------------------------------------------


class TestCommitMultipleFiles:
    def test_actions_follow_existing_paths(self, http, gitlab):
        http.add(
            "GET",
            TREE,
            http.response(
                200,
                [{"path": "collections/c1/a.yaml", "type": "blob", "id": "ba"}],
            ),
        )
        http.add("POST", COMMITS, http.response(201, {"id": "abc123def4567890"}))

        commit = gitlab.commit_multiple_files(
            {
                "collections/c1/a.yaml": "a: 2\n",
                "collections/c1/f1/b.yaml": "b: 1\n",
            },
            "Sync: Demo",
            ["collections/c1/old.yaml"],
        )

        assert commit == "abc123def4567890"
        assert http.sent("GET", TREE)[0]["params"]["path"] == "collections/c1"
        body = http.sent("POST", COMMITS)[0]["json"]
        assert body["branch"] == "main"
        assert body["commit_message"] == "Sync: Demo"
        assert body["actions"] == [
            {"action": "update", "file_path": "collections/c1/a.yaml", "content": "a: 2\n"},
            {"action": "create", "file_path": "collections/c1/f1/b.yaml", "content": "b: 1\n"},
            {"action": "delete", "file_path": "collections/c1/old.yaml"},
        ]

    def test_deletes_only_skip_listing(self, http, gitlab):
        http.add("POST", COMMITS, http.response(201, {"id": "c9"}))

        gitlab.commit_multiple_files({}, "Delete", ["collections/c1/a.yaml"])

        assert http.sent("GET", TREE) == []

    def test_rejected_commit_conflicts(self, http, gitlab):
        http.add("POST", COMMITS, http.response(400, {"message": "A file with this name doesn't exist"}))

        with pytest.raises(SyncConflictError) as exc_info:
            gitlab.commit_multiple_files({}, "Delete", ["collections/c1/a.yaml"])
        assert exc_info.value.paths == ["collections/c1/a.yaml"]

    def test_forbidden_is_protocol_error(self, http, gitlab):
        http.add("POST", COMMITS, http.response(403, {"message": "403 Forbidden"}))

        with pytest.raises(RemoteProtocolError) as exc_info:
            gitlab.commit_multiple_files({}, "Delete", ["collections/c1/a.yaml"])
        assert exc_info.value.status_code == 403


class TestConnection:
    def test_ok(self, http, gitlab):
        http.add("GET", PROJECT, http.response(200, {"id": 1}))

        assert gitlab.test_connection() is True

    def test_not_found(self, http, gitlab):
        assert gitlab.test_connection() is False

    def test_transport_error(self, http, gitlab):
        http.add("GET", TREE, requests.ConnectionError("refused"))

        with pytest.raises(RemoteTransportError):
            gitlab.list_directory_recursive("collections")
