"""Tests for input validators."""

import pytest

from collection_sync.validators import (
    validate_branch,
    validate_path_segment,
    validate_remote_path,
    validate_repository,
)


class TestValidateRepository:
    @pytest.mark.parametrize("repo", ["acme/collections", "my.org/api_cols-2"])
    def test_valid_github(self, repo):
        assert validate_repository("github", repo) == (True, "")

    @pytest.mark.parametrize("repo", ["team/collections", "group/sub/project", "12345"])
    def test_valid_gitlab(self, repo):
        assert validate_repository("gitlab", repo) == (True, "")

    def test_github_rejects_subgroups(self):
        ok, reason = validate_repository("github", "a/b/c")
        assert not ok
        assert "owner/repo" in reason

    @pytest.mark.parametrize("repo", ["", "   ", "a/../b", "a b/c"])
    def test_invalid(self, repo):
        ok, reason = validate_repository("gitlab", repo)
        assert not ok
        assert reason.startswith("Repository")


class TestValidateBranch:
    @pytest.mark.parametrize("branch", ["main", "release/2026.10", "feature_x-1"])
    def test_valid(self, branch):
        assert validate_branch(branch) == (True, "")

    @pytest.mark.parametrize(
        "branch", ["", "a..b", "with space", "x~1", "a:b", "/lead", "trail/", "ref.lock"]
    )
    def test_invalid(self, branch):
        ok, reason = validate_branch(branch)
        assert not ok
        assert reason.startswith("Branch")


class TestValidatePathSegment:
    @pytest.mark.parametrize(
        "segment", ["3f6c0d4e-1b2a-4c5d-8e9f-0a1b2c3d4e5f", "col1", "v1.2", "_x"]
    )
    def test_valid(self, segment):
        assert validate_path_segment(segment) == (True, "")

    @pytest.mark.parametrize("segment", ["", ".", "..", ".hidden", "a/b", "a b", "ä"])
    def test_invalid(self, segment):
        ok, reason = validate_path_segment(segment, "Request id")
        assert not ok
        assert reason.startswith("Request id")


class TestValidateRemotePath:
    def test_valid(self):
        assert validate_remote_path("collections/c1/r1.yaml") == (True, "")

    @pytest.mark.parametrize(
        "path, fragment",
        [
            ("", "cannot be empty"),
            ("/abs/path", "must be relative"),
            ("collections/../secrets", "cannot contain '..'"),
            ("collections//c1", "empty path segments"),
        ],
    )
    def test_invalid(self, path, fragment):
        ok, reason = validate_remote_path(path)
        assert not ok
        assert fragment in reason
