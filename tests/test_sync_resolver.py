"""Tests for conflict resolution."""

from __future__ import annotations

import pytest

from collection_sync.sync.resolver import (
    RESOLUTIONS,
    resolve_conflict,
    validate_resolution,
)


R1 = "collections/col1/col1-r1.yaml"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _conflicted(coordinator, repo, provider, add_sample_collection):
    """Push a collection, then change it on both sides."""
    add_sample_collection(repo)
    await coordinator.push_collection(repo.find_by_id("col1"))
    request = repo.get_request("col1-r1")
    repo.add_request(request.model_copy(update={"url": "https://api.example.com/local"}))
    repo.mark_dirty("col1")
    provider.external_write(R1, provider.files[R1].replace("items/1", "items/remote"))
    provider.calls.clear()
    return repo.find_by_id("col1")


# ---------------------------------------------------------------------------
# validate_resolution
# ---------------------------------------------------------------------------


class TestValidateResolution:
    @pytest.mark.parametrize("name", sorted(RESOLUTIONS))
    def test_known(self, name):
        assert validate_resolution(name) == (True, "")

    def test_unknown_lists_options(self):
        ok, reason = validate_resolution("merge")

        assert not ok
        assert "keep-local, keep-remote" in reason


# ---------------------------------------------------------------------------
# resolve_conflict
# ---------------------------------------------------------------------------


class TestResolveConflict:
    async def test_keep_local(self, coordinator, repo, provider, add_sample_collection):
        collection = await _conflicted(coordinator, repo, provider, add_sample_collection)

        result = await resolve_conflict(coordinator, collection, "keep-local")

        assert result.success is True
        assert result.pushed == 1
        assert "https://api.example.com/local" in provider.files[R1]
        assert repo.find_by_id("col1").is_dirty is False

    async def test_keep_remote(
        self, coordinator, repo, provider, add_sample_collection
    ):
        collection = await _conflicted(coordinator, repo, provider, add_sample_collection)

        result = await resolve_conflict(coordinator, collection, "keep-remote")

        assert result.success is True
        assert result.pulled == 1
        assert provider.mutations == []
        assert repo.get_request("col1-r1").url == "https://api.example.com/items/remote"

    async def test_failure_becomes_unsuccessful_result(
        self, coordinator, repo, add_sample_collection
    ):
        collection = add_sample_collection(repo)

        result = await resolve_conflict(coordinator, collection, "keep-remote")

        assert result.success is False
        assert result.errors and result.errors[0].startswith("Sample API:")

    async def test_unknown_resolution_raises(
        self, coordinator, repo, add_sample_collection
    ):
        collection = add_sample_collection(repo)

        with pytest.raises(ValueError, match="Unknown resolution"):
            await resolve_conflict(coordinator, collection, "merge")
