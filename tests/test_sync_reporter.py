"""Tests for sync reporter formatting functions.

Covers:
- format_sync_result with and without conflicts and errors
- result_to_json structure
"""

from __future__ import annotations

import json

from collection_sync.sync.models import SyncConflict, SyncResult
from collection_sync.sync.reporter import format_sync_result, result_to_json

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _conflict() -> SyncConflict:
    return SyncConflict(
        collection_id="col1",
        collection_name="Sample API",
        local_updated_at="2026-10-01T10:00:00+00:00",
    )


# ---------------------------------------------------------------------------
# format_sync_result
# ---------------------------------------------------------------------------


class TestFormatSyncResult:
    def test_clean_result_is_concise(self):
        text = format_sync_result(
            SyncResult(message="Pulled 2 collection(s)", pulled=2), "pull"
        )

        assert text.splitlines() == [
            "pull: OK",
            "  Pulled 2 collection(s)",
            "  Pulled:    2",
            "  Pushed:    0",
            "  Conflicts: 0",
        ]

    def test_conflicts_section(self):
        text = format_sync_result(
            SyncResult(success=False, conflicts=[_conflict()]), "push-all"
        )

        assert text.startswith("push-all: FAILED")
        assert "Conflicts (resolve with keep-local or keep-remote):" in text
        assert (
            "  Sample API (col1) - local change at 2026-10-01T10:00:00+00:00"
            in text
        )
        assert "Errors:" not in text

    def test_errors_section(self):
        text = format_sync_result(
            SyncResult(success=False, errors=["Sample API: remote unreachable"])
        )

        assert text.startswith("Sync: FAILED")
        assert text.endswith("Errors:\n  Sample API: remote unreachable")


# ---------------------------------------------------------------------------
# result_to_json
# ---------------------------------------------------------------------------


class TestResultToJson:
    def test_structure(self):
        result = SyncResult(
            success=False,
            message="Pushed 1 collection(s), 1 failed",
            pushed=1,
            conflicts=[_conflict()],
            errors=["Other: boom"],
        )

        data = result_to_json(result)

        assert data["summary"] == {
            "pulled": 0,
            "pushed": 1,
            "conflicts": 1,
            "errors": 1,
        }
        assert data["conflicts"][0]["collection_id"] == "col1"
        assert data["conflicts"][0]["remote_updated_at"] is None
        assert data["errors"] == ["Other: boom"]
        json.dumps(data)
