"""Sync result formatting functions.

Provides human-readable and machine-readable output for sync operations:

- ``format_sync_result`` -- summary for the terminal.
- ``result_to_json`` -- structured dict for ``--json`` output.
"""

from __future__ import annotations

from .models import SyncResult


def format_sync_result(result: SyncResult, title: str = "Sync") -> str:
    """Format a ``SyncResult`` as human-readable text.

    Sections for conflicts and errors are only included when non-empty.

    Args:
        result: Outcome of a pull, push or resolution.
        title: Operation name shown in the header.

    Returns:
        Multi-line formatted string.
    """
    status = "OK" if result.success else "FAILED"
    lines = [
        f"{title}: {status}",
        f"  {result.message}" if result.message else "",
        f"  Pulled:    {result.pulled}",
        f"  Pushed:    {result.pushed}",
        f"  Conflicts: {len(result.conflicts)}",
    ]
    lines = [line for line in lines if line]

    if result.conflicts:
        lines.append("")
        lines.append("Conflicts (resolve with keep-local or keep-remote):")
        for conflict in result.conflicts:
            detail = f"  {conflict.collection_name} ({conflict.collection_id})"
            if conflict.local_updated_at:
                detail += f" - local change at {conflict.local_updated_at}"
            lines.append(detail)

    if result.errors:
        lines.append("")
        lines.append("Errors:")
        lines.extend(f"  {error}" for error in result.errors)

    return "\n".join(lines)


def result_to_json(result: SyncResult) -> dict:
    """Convert a ``SyncResult`` to a plain dict for JSON output."""
    return {
        "success": result.success,
        "message": result.message,
        "summary": {
            "pulled": result.pulled,
            "pushed": result.pushed,
            "conflicts": len(result.conflicts),
            "errors": len(result.errors),
        },
        "conflicts": [c.model_dump() for c in result.conflicts],
        "errors": list(result.errors),
    }
