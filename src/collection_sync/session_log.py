"""Session log: an in-memory ring buffer of user-visible sync events.

This is the engine's fire-and-forget logging sink.  Entries are kept newest
first and capped at ``max_entries``; each one is also forwarded to the
standard ``logging`` hierarchy so file/stderr handlers see it too.
"""

from __future__ import annotations

import logging
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel

logger = logging.getLogger(__name__)

LogCategory = Literal["sync", "http", "system"]

DEFAULT_MAX_ENTRIES = 500


class SessionLogEntry(BaseModel):
    """One session log line.

    Attributes:
        id: Unique entry id.
        category: Subsystem that produced the entry.
        type: Operation within the category (``pull``, ``push`` ...).
        target: What the operation acted on (collection or request name).
        message: Human-readable outcome.
        success: Whether the operation succeeded.
        timestamp: ISO 8601 UTC timestamp.
    """

    id: str
    category: LogCategory
    type: str
    target: str
    message: str
    success: bool = True
    timestamp: str

    model_config = {"frozen": True}


class SessionLog:
    """Bounded, newest-first log of sync events."""

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        self._entries: deque[SessionLogEntry] = deque(maxlen=max_entries)

    def add(
        self,
        category: LogCategory,
        type: str,
        target: str,
        message: str,
        success: bool = True,
    ) -> SessionLogEntry:
        entry = SessionLogEntry(
            id=str(uuid.uuid4()),
            category=category,
            type=type,
            target=target,
            message=message,
            success=success,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
        self._entries.appendleft(entry)

        level = logging.INFO if success else logging.WARNING
        logger.log(level, "[%s:%s] %s: %s", category, type, target, message)
        return entry

    def log_sync(
        self, type: str, target: str, message: str, success: bool = True
    ) -> SessionLogEntry:
        """Shorthand for ``add("sync", ...)``."""
        return self.add("sync", type, target, message, success)

    def entries(self) -> list[SessionLogEntry]:
        """Return a snapshot of the log, newest first."""
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
