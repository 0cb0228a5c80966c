"""
Completed-session history for the recent-sessions summary.

Process-wide and in memory only: totals restart with the server.
"""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING, Any

from policy import RECENT_SESSIONS_MAX

if TYPE_CHECKING:
    from session.lifecycle import SessionRecord


class SessionHistory:
    """Keeps the most recent completed sessions plus running totals."""

    def __init__(self, max_recent: int = RECENT_SESSIONS_MAX) -> None:
        self._recent: deque[SessionRecord] = deque(maxlen=max_recent)
        self._total_sessions = 0
        self._total_seconds = 0.0

    def add(self, record: SessionRecord) -> None:
        self._recent.appendleft(record)
        self._total_sessions += 1
        self._total_seconds += record.duration_s

    def recent(self) -> tuple[SessionRecord, ...]:
        """Newest first."""
        return tuple(self._recent)

    def summary(self) -> dict[str, Any]:
        return {
            "total_sessions": self._total_sessions,
            "total_hours": round(self._total_seconds / 3600, 2),
            "recent": [record.as_dict() for record in self._recent],
        }
