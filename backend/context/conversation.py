"""
Conversation context store.

Responsibilities:
- Store ordered input/response turns for the active session
- Render the recent-history block injected into guidance prompts
- Reset atomically at session start and end

Non-responsibilities:
- No reducer logic
- No prompt assembly beyond the history block
- No persistence (history lives for the process lifetime only)
"""

from __future__ import annotations

import time
from dataclasses import dataclass

from observability.logger import log_event
from policy import CONTEXT_HEADER, RECENT_CONTEXT_TURNS


@dataclass(frozen=True)
class Turn:
    """One resolved input/response exchange."""
    input_text: str
    response_text: str
    timestamp: float


class ContextStore:
    """
    Mutable conversation context owned by the runtime.

    This object is intentionally imperative:
    - Reducer decides *when* to append turns
    - This class decides *how* history is rendered

    Invariants:
    - Turns are stored in insertion order, oldest first
    - Turns are appended, never edited or reordered
    - reset() replaces the whole sequence in one assignment
    """

    def __init__(self, session_id: str | None = None) -> None:
        self._session_id = session_id
        self._turns: list[Turn] = []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def session_id(self) -> str | None:
        return self._session_id

    def reset(self, session_id: str | None = None) -> None:
        """Drop all turns and rebind to a (possibly new) session."""
        dropped = len(self._turns)
        self._turns = []
        self._session_id = session_id
        log_event({
            "event_type": "context_reset",
            "session_id": session_id,
            "dropped_turns": dropped,
        })

    def append_turn(
        self,
        input_text: str,
        response_text: str,
        timestamp: float | None = None,
    ) -> Turn:
        """Append one turn. Always succeeds."""
        turn = Turn(
            input_text=input_text,
            response_text=response_text,
            timestamp=time.time() if timestamp is None else timestamp,
        )
        self._turns.append(turn)
        return turn

    def snapshot(self) -> tuple[Turn, ...]:
        """Return an immutable copy of all turns, oldest first."""
        return tuple(self._turns)

    def recent_context(self, max_turns: int = RECENT_CONTEXT_TURNS) -> str:
        """
        Render the last `max_turns` turns as a history block.

        Output format:
            Previous conversation context:
            <input 1>
            <input 2>
            ...

        Whitespace-only inputs are filtered after the window is taken, so a
        blank turn still occupies one of the `max_turns` slots.
        Returns "" when no qualifying turn exists.
        """
        if max_turns <= 0:
            return ""

        window = self._turns[-max_turns:]
        inputs = [t.input_text for t in window if t.input_text.strip()]
        if not inputs:
            return ""

        return CONTEXT_HEADER + "\n" + "\n".join(inputs)

    def __len__(self) -> int:
        return len(self._turns)
