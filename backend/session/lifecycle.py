"""
Session lifecycle.

Responsibilities:
- Start / end guidance sessions
- Configure the generation adapter from a session-scoped config
- Generate the opaque session identifier (correlation only)
- Keep the SessionRecord of the current session
- Report completed records to the shared SessionHistory
- Translate collaborator callbacks into orchestrator events

Non-responsibilities:
- Channel state machines (reducer)
- Command execution (runtime)
- Transport (gateway)
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from enum import Enum
from uuid import uuid4

from adapters.llm.base import GuidanceAdapter
from context.persona import Persona
from observability.logger import log_event
from orchestrator.events import (
    ChatCleared,
    Event,
    EventType,
    FragmentReceived,
    SessionEnded,
    SessionStarted,
    UserMessageSubmitted,
)
from orchestrator.runtime import Runtime
from policy import SESSION_ID_HEX_LEN, SESSION_ID_PREFIX
from session.history import SessionHistory
from settings.store import SettingsStore


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def new_session_id() -> str:
    return f"{SESSION_ID_PREFIX}{uuid4().hex[:SESSION_ID_HEX_LEN]}"


# ---------------------------------------------------------------------
# Session config
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class SessionConfig:
    """
    Everything a session needs at start, passed explicitly.

    The persona carries the user-supplied context block.
    """
    persona: Persona
    api_key: str = ""

    @staticmethod
    def from_settings(
        store: SettingsStore,
        persona_key: str,
        *,
        api_key: str | None = None,
        custom_prompt: str | None = None,
        fallback_api_key: str | None = None,
    ) -> SessionConfig:
        """
        Resolve a config, explicit values first, then persisted settings.

        The API key falls back to `fallback_api_key` (environment) when
        neither the caller nor the store provides one.
        """
        persona = Persona.from_key(persona_key)

        if custom_prompt is None:
            custom_prompt = store.custom_prompt(persona)
        if not api_key:
            api_key = store.api_key() or fallback_api_key or ""

        return SessionConfig(
            persona=Persona(kind=persona.kind, custom_context=custom_prompt),
            api_key=api_key,
        )


# ---------------------------------------------------------------------
# Session record
# ---------------------------------------------------------------------

class SessionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


@dataclass(frozen=True)
class SessionRecord:
    """Bookkeeping for one session; not used by orchestration."""
    session_id: str
    persona: Persona
    started_at: float
    ended_at: float | None = None
    status: SessionStatus = SessionStatus.ACTIVE

    @property
    def duration_s(self) -> float:
        end = self.ended_at if self.ended_at is not None else time.time()
        return max(0.0, end - self.started_at)

    def as_dict(self) -> dict[str, object]:
        return {
            "session_id": self.session_id,
            "persona": self.persona.key,
            "display_name": self.persona.info.display_name,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "status": self.status.value,
            "duration_s": round(self.duration_s, 3),
        }


# ---------------------------------------------------------------------
# SessionLifecycle
# ---------------------------------------------------------------------

class SessionLifecycle:
    """
    Entry point for collaborators (transcription source, chat input, UI).

    Every call is turned into exactly one orchestrator event and sent
    through the runtime; nothing here mutates channel state directly.
    """

    def __init__(
        self,
        *,
        runtime: Runtime,
        guidance_client: GuidanceAdapter,
        history: SessionHistory | None = None,
    ) -> None:
        self._runtime = runtime
        self._client = guidance_client
        self._history = history
        self._record: SessionRecord | None = None

    @property
    def record(self) -> SessionRecord | None:
        return self._record

    @property
    def session_id(self) -> str | None:
        if self._record is None or self._record.status is not SessionStatus.ACTIVE:
            return None
        return self._record.session_id

    @property
    def is_active(self) -> bool:
        return self.session_id is not None

    async def start(self, config: SessionConfig) -> SessionRecord:
        """
        Start a new session.

        An active session is ended first. The adapter is configured
        before the SessionStarted event resets context and channels.
        """
        if self.is_active:
            await self.end()

        session_id = new_session_id()
        self._client.session_id = session_id
        self._client.configure(
            config.api_key,
            config.persona,
            config.persona.custom_context,
        )

        self._record = SessionRecord(
            session_id=session_id,
            persona=config.persona,
            started_at=time.time(),
        )

        await self._dispatch(
            SessionStarted(
                event_type=EventType.SESSION_STARTED,
                ts_ms=_now_ms(),
                session_id=session_id,
                persona=config.persona,
            )
        )
        return self._record

    async def end(self) -> SessionRecord | None:
        """
        End the active session.

        In-flight calls are not aborted; their results are discarded.
        Returns the completed record, or None when nothing was active.
        """
        record = self._record
        if record is None or record.status is not SessionStatus.ACTIVE:
            return None

        await self._dispatch(
            SessionEnded(
                event_type=EventType.SESSION_ENDED,
                ts_ms=_now_ms(),
                session_id=record.session_id,
            )
        )

        record = replace(record, ended_at=time.time(), status=SessionStatus.COMPLETED)
        self._record = record
        if self._history is not None:
            self._history.add(record)

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "session_completed",
            "session_id": record.session_id,
            "persona": record.persona.key,
            "duration_s": round(record.duration_s, 3),
        })
        return record

    async def on_fragment(self, text: str) -> None:
        await self._dispatch(
            FragmentReceived(
                event_type=EventType.FRAGMENT_RECEIVED,
                ts_ms=_now_ms(),
                text=text,
            )
        )

    async def on_user_message(self, text: str) -> None:
        await self._dispatch(
            UserMessageSubmitted(
                event_type=EventType.USER_MESSAGE_SUBMITTED,
                ts_ms=_now_ms(),
                text=text,
            )
        )

    async def clear_chat(self) -> None:
        """Clear the visible transcript; context turns are kept."""
        await self._dispatch(
            ChatCleared(event_type=EventType.CHAT_CLEARED, ts_ms=_now_ms())
        )

    async def _dispatch(self, event: Event) -> None:
        await self._runtime.handle_event(event)
