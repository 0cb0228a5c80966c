"""
Unified event definitions for the orchestrator reducer (v1).

Rules:
- Events describe facts that have occurred.
- Events carry data only (no behavior).
- All reducer decisions are based on these events.
- No clocks, no timers, no async, no side effects.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from adapters.llm.errors import GuidanceResult
from context.persona import Persona
from orchestrator.enums.channel import Channel


# =============================================================================
# Event Type Enumeration
# =============================================================================

class EventType(str, Enum):
    """
    Canonical event types understood by the reducer.

    Every event_type must be explicitly handled
    or explicitly ignored by the reducer.
    """

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    SESSION_STARTED = "SESSION_STARTED"
    SESSION_ENDED = "SESSION_ENDED"

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------
    FRAGMENT_RECEIVED = "FRAGMENT_RECEIVED"
    USER_MESSAGE_SUBMITTED = "USER_MESSAGE_SUBMITTED"
    CHAT_CLEARED = "CHAT_CLEARED"

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------
    REQUEST_RESOLVED = "REQUEST_RESOLVED"


# =============================================================================
# Base Event
# =============================================================================

@dataclass(frozen=True)
class Event:
    """
    Base event type.

    All events must specify:
    - event_type: discriminant
    - ts_ms: timestamp provided by the source (or fake in tests)
    """

    event_type: EventType
    ts_ms: int


# =============================================================================
# Session Events
# =============================================================================

@dataclass(frozen=True)
class SessionStarted(Event):
    """A session began with the given persona."""
    session_id: str
    persona: Persona


@dataclass(frozen=True)
class SessionEnded(Event):
    """The active session ended."""
    session_id: str


# =============================================================================
# Input Events
# =============================================================================

@dataclass(frozen=True)
class FragmentReceived(Event):
    """
    Transcription source emitted a (possibly revised) fragment.

    May be empty or whitespace-only; the reducer ignores those.
    """
    text: str


@dataclass(frozen=True)
class UserMessageSubmitted(Event):
    """User explicitly sent a chat message."""
    text: str


@dataclass(frozen=True)
class ChatCleared(Event):
    """User cleared the visible chat transcript."""


# =============================================================================
# Generation Events
# =============================================================================

@dataclass(frozen=True)
class RequestResolved(Event):
    """
    A submitted generation call finished.

    The reducer MUST ignore results whose request_id is not the channel's
    pending request, or whose session_id is not the active session.
    """
    channel: Channel
    request_id: int
    session_id: str
    result: GuidanceResult
