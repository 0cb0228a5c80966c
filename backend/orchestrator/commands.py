"""
Side-effect command definitions for the orchestrator (v1).

Rules:
- Commands are declarative requests for side effects.
- Commands are emitted by the reducer and executed by the runtime.
- No behavior, no async, no I/O, no clocks.
- Reducer logic remains pure and deterministic.
Invariant:
    - All concrete Command subclasses MUST be frozen dataclasses.
    - Commands are immutable value objects emitted by the reducer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from adapters.llm.errors import GuidanceError
from context.messages import Sender
from orchestrator.enums.channel import Channel

# =============================================================================
# Command Type Enumeration
# =============================================================================

class CommandType(str, Enum):
    """
    Canonical command types emitted by the reducer.

    These are stable discriminants used for logging, replay,
    and runtime dispatch.
    """

    # Generation
    SUBMIT_REQUEST = "SUBMIT_REQUEST"
    CANCEL_REQUEST = "CANCEL_REQUEST"

    # Context
    APPEND_TURN = "APPEND_TURN"
    RESET_CONTEXT = "RESET_CONTEXT"

    # Guidance surface
    NOTIFY_GUIDANCE = "NOTIFY_GUIDANCE"
    NOTIFY_GUIDANCE_ERROR = "NOTIFY_GUIDANCE_ERROR"

    # Chat transcript
    APPEND_MESSAGE = "APPEND_MESSAGE"
    SET_TYPING = "SET_TYPING"
    NOTIFY_CHAT_ERROR = "NOTIFY_CHAT_ERROR"
    CLEAR_TRANSCRIPT = "CLEAR_TRANSCRIPT"

    # Observability
    LOG_EVENT = "LOG_EVENT"


# =============================================================================
# Base Command
# =============================================================================

class Command:
    """
    Base command type.

    command_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """

    command_type: CommandType


# =============================================================================
# Generation Commands
# =============================================================================

@dataclass(frozen=True)
class SubmitRequest(Command):
    """
    Request to start one generation call for a channel.

    The runtime renders prompts from the context snapshot at execution
    time, so turns appended earlier in the same command batch are visible.
    The runtime must inject exactly one RequestResolved in response.
    """
    channel: Channel
    request_id: int
    session_id: str
    input_text: str
    command_type: CommandType = CommandType.SUBMIT_REQUEST


@dataclass(frozen=True)
class CancelRequest(Command):
    """
    Best-effort cancellation of an in-flight call.

    The network call is not aborted; its result is discarded on arrival.
    """
    channel: Channel
    request_id: int
    command_type: CommandType = CommandType.CANCEL_REQUEST


# =============================================================================
# Context Commands
# =============================================================================

@dataclass(frozen=True)
class AppendTurn(Command):
    """Append one resolved exchange to the context store."""
    input_text: str
    response_text: str
    command_type: CommandType = CommandType.APPEND_TURN


@dataclass(frozen=True)
class ResetContext(Command):
    """Clear the context store, binding it to session_id (None on end)."""
    session_id: str | None
    command_type: CommandType = CommandType.RESET_CONTEXT


# =============================================================================
# Guidance Surface Commands
# =============================================================================

@dataclass(frozen=True)
class NotifyGuidance(Command):
    """Show new guidance text."""
    text: str
    command_type: CommandType = CommandType.NOTIFY_GUIDANCE


@dataclass(frozen=True)
class NotifyGuidanceError(Command):
    """Surface a guidance-channel failure."""
    error: GuidanceError
    command_type: CommandType = CommandType.NOTIFY_GUIDANCE_ERROR


# =============================================================================
# Chat Transcript Commands
# =============================================================================

@dataclass(frozen=True)
class AppendMessage(Command):
    """
    Append one message to the visible chat transcript.

    Message id and timestamp are assigned by the runtime.
    """
    content: str
    sender: Sender
    failed: bool = False
    command_type: CommandType = CommandType.APPEND_MESSAGE


@dataclass(frozen=True)
class SetTyping(Command):
    """Assert or clear the synthetic typing indicator."""
    typing: bool
    command_type: CommandType = CommandType.SET_TYPING


@dataclass(frozen=True)
class NotifyChatError(Command):
    """Surface a chat-channel failure."""
    error: GuidanceError
    command_type: CommandType = CommandType.NOTIFY_CHAT_ERROR


@dataclass(frozen=True)
class ClearTranscript(Command):
    """Clear the visible chat transcript (context store is untouched)."""
    command_type: CommandType = CommandType.CLEAR_TRANSCRIPT


# =============================================================================
# Observability Commands
# =============================================================================

@dataclass(frozen=True)
class LogEvent(Command):
    """Request to emit a structured observability event."""
    event: dict[str, Any]
    command_type: CommandType = CommandType.LOG_EVENT
