"""
Pure orchestrator reducer.

(state, event) -> (new_state, commands)

Rules:
- Pure: no side effects, no IO, no clocks.
- Deterministic: output depends only on inputs.
- Total: every (state, event) pair is handled or explicitly ignored (logged).
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from adapters.llm.errors import GuidanceErrorKind
from context.messages import Sender
from orchestrator.commands import (
    AppendMessage,
    AppendTurn,
    CancelRequest,
    ClearTranscript,
    Command,
    LogEvent,
    NotifyChatError,
    NotifyGuidance,
    NotifyGuidanceError,
    ResetContext,
    SetTyping,
    SubmitRequest,
)
from orchestrator.enums.channel import Channel, SubmitPolicy
from orchestrator.enums.state import ChannelState
from orchestrator.events import (
    ChatCleared,
    Event,
    FragmentReceived,
    RequestResolved,
    SessionEnded,
    SessionStarted,
    UserMessageSubmitted,
)
from orchestrator.run_ids import RequestIds
from orchestrator.state_dataclass import (
    ChannelSlot,
    OrchestratorState,
    PendingRequest,
)


# =============================================================================
# Invariants
# =============================================================================
# - A channel holds at most one PendingRequest
# - Request IDs are bumped ONLY on submission, never on cancellation
# - Results for a request that is not the channel's pending one are ignored
# - Empty (post-trim) input never creates a request or a turn
# - Turns are appended only on success, before any follow-up submission

CHANNEL_POLICIES: dict[Channel, SubmitPolicy] = {
    Channel.GUIDANCE: SubmitPolicy.COALESCE,
    Channel.CHAT: SubmitPolicy.QUEUE,
}


# =============================================================================
# Small helpers
# =============================================================================

def _slot(state: OrchestratorState, channel: Channel) -> ChannelSlot:
    if channel is Channel.GUIDANCE:
        return state.guidance
    if channel is Channel.CHAT:
        return state.chat
    raise ValueError(channel)


def _with_slot(
    state: OrchestratorState,
    channel: Channel,
    slot: ChannelSlot,
) -> OrchestratorState:
    if channel is Channel.GUIDANCE:
        return replace(state, guidance=slot)
    if channel is Channel.CHAT:
        return replace(state, chat=slot)
    raise ValueError(channel)


def _bump_request_id(request_ids: RequestIds, channel: Channel) -> RequestIds:
    if channel is Channel.GUIDANCE:
        return replace(request_ids, guidance=request_ids.guidance + 1)
    if channel is Channel.CHAT:
        return replace(request_ids, chat=request_ids.chat + 1)
    raise ValueError(channel)


def _request_id_for(request_ids: RequestIds, channel: Channel) -> int:
    if channel is Channel.GUIDANCE:
        return request_ids.guidance
    if channel is Channel.CHAT:
        return request_ids.chat
    raise ValueError(channel)


def _log(
    state: OrchestratorState,
    event: Event,
    decision: str,
    details: dict[str, Any] | None = None,
    channel: Channel | None = None,
) -> LogEvent:
    return LogEvent(
        event={
            "ts_ms": event.ts_ms,
            "session_id": state.session_id,
            "event_type": event.event_type.value,
            "channel": channel.value if channel is not None else None,
            "decision": decision,
            "channel_states": {
                "guidance": state.guidance.state.value,
                "chat": state.chat.state.value,
            },
            "request_ids": {
                "guidance": state.request_ids.guidance,
                "chat": state.request_ids.chat,
            },
            "details": details or {},
        }
    )


def _state_changed(
    state: OrchestratorState,
    event: Event,
    channel: Channel,
    from_state: ChannelState,
    to_state: ChannelState,
    source: str,
) -> LogEvent:
    return _log(
        state,
        event,
        "state_changed",
        {
            "from_state": from_state.value,
            "to_state": to_state.value,
            "source": source,
        },
        channel,
    )


def _logs_last(commands: tuple[Command, ...]) -> tuple[Command, ...]:
    non_logs: list[Command] = []
    logs: list[Command] = []
    state_change_logs: list[Command] = []

    for command in commands:
        if isinstance(command, LogEvent):
            if command.event.get("decision") == "state_changed":
                state_change_logs.append(command)
            else:
                logs.append(command)
        else:
            non_logs.append(command)

    return tuple(non_logs + logs + state_change_logs)


def _ignore(
    state: OrchestratorState,
    event: Event,
    reason: str,
    channel: Channel | None = None,
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    return state, (_log(state, event, "ignore", {"reason": reason}, channel),)


# =============================================================================
# Submission
# =============================================================================

def _submit(
    state: OrchestratorState,
    event: Event,
    channel: Channel,
    text: str,
) -> tuple[OrchestratorState, list[Command]]:
    """
    IDLE -> PENDING with `text` as the request input.

    Callers guarantee the channel is IDLE and a session is active.
    """
    assert state.session_id is not None, "submit requires an active session"

    slot = _slot(state, channel)
    request_ids = _bump_request_id(state.request_ids, channel)
    request_id = _request_id_for(request_ids, channel)

    new_slot = replace(
        slot,
        state=ChannelState.PENDING,
        pending=PendingRequest(
            request_id=request_id,
            input_text=text,
            submitted_at_ms=event.ts_ms,
        ),
        latest_input=None,
    )
    new_state = _with_slot(replace(state, request_ids=request_ids), channel, new_slot)

    cmds: list[Command] = [
        SubmitRequest(
            channel=channel,
            request_id=request_id,
            session_id=state.session_id,
            input_text=text,
        ),
    ]
    if channel is Channel.CHAT:
        cmds.append(SetTyping(typing=True))

    cmds.append(
        _log(
            new_state,
            event,
            "submit_request",
            {"request_id": request_id, "input_len": len(text)},
            channel,
        )
    )
    cmds.append(
        _state_changed(
            new_state, event, channel, slot.state, ChannelState.PENDING, "submit"
        )
    )
    return new_state, cmds


def _accept_input(
    state: OrchestratorState,
    event: Event,
    channel: Channel,
    raw_text: str,
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    """
    New input for a channel.

    - Empty after trim: ignored
    - IDLE: submitted immediately
    - PENDING + COALESCE: replaces the buffered latest input
    - PENDING + QUEUE: appended to the FIFO queue
    """
    text = raw_text.strip()
    if not text:
        return _ignore(state, event, "empty_input", channel)

    slot = _slot(state, channel)

    if slot.state is ChannelState.PENDING:
        assert slot.pending is not None

        if CHANNEL_POLICIES[channel] is SubmitPolicy.COALESCE:
            new_state = _with_slot(state, channel, replace(slot, latest_input=text))
            return new_state, (
                _log(
                    new_state,
                    event,
                    "input_coalesced",
                    {
                        "pending_request_id": slot.pending.request_id,
                        "superseded_buffered": slot.latest_input is not None,
                    },
                    channel,
                ),
            )

        queued = slot.queued + (text,)
        new_state = _with_slot(state, channel, replace(slot, queued=queued))
        return new_state, (
            _log(
                new_state,
                event,
                "input_queued",
                {
                    "pending_request_id": slot.pending.request_id,
                    "queue_depth": len(queued),
                },
                channel,
            ),
        )

    new_state, cmds = _submit(state, event, channel, text)
    return new_state, _logs_last(tuple(cmds))


# =============================================================================
# Resolution
# =============================================================================

def _resolve(
    state: OrchestratorState,
    event: RequestResolved,
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    """
    PENDING -> IDLE (success) or PENDING -> FAILED -> IDLE (failure),
    then drain the channel backlog.
    """
    channel = event.channel

    if event.session_id != state.session_id:
        return _ignore(state, event, "stale_session", channel)

    slot = _slot(state, channel)
    pending = slot.pending
    if pending is None or pending.request_id != event.request_id:
        return _ignore(state, event, "stale_request", channel)

    result = event.result
    cmds: list[Command] = []
    from_state = ChannelState.PENDING
    last_error = state.last_error

    if result.error is None:
        text = result.text or ""
        if channel is Channel.GUIDANCE:
            cmds.append(AppendTurn(input_text=pending.input_text, response_text=text))
            cmds.append(NotifyGuidance(text=text))
        else:
            cmds.append(AppendMessage(content=pending.input_text, sender=Sender.USER))
            cmds.append(AppendMessage(content=text, sender=Sender.AI))
            cmds.append(AppendTurn(input_text=pending.input_text, response_text=text))

        cmds.append(
            _log(
                state,
                event,
                "request_succeeded",
                {
                    "request_id": pending.request_id,
                    "latency_ms": event.ts_ms - pending.submitted_at_ms,
                    "response_len": len(text),
                },
                channel,
            )
        )
    else:
        error = result.error
        last_error = error

        if error.kind is not GuidanceErrorKind.CANCELLED:
            if channel is Channel.GUIDANCE:
                cmds.append(NotifyGuidanceError(error=error))
            else:
                cmds.append(
                    AppendMessage(
                        content=pending.input_text,
                        sender=Sender.USER,
                        failed=True,
                    )
                )
                cmds.append(NotifyChatError(error=error))

        cmds.append(
            _log(
                state,
                event,
                "request_failed",
                {
                    "request_id": pending.request_id,
                    "kind": error.kind.value,
                    "status_code": error.status_code,
                    "detail": error.detail,
                },
                channel,
            )
        )
        cmds.append(
            _state_changed(
                state, event, channel,
                ChannelState.PENDING, ChannelState.FAILED, "request_failed",
            )
        )
        from_state = ChannelState.FAILED

    if channel is Channel.CHAT:
        cmds.append(SetTyping(typing=False))

    idle_slot = ChannelSlot(state=ChannelState.IDLE, queued=slot.queued)
    new_state = _with_slot(replace(state, last_error=last_error), channel, idle_slot)
    cmds.append(
        _state_changed(
            new_state, event, channel, from_state, ChannelState.IDLE, "request_resolved"
        )
    )

    # ------------------------------------------------------------------
    # Backlog drain
    # ------------------------------------------------------------------
    next_input: str | None = None

    if CHANNEL_POLICIES[channel] is SubmitPolicy.COALESCE:
        backlog = slot.latest_input
        if backlog is not None and backlog != pending.input_text:
            next_input = backlog
        elif backlog is not None:
            cmds.append(
                _log(new_state, event, "backlog_unchanged", {"request_id": pending.request_id}, channel)
            )
    elif idle_slot.queued:
        next_input = idle_slot.queued[0]
        new_state = _with_slot(
            new_state, channel, replace(idle_slot, queued=idle_slot.queued[1:])
        )

    if next_input is not None:
        new_state, submit_cmds = _submit(new_state, event, channel, next_input)
        cmds.extend(submit_cmds)

    return new_state, _logs_last(tuple(cmds))


# =============================================================================
# Session lifecycle
# =============================================================================

def _end_session(
    state: OrchestratorState,
    event: Event,
    source: str,
) -> tuple[OrchestratorState, list[Command]]:
    """
    Cancel outstanding requests, drop backlogs, clear context.

    Cancellation is best-effort: in-flight calls keep running and their
    results are discarded on arrival (stale_session / stale_request).
    """
    cmds: list[Command] = []
    dropped_inputs = 0

    for channel in Channel:
        slot = _slot(state, channel)
        dropped_inputs += len(slot.queued) + (1 if slot.latest_input is not None else 0)

        if slot.pending is None:
            continue

        cmds.append(CancelRequest(channel=channel, request_id=slot.pending.request_id))
        if channel is Channel.CHAT:
            cmds.append(SetTyping(typing=False))
        cmds.append(
            _log(
                state,
                event,
                "cancel_request",
                {"request_id": slot.pending.request_id, "source": source},
                channel,
            )
        )

    cmds.append(ResetContext(session_id=None))
    cmds.append(
        _log(
            state,
            event,
            "session_ended",
            {"source": source, "dropped_inputs": dropped_inputs},
        )
    )

    new_state = replace(
        state,
        session_id=None,
        persona=None,
        guidance=ChannelSlot(),
        chat=ChannelSlot(),
    )
    return new_state, cmds


def _start_session(
    state: OrchestratorState,
    event: SessionStarted,
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    cmds: list[Command] = []

    # Starting over an active session ends it first
    if state.session_id is not None:
        state, end_cmds = _end_session(state, event, "session_restarted")
        cmds.extend(end_cmds)

    new_state = replace(
        state,
        session_id=event.session_id,
        persona=event.persona,
        guidance=ChannelSlot(),
        chat=ChannelSlot(),
        last_error=None,
    )
    cmds.append(ResetContext(session_id=event.session_id))
    cmds.append(
        _log(new_state, event, "session_started", {"persona": event.persona.key})
    )
    return new_state, _logs_last(tuple(cmds))


# =============================================================================
# Reducer entrypoint
# =============================================================================

def reduce(
    state: OrchestratorState, event: Event
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    """
    Pure reducer for the guidance/chat channel state machines.

    Given the current orchestrator state and a single event, returns:
    - the next state
    - a tuple of commands describing required side effects

    Properties:
    - Deterministic: no IO, clocks, or randomness
    - Total: every (state, event) pair is handled or explicitly ignored
    - Version-safe: ignores results with stale request or session IDs
    """
    if isinstance(event, SessionStarted):
        return _start_session(state, event)

    if isinstance(event, SessionEnded):
        if state.session_id is None:
            return _ignore(state, event, "no_active_session")
        if event.session_id != state.session_id:
            return _ignore(state, event, "stale_session")
        new_state, cmds = _end_session(state, event, "session_end")
        return new_state, _logs_last(tuple(cmds))

    if state.session_id is None:
        return _ignore(state, event, "no_active_session")

    if isinstance(event, FragmentReceived):
        return _accept_input(state, event, Channel.GUIDANCE, event.text)

    if isinstance(event, UserMessageSubmitted):
        return _accept_input(state, event, Channel.CHAT, event.text)

    if isinstance(event, RequestResolved):
        return _resolve(state, event)

    if isinstance(event, ChatCleared):
        return state, (ClearTranscript(), _log(state, event, "chat_cleared", channel=Channel.CHAT))

    return _ignore(state, event, "unhandled_event")
