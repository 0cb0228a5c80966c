"""
Runtime execution shell for the guidance pipeline.

Responsibilities:
- Own orchestrator state
- Call pure reducer
- Execute commands with side effects (generation calls, context, sinks)
- Track in-flight requests and discard results of cancelled ones
- Convert finished generation calls into RequestResolved events

Non-responsibilities:
- Orchestration decisions (reducer)
- Transport concerns (gateway / routes)
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from adapters.llm.errors import GuidanceErrorKind, GuidanceResult
from context.messages import Message
from context.serialization import build_system_prompt, build_user_prompt
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
from orchestrator.enums.channel import Channel
from orchestrator.events import Event, EventType, RequestResolved
from orchestrator.reducer import reduce
from orchestrator.state_dataclass import OrchestratorState

from observability.logger import log_event


if TYPE_CHECKING:
    from orchestrator.runtime_context import RuntimeExecutionContext


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


@dataclass
class InFlightRequest:
    """
    Runtime-side record of a submitted generation call.

    `cancelled` is set when the session ends while the call is running;
    the result is then dropped on arrival.
    """
    channel: Channel
    request_id: int
    session_id: str
    input_text: str
    task: asyncio.Task[None] | None = None
    cancelled: bool = False


class Runtime:
    """
    Runtime execution boundary for the guidance pipeline.

    Responsibilities:
    - Own the authoritative orchestrator state
    - Act as the universal event sink
      (lifecycle, transcription, chat input, generation results)
    - Invoke the pure reducer deterministically
    - Execute emitted commands with side effects

    Guarantees:
    - Reducer is always called exactly once per incoming event
    - Events are serialized: one event is reduced and its commands
      executed before the next event is looked at
    - All side effects occur *after* state has been updated
    - Generation calls run as background tasks; their completion
      re-enters through handle_event (single entry point)
    """

    def __init__(
        self,
        *,
        initial_state: OrchestratorState,
        context: RuntimeExecutionContext,
    ) -> None:
        self._state = initial_state
        self._ctx = context
        self._lock = asyncio.Lock()
        self._in_flight: dict[tuple[Channel, int], InFlightRequest] = {}

    @property
    def state(self) -> OrchestratorState:
        """
        Return the current immutable orchestrator state.

        Consumers must never modify this state directly.
        """
        return self._state

    def in_flight_count(self, channel: Channel | None = None) -> int:
        """Number of generation calls still running (optionally per channel)."""
        return sum(
            1 for req in self._in_flight.values()
            if channel is None or req.channel is channel
        )

    async def handle_event(self, event: Event) -> None:
        """
        Process a single event through the orchestration pipeline.

        Processing steps:
        1. Pass the current state and event to the pure reducer
        2. Atomically swap in the new orchestrator state
        3. Execute all emitted commands sequentially

        This method is the *only* entry point for events affecting
        orchestrator state. Concurrent callers are serialized by a lock,
        so sinks invoked from command execution must not call back in.
        """
        async with self._lock:
            new_state, commands = reduce(self._state, event)
            self._state = new_state

            for cmd in commands:
                await self._execute_command(cmd)

    async def wait_idle(self) -> None:
        """Wait until every in-flight generation call has been resolved."""
        while self._in_flight:
            tasks = [req.task for req in self._in_flight.values() if req.task is not None]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    async def shutdown(self) -> None:
        """
        Clean shutdown of runtime.

        Cancels all in-flight request tasks and waits for them to finish.
        Nothing is delivered for cancelled tasks.
        """
        tasks: list[asyncio.Task[None]] = []
        for req in self._in_flight.values():
            req.cancelled = True
            if req.task is not None:
                req.task.cancel()
                tasks.append(req.task)

        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Command execution (side effects)
    # ------------------------------------------------------------------

    async def _execute_command(self, cmd: Command) -> None:
        """Execute a single command with side effects."""

        if isinstance(cmd, LogEvent):
            log_event(cmd.event)

        elif isinstance(cmd, SubmitRequest):
            self._start_request(cmd)

        elif isinstance(cmd, CancelRequest):
            req = self._in_flight.get((cmd.channel, cmd.request_id))
            if req is None:
                return
            req.cancelled = True
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "request_cancel_executed",
                "session_id": req.session_id,
                "channel": cmd.channel.value,
                "request_id": cmd.request_id,
            })

        elif isinstance(cmd, AppendTurn):
            store = self._ctx.context_store
            store.append_turn(cmd.input_text, cmd.response_text)
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "turn_committed",
                "session_id": self._state.session_id,
                "turn_count": len(store),
            })

        elif isinstance(cmd, ResetContext):
            self._ctx.context_store.reset(cmd.session_id)

        # ------------------------------------------------------------
        # Guidance surface
        # ------------------------------------------------------------

        elif isinstance(cmd, NotifyGuidance):
            await self._notify(
                "guidance_updated",
                self._ctx.guidance_surface.on_guidance_updated,
                cmd.text,
            )

        elif isinstance(cmd, NotifyGuidanceError):
            await self._notify(
                "guidance_error",
                self._ctx.guidance_surface.on_guidance_error,
                cmd.error,
            )

        # ------------------------------------------------------------
        # Chat transcript
        # ------------------------------------------------------------

        elif isinstance(cmd, AppendMessage):
            message = Message(content=cmd.content, sender=cmd.sender, failed=cmd.failed)
            await self._notify(
                "message_appended",
                self._ctx.chat_transcript.on_message_appended,
                message,
            )

        elif isinstance(cmd, SetTyping):
            await self._notify(
                "typing_changed",
                self._ctx.chat_transcript.on_typing_changed,
                cmd.typing,
            )

        elif isinstance(cmd, NotifyChatError):
            await self._notify(
                "chat_error",
                self._ctx.chat_transcript.on_chat_error,
                cmd.error,
            )

        elif isinstance(cmd, ClearTranscript):
            await self._notify(
                "transcript_cleared",
                self._ctx.chat_transcript.on_transcript_cleared,
            )

        else:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "UNKNOWN_COMMAND",
                "command": type(cmd).__name__,
            })

    # ------------------------------------------------------------------
    # Generation requests
    # ------------------------------------------------------------------

    def _start_request(self, cmd: SubmitRequest) -> None:
        """
        Render prompts from the current context snapshot and start the call.

        Returns immediately; the call runs as a background task.
        """
        persona = self._state.persona
        assert persona is not None, "SubmitRequest without an active persona"

        system_prompt = build_system_prompt(persona)
        user_prompt = build_user_prompt(
            cmd.input_text,
            self._ctx.context_store.recent_context(),
            is_chat_message=cmd.channel is Channel.CHAT,
        )

        key = (cmd.channel, cmd.request_id)
        req = InFlightRequest(
            channel=cmd.channel,
            request_id=cmd.request_id,
            session_id=cmd.session_id,
            input_text=cmd.input_text,
        )
        self._in_flight[key] = req

        task = asyncio.create_task(self._run_request(req, system_prompt, user_prompt))
        req.task = task

        # Cleanup when done
        def _cleanup(_: asyncio.Task[None]) -> None:
            self._in_flight.pop(key, None)

        task.add_done_callback(_cleanup)

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "request_submit_executed",
            "session_id": cmd.session_id,
            "channel": cmd.channel.value,
            "request_id": cmd.request_id,
            "user_prompt_len": len(user_prompt),
        })

    async def _run_request(
        self,
        req: InFlightRequest,
        system_prompt: str,
        user_prompt: str,
    ) -> None:
        """
        Internal request task.

        Guarantees:
        - Emits at most one RequestResolved, only for its own request_id
        - Never lets an adapter exception escape
        """
        try:
            result = await self._ctx.guidance_client.generate(
                system_prompt=system_prompt,
                user_prompt=user_prompt,
            )
        except asyncio.CancelledError:
            # Runtime shutdown; nothing is delivered
            return
        except Exception as exc:  # pylint: disable=broad-exception-caught
            result = GuidanceResult.failure(
                GuidanceErrorKind.REQUEST_FAILED,
                f"{type(exc).__name__}: {exc}",
            )

        if req.cancelled:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "request_result_discarded",
                "session_id": req.session_id,
                "channel": req.channel.value,
                "request_id": req.request_id,
                "reason": GuidanceErrorKind.CANCELLED.value,
            })
            return

        await self.handle_event(
            RequestResolved(
                event_type=EventType.REQUEST_RESOLVED,
                ts_ms=_now_ms(),
                channel=req.channel,
                request_id=req.request_id,
                session_id=req.session_id,
                result=result,
            )
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _notify(
        self,
        sink: str,
        fn: Callable[..., Awaitable[Any]],
        *args: Any,
    ) -> None:
        """Invoke a UI sink; a failing sink is logged, never propagated."""
        try:
            await fn(*args)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "sink_error",
                "session_id": self._state.session_id,
                "sink": sink,
                "exception": type(exc).__name__,
                "message": str(exc),
            })
