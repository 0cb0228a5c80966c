"""
Guidance connection container.

- Owns the context store, runtime and lifecycle for one connection
- Owns connection status (mutable, gateway-controlled)
- Mirrors what the UI currently shows (guidance text, transcript, typing)
- Buffers outbound control messages until the gateway sends them
- NOT a state machine
- Contains no orchestration logic
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any

from adapters.llm.base import GuidanceAdapter
from context.conversation import ContextStore
from context.messages import Message
from orchestrator.runtime import Runtime
from policy import GUIDANCE_PLACEHOLDER
from session.connection_status import ConnectionStatus
from session.lifecycle import SessionLifecycle


@dataclass
class GuidanceSession:
    """Mutable runtime container for a single guidance connection."""

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    connection_id: str
    created_at: float = field(default_factory=time.time)

    # ------------------------------------------------------------------
    # Connection / gateway-controlled state
    # ------------------------------------------------------------------

    connection_status: ConnectionStatus = ConnectionStatus.DOWN

    # ------------------------------------------------------------------
    # Context store (imperative, written only by the runtime)
    # ------------------------------------------------------------------

    context_store: ContextStore = field(default_factory=ContextStore)

    # ------------------------------------------------------------------
    # UI mirror (written only by the sinks)
    # ------------------------------------------------------------------

    latest_guidance: str = GUIDANCE_PLACEHOLDER
    transcript: list[Message] = field(default_factory=list)
    typing: bool = False

    # ------------------------------------------------------------------
    # Wired collaborators
    # ------------------------------------------------------------------

    guidance_client: GuidanceAdapter | None = None
    runtime: Runtime | None = None
    lifecycle: SessionLifecycle | None = None

    def __post_init__(self) -> None:
        self._control_out: deque[dict[str, Any]] = deque()
        self._control_ready = asyncio.Event()

    # ------------------------------------------------------------------
    # Wiring helpers (called by SessionGateway)
    # ------------------------------------------------------------------

    def attach_guidance_client(self, client: GuidanceAdapter) -> None:
        self.guidance_client = client

    def attach_runtime(self, runtime: Runtime) -> None:
        """
        Attach the runtime executor.

        Must be called after the guidance client is attached.
        """
        self.runtime = runtime

    def attach_lifecycle(self, lifecycle: SessionLifecycle) -> None:
        self.lifecycle = lifecycle

    # ------------------------------------------------------------------
    # Observability helpers (read-only)
    # ------------------------------------------------------------------

    def log_context(self) -> dict[str, Any]:
        """Standard logging context for this connection."""
        return {
            "connection_id": self.connection_id,
            "session_id": self.lifecycle.session_id if self.lifecycle else None,
            "connection_status": self.connection_status.value,
        }

    # ------------------------------------------------------------------
    # Outbound control messages
    # ------------------------------------------------------------------

    def enqueue_control(self, msg: dict[str, Any]) -> None:
        """
        Enqueue a control message for gateway delivery to the client.

        Messages are buffered in FIFO order and later retrieved via
        drain_control().
        """
        self._control_out.append(msg)
        self._control_ready.set()

    def drain_control(self) -> tuple[dict[str, Any], ...]:
        """
        Atomically drain all pending control messages.

        Returns an empty tuple if no messages are pending.
        After this call, the control queue is empty.
        """
        self._control_ready.clear()
        if not self._control_out:
            return ()
        out = tuple(self._control_out)
        self._control_out.clear()
        return out

    async def wait_control(self) -> None:
        """Block until at least one control message has been enqueued."""
        await self._control_ready.wait()
