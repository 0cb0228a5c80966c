"""
Authoritative orchestrator state container.

Rules:
- This dataclass is a pure data model.
- It contains ALL state the reducer may ever need.
- No behavior, no helpers, no derived logic.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from adapters.llm.errors import GuidanceError
from context.persona import Persona
from orchestrator.enums.state import ChannelState
from orchestrator.run_ids import RequestIds


# =============================================================================
# Pending Request
# =============================================================================

@dataclass(frozen=True)
class PendingRequest:
    """
    The single submitted-but-unresolved request of a channel.

    Lifecycle:
    - Created when a channel in IDLE accepts input
    - Resolved or failed exactly once, then discarded
    """
    request_id: int
    input_text: str
    submitted_at_ms: int


# =============================================================================
# Channel Slot
# =============================================================================

@dataclass(frozen=True)
class ChannelSlot:
    """
    Per-channel state.

    Invariant: state is PENDING iff pending is not None.
    """
    state: ChannelState = ChannelState.IDLE
    pending: PendingRequest | None = None

    # COALESCE channels: latest non-empty input received while PENDING
    latest_input: str | None = None

    # QUEUE channels: inputs received while PENDING, oldest first
    queued: tuple[str, ...] = ()


# =============================================================================
# Orchestrator State
# =============================================================================

@dataclass(frozen=True)
class OrchestratorState:
    """Immutable snapshot of all orchestrator-owned state."""

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------
    # None when no session is active; all input is ignored then
    session_id: str | None = None
    persona: Persona | None = None

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------
    guidance: ChannelSlot = field(default_factory=ChannelSlot)
    chat: ChannelSlot = field(default_factory=ChannelSlot)

    # ------------------------------------------------------------------
    # Request/version tracking
    # ------------------------------------------------------------------
    request_ids: RequestIds = field(default_factory=RequestIds)

    # ------------------------------------------------------------------
    # Error handling
    # ------------------------------------------------------------------
    last_error: GuidanceError | None = None
