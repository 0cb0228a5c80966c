"""
Runtime execution context.

Provides Runtime with live access to session-owned imperative resources
needed for command execution and side effects (adapter, context, sinks).

This module contains:
- Narrow Protocols (capabilities, not implementations)
- Zero orchestration logic
- Zero state mutation
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from adapters.llm.errors import GuidanceError, GuidanceResult
    from context.conversation import ContextStore
    from context.messages import Message


# ---------------------------------------------------------------------
# Adapter Protocol
# ---------------------------------------------------------------------

@runtime_checkable
class GuidanceAdapterProtocol(Protocol):
    async def generate(self, *, system_prompt: str, user_prompt: str) -> GuidanceResult: ...


# ---------------------------------------------------------------------
# Sink Protocols
# ---------------------------------------------------------------------

@runtime_checkable
class GuidanceSurfaceProtocol(Protocol):
    """
    Live guidance display.

    Contract:
    - Called from inside the runtime's serialized section; implementations
      must not feed events back into the runtime synchronously.
    """

    async def on_guidance_updated(self, text: str) -> None: ...
    async def on_guidance_error(self, error: GuidanceError) -> None: ...


@runtime_checkable
class ChatTranscriptProtocol(Protocol):
    """
    Threaded chat display.

    Contract:
    - Messages arrive in transcript order
    - on_typing_changed(False) follows every on_typing_changed(True) once
    """

    async def on_message_appended(self, message: Message) -> None: ...
    async def on_typing_changed(self, typing: bool) -> None: ...
    async def on_chat_error(self, error: GuidanceError) -> None: ...
    async def on_transcript_cleared(self) -> None: ...


# ---------------------------------------------------------------------
# Runtime Execution Context
# ---------------------------------------------------------------------

class RuntimeExecutionContext:
    """
    Imperative execution context for Runtime.

    This object bundles the resources Runtime needs so it does not
    construct or cache anything itself.

    Runtime is allowed to:
    - Call the adapter
    - Append to / reset the context store
    - Notify sinks

    Runtime is NOT allowed to:
    - Perform orchestration decisions
    """

    def __init__(
        self,
        *,
        context_store: ContextStore,
        guidance_client: GuidanceAdapterProtocol,
        guidance_surface: GuidanceSurfaceProtocol,
        chat_transcript: ChatTranscriptProtocol,
    ) -> None:
        self.context_store = context_store
        self.guidance_client = guidance_client
        self.guidance_surface = guidance_surface
        self.chat_transcript = chat_transcript
