"""
Guidance adapter contract (v1).

Purpose:
- Define the interface for single-shot text generation.
- Keep all orchestration, queueing and cancellation semantics
  OUT of the adapter.

Rules:
- This file contains NO logic.
- No retries.
- No knowledge of channels, UI, or the state machine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from adapters.llm.errors import GuidanceResult
from context.persona import Persona


class GuidanceAdapter(ABC):
    """
    Abstract base class for generation adapters.

    The adapter is a *dumb pipe*:
    prompts -> vendor -> GuidanceResult.

    Orchestrator responsibilities (NOT here):
    - When to submit
    - Coalescing / queueing
    - Discarding results of cancelled requests
    - Context construction
    - What to do with the response
    """

    # Correlation id for adapter logs; rebound by the session lifecycle
    session_id: str | None = None

    @abstractmethod
    def configure(self, api_key: str, persona: Persona, custom_prompt: str = "") -> None:
        """
        Bind the credential for subsequent calls.

        Must be called (or re-called) before generate(). The persona and
        custom prompt are informational; prompts arrive fully rendered.
        """
        raise NotImplementedError

    @abstractmethod
    async def generate(self, *, system_prompt: str, user_prompt: str) -> GuidanceResult:
        """
        Execute one generation call.

        Contract:
        - Must NOT retry internally.
        - Must NOT raise for transport, status or payload failures;
          those are returned as GuidanceResult errors.
        - An empty credential fails fast with MISSING_CREDENTIAL and
          performs no network call.
        """
        raise NotImplementedError

    @abstractmethod
    async def aclose(self) -> None:
        """Release transport resources. Idempotent."""
        raise NotImplementedError
