"""
Request ID container for the versioned channels.

Rules:
- Request IDs are monotonic integers.
- They are owned and incremented ONLY by the orchestrator reducer.
- They are never reset, not even across sessions, so a late result from
  an ended session can never match a new pending request.
- This module defines structure, not behavior.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RequestIds:
    """
    Immutable container for the last issued request ID per channel.

    Semantics:
    - A value of 0 means "no request has been submitted yet".
    - Once a request ID is issued, it is never reused.
    """

    guidance: int = 0
    chat: int = 0
