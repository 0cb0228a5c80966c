"""
Authoritative channel state enumeration.

Rules:
- This enum defines ONLY the per-channel control states.
- No behavior, no helper methods, no side effects.
- Transitions are defined exclusively in the reducer.
"""

from __future__ import annotations

from enum import Enum


class ChannelState(str, Enum):
    """
    Control state of one channel.

    FAILED is transient: the reducer surfaces the error and returns the
    channel to IDLE within the same reduction.
    """

    IDLE = "IDLE"
    PENDING = "PENDING"
    FAILED = "FAILED"
