"""
Channel enumeration for the two independent input/response pipelines.

Rules:
- This enum identifies channels only.
- It must NOT encode behavior or lifecycle rules.
- Reducer logic decides how each channel submits, coalesces and queues.
"""

from __future__ import annotations

from enum import Enum


class Channel(str, Enum):
    """
    Input/response pipelines managed by the orchestrator.

    Each channel:
    - Has at most one pending request at a time
    - Is identified on the wire by a monotonically increasing request_id
    """

    GUIDANCE = "GUIDANCE"
    CHAT = "CHAT"


class SubmitPolicy(str, Enum):
    """
    What a channel does with input that arrives while a request is pending.

    COALESCE:
        Keep only the latest input; superseded intermediate values are
        discarded (continuously revised transcription).

    QUEUE:
        Keep every input in FIFO order (discrete chat messages).
    """

    COALESCE = "COALESCE"
    QUEUE = "QUEUE"
