"""
Chat transcript message model.

Messages are what the user reads in the chat thread. They are distinct
from context Turns, although every successful AI reply also produces one.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from uuid import uuid4


class Sender(str, Enum):
    USER = "user"
    AI = "ai"


@dataclass(frozen=True)
class Message:
    """One entry of the append-only chat transcript."""
    content: str
    sender: Sender
    # True for a user message whose request failed; the user may resend it
    failed: bool = False
    id: str = field(default_factory=lambda: uuid4().hex)
    timestamp: float = field(default_factory=time.time)

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "sender": self.sender.value,
            "failed": self.failed,
            "timestamp": self.timestamp,
        }
