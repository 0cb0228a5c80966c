"""
UI sinks backed by the connection's outbound control queue.

Each callback updates the session's UI mirror and enqueues exactly one
JSON message. Nothing here calls back into the runtime.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from adapters.llm.errors import GuidanceError
from context.messages import Message

if TYPE_CHECKING:
    from session.guidance_session import GuidanceSession


class QueuedGuidanceSurface:
    """Guidance surface that forwards updates to the WebSocket client."""

    def __init__(self, session: GuidanceSession) -> None:
        self._session = session

    async def on_guidance_updated(self, text: str) -> None:
        self._session.latest_guidance = text
        self._session.enqueue_control({
            "type": "GUIDANCE_UPDATED",
            "text": text,
        })

    async def on_guidance_error(self, error: GuidanceError) -> None:
        self._session.enqueue_control({
            "type": "GUIDANCE_ERROR",
            "error": error.as_dict(),
        })


class QueuedChatTranscript:
    """Chat transcript that forwards transcript changes to the client."""

    def __init__(self, session: GuidanceSession) -> None:
        self._session = session

    async def on_message_appended(self, message: Message) -> None:
        self._session.transcript.append(message)
        self._session.enqueue_control({
            "type": "MESSAGE_APPENDED",
            "message": message.as_dict(),
        })

    async def on_typing_changed(self, typing: bool) -> None:
        self._session.typing = typing
        self._session.enqueue_control({
            "type": "TYPING_CHANGED",
            "typing": typing,
        })

    async def on_chat_error(self, error: GuidanceError) -> None:
        self._session.enqueue_control({
            "type": "CHAT_ERROR",
            "error": error.as_dict(),
        })

    async def on_transcript_cleared(self) -> None:
        self._session.transcript.clear()
        self._session.enqueue_control({"type": "TRANSCRIPT_CLEARED"})
