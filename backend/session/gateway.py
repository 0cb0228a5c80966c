"""
Session gateway.

Responsibilities:
- Owns the GuidanceSession of one WebSocket connection
- Tracks connection_status independently of orchestrator state
- Wires guidance client, runtime and lifecycle at connect time
- Routes inbound JSON control messages -> lifecycle calls
- Hands buffered outbound messages to the transport

NOT responsible for:
- Executing commands (runtime)
- Channel state machines (reducer)
- Socket IO (routes)
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, TYPE_CHECKING
from uuid import uuid4

import httpx

from adapters.llm.base import GuidanceAdapter
from adapters.llm.gemini import GeminiGuidanceClient
from context.persona import PERSONA_INFO
from observability.logger import log_event
from orchestrator.runtime import Runtime
from orchestrator.runtime_context import RuntimeExecutionContext
from orchestrator.state_dataclass import OrchestratorState
from policy import GATEWAY_INBOUND_TYPES, GUIDANCE_PLACEHOLDER, PAYLOAD_PREVIEW_CHARS
from session.connection_status import ConnectionStatus
from session.guidance_session import GuidanceSession
from session.history import SessionHistory
from session.lifecycle import SessionConfig, SessionLifecycle
from session.sinks import QueuedChatTranscript, QueuedGuidanceSurface
from settings.store import SettingsError, SettingsStore

if TYPE_CHECKING:
    from config import AppConfig


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _new_connection_id() -> str:
    return f"conn_{uuid4().hex[:12]}"


def _error(code: str, message: str) -> dict[str, Any]:
    return {"type": "ERROR", "code": code, "message": message}


# ------------------------------------------------------------------
# Gateway result
# ------------------------------------------------------------------

@dataclass(frozen=True)
class GatewayResult:
    """
    Return value for gateway boundary methods.

    outbound_json:
        JSON messages to send to client, in order
    """
    outbound_json: tuple[dict[str, Any], ...] = ()


# ------------------------------------------------------------------
# SessionGateway
# ------------------------------------------------------------------

class SessionGateway:
    """
    One gateway == one WebSocket connection.

    A connection may run several guidance sessions one after another;
    each SESSION_START ends the previous one.
    """

    def __init__(
        self,
        *,
        config: AppConfig,
        settings: SettingsStore,
        http_client: httpx.AsyncClient | None = None,
        guidance_client: GuidanceAdapter | None = None,
        history: SessionHistory | None = None,
    ) -> None:
        self._config = config
        self._settings = settings
        self._http_client = http_client
        self._history = history

        # Injected adapter (tests); otherwise built per connection
        self._guidance_client = guidance_client

        self.session: GuidanceSession | None = None

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def on_ws_connect(self) -> GatewayResult:
        """Called when a WebSocket connection is established."""
        session = GuidanceSession(connection_id=_new_connection_id())
        session.connection_status = ConnectionStatus.UP

        client = self._guidance_client or GeminiGuidanceClient(
            http_client=self._http_client,
            model=self._config.gemini_model,
            base_url=self._config.gemini_base_url,
        )
        session.attach_guidance_client(client)

        runtime = Runtime(
            initial_state=OrchestratorState(),
            context=RuntimeExecutionContext(
                context_store=session.context_store,
                guidance_client=client,
                guidance_surface=QueuedGuidanceSurface(session),
                chat_transcript=QueuedChatTranscript(session),
            ),
        )
        session.attach_runtime(runtime)
        session.attach_lifecycle(SessionLifecycle(
            runtime=runtime,
            guidance_client=client,
            history=self._history,
        ))

        self.session = session

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "WS_CONNECTED",
            **session.log_context(),
        })

        hello: dict[str, Any] = {
            "type": "CONNECTED",
            "connection_id": session.connection_id,
            "personas": [
                {
                    "persona": kind.value,
                    "display_name": info.display_name,
                    "description": info.description,
                }
                for kind, info in PERSONA_INFO.items()
            ],
        }
        if self._history is not None:
            hello["sessions"] = self._history.summary()
        return GatewayResult(outbound_json=(hello,))

    async def on_ws_disconnect(self, reason: str | None = None) -> GatewayResult:
        """Called when the WebSocket disconnects."""
        session = self.session
        if session is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "WS_DISCONNECT_WITHOUT_SESSION",
                "reason": reason,
            })
            return GatewayResult()

        if session.lifecycle is not None:
            await session.lifecycle.end()

        if session.runtime is not None:
            await session.runtime.shutdown()

        if session.guidance_client is not None:
            await session.guidance_client.aclose()

        session.connection_status = ConnectionStatus.DOWN

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "WS_DISCONNECTED",
            "reason": reason,
            **session.log_context(),
        })

        return GatewayResult(outbound_json=session.drain_control())

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def on_json_message(self, payload: str) -> GatewayResult:
        """Route inbound JSON to the session lifecycle."""
        session = self.session
        if session is None or session.lifecycle is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "MESSAGE_WITHOUT_SESSION",
                "payload_preview": payload[:PAYLOAD_PREVIEW_CHARS],
            })
            return GatewayResult()

        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "JSON_DECODE_ERROR",
                "error": str(e),
                "payload_preview": payload[:PAYLOAD_PREVIEW_CHARS],
                **session.log_context(),
            })
            session.enqueue_control(_error("invalid_json", "Message is not valid JSON"))
            return self.drain_outbound()

        if not isinstance(data, dict):
            session.enqueue_control(_error("invalid_payload", "Message must be a JSON object"))
            return self.drain_outbound()

        msg_type = data.get("type")
        if msg_type not in GATEWAY_INBOUND_TYPES:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "UNKNOWN_MESSAGE_TYPE",
                "msg_type": msg_type,
                **session.log_context(),
            })
            session.enqueue_control(_error("unknown_type", f"Unknown message type: {msg_type!r}"))
            return self.drain_outbound()

        lifecycle = session.lifecycle

        if msg_type == "SESSION_START":
            await self._start_session(session, data)

        elif msg_type == "SESSION_END":
            record = await lifecycle.end()
            if record is not None:
                session.enqueue_control({"type": "SESSION_ENDED", "session": record.as_dict()})

        elif not lifecycle.is_active:
            session.enqueue_control(_error("no_active_session", "Start a session first"))

        elif msg_type in ("FRAGMENT", "CHAT_MESSAGE"):
            text = data.get("text")
            if not isinstance(text, str):
                session.enqueue_control(_error("invalid_payload", "'text' must be a string"))
            elif msg_type == "FRAGMENT":
                await lifecycle.on_fragment(text)
            else:
                await lifecycle.on_user_message(text)

        elif msg_type == "CLEAR_CHAT":
            await lifecycle.clear_chat()

        return self.drain_outbound()

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def drain_outbound(self) -> GatewayResult:
        if self.session is None:
            return GatewayResult()
        return GatewayResult(outbound_json=self.session.drain_control())

    async def wait_outbound(self) -> None:
        """Block until sinks have produced outbound messages."""
        assert self.session is not None, "wait_outbound before on_ws_connect"
        await self.session.wait_control()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _start_session(self, session: GuidanceSession, data: dict[str, Any]) -> None:
        assert session.lifecycle is not None

        persona_key = data.get("persona")
        api_key = data.get("api_key")
        custom_prompt = data.get("custom_prompt")

        if not isinstance(persona_key, str) or not persona_key:
            session.enqueue_control(_error("invalid_payload", "'persona' is required"))
            return
        if api_key is not None and not isinstance(api_key, str):
            session.enqueue_control(_error("invalid_payload", "'api_key' must be a string"))
            return
        if custom_prompt is not None and not isinstance(custom_prompt, str):
            session.enqueue_control(_error("invalid_payload", "'custom_prompt' must be a string"))
            return

        try:
            config = SessionConfig.from_settings(
                self._settings,
                persona_key,
                api_key=api_key,
                custom_prompt=custom_prompt,
                fallback_api_key=self._config.gemini_api_key,
            )
        except ValueError as e:
            session.enqueue_control(_error("unknown_persona", str(e)))
            return
        except SettingsError as e:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "SETTINGS_READ_ERROR",
                "error": str(e),
                **session.log_context(),
            })
            session.enqueue_control(_error("settings_unreadable", "Stored settings could not be read"))
            return

        # Report the replaced session before the new one starts
        if session.lifecycle.is_active:
            ended = await session.lifecycle.end()
            if ended is not None:
                session.enqueue_control({"type": "SESSION_ENDED", "session": ended.as_dict()})

        record = await session.lifecycle.start(config)
        session.latest_guidance = GUIDANCE_PLACEHOLDER

        # Old chat goes through the transcript sink so the client clears too
        if session.transcript:
            await session.lifecycle.clear_chat()

        info = config.persona.info
        session.enqueue_control({
            "type": "SESSION_INIT",
            "session_id": record.session_id,
            "persona": config.persona.key,
            "display_name": info.display_name,
            "description": info.description,
            "max_sentences": info.max_sentences,
            "has_api_key": bool(config.api_key),
            "guidance": GUIDANCE_PLACEHOLDER,
        })
