"""
Route registration for the live guidance API.

Responsibilities:
- Define HTTP and WebSocket endpoints
- Wire gateway to WebSocket lifecycle
- Pump asynchronously produced guidance/chat updates to the client
- Pull dependencies from app.state
"""

from __future__ import annotations

import asyncio
import contextlib
import json

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from context.persona import Persona
from observability.logger import log_event
from session.gateway import GatewayResult, SessionGateway
from session.history import SessionHistory
from settings.store import SettingsError, SettingsStore


class SettingsUpdate(BaseModel):
    """Body of PUT /settings/{persona}; omitted fields are left unchanged."""
    api_key: str | None = None
    custom_prompt: str | None = None


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""
    @app.get("/health")
    async def health() -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    @app.get("/sessions")
    def recent_sessions() -> dict[str, object]: # pyright: ignore[reportUnusedFunction]
        history: SessionHistory = app.state.history
        return history.summary()

    # Settings handlers do file IO, so they stay sync and run in the threadpool
    @app.get("/settings/{persona}")
    def read_settings(persona: str) -> dict[str, object]: # pyright: ignore[reportUnusedFunction]
        store: SettingsStore = app.state.settings
        return _settings_view(store, _persona_or_404(persona))

    @app.put("/settings/{persona}")
    def write_settings( # pyright: ignore[reportUnusedFunction]
        persona: str,
        body: SettingsUpdate,
    ) -> dict[str, object]:
        store: SettingsStore = app.state.settings
        resolved = _persona_or_404(persona)
        try:
            store.save_session_settings(
                resolved,
                api_key=body.api_key,
                custom_prompt=body.custom_prompt,
            )
        except SettingsError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return _settings_view(store, resolved)

    @app.websocket("/ws")
    async def websocket_endpoint(ws: WebSocket) -> None: # pyright: ignore[reportUnusedFunction]
        await ws.accept()

        gateway = SessionGateway(
            config=app.state.config,
            settings=app.state.settings,
            http_client=app.state.http_client,
            history=app.state.history,
        )

        # Receive loop and pump share the socket; sends are serialized
        send_lock = asyncio.Lock()
        pump: asyncio.Task[None] | None = None

        try:
            result = await gateway.on_ws_connect()
            await _flush_gateway_result(ws, result, send_lock)

            pump = asyncio.create_task(_pump_outbound(ws, gateway, send_lock))

            while True:
                msg = await ws.receive()

                if msg["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect()

                if msg.get("text") is not None:
                    result = await gateway.on_json_message(msg["text"])
                    await _flush_gateway_result(ws, result, send_lock)

                elif msg.get("bytes") is not None:
                    await _flush_gateway_result(
                        ws,
                        GatewayResult(outbound_json=({
                            "type": "ERROR",
                            "code": "binary_unsupported",
                            "message": "Only JSON text frames are accepted",
                        },)),
                        send_lock,
                    )

        except WebSocketDisconnect:
            await gateway.on_ws_disconnect(reason="client_disconnect")

        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "WS_FATAL_ERROR",
                "connection_id": gateway.session.connection_id if gateway.session else None,
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            await gateway.on_ws_disconnect(reason="server_error")

        finally:
            if pump is not None:
                pump.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await pump


async def _pump_outbound(
    ws: WebSocket,
    gateway: SessionGateway,
    send_lock: asyncio.Lock,
) -> None:
    """Forward sink output produced after the inbound message was handled."""
    try:
        while True:
            await gateway.wait_outbound()
            async with send_lock:
                for msg in gateway.drain_outbound().outbound_json:
                    await ws.send_text(json.dumps(msg))
    except asyncio.CancelledError:
        raise
    except Exception as exc:  # pylint: disable=broad-exception-caught
        log_event({
            "event_type": "WS_PUMP_STOPPED",
            "connection_id": gateway.session.connection_id if gateway.session else None,
            "exception": type(exc).__name__,
            "message": str(exc),
        })


async def _flush_gateway_result(
    ws: WebSocket,
    result: GatewayResult,
    send_lock: asyncio.Lock,
) -> None:
    async with send_lock:
        for msg in result.outbound_json:
            await ws.send_text(json.dumps(msg))


def _persona_or_404(key: str) -> Persona:
    try:
        return Persona.from_key(key)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


def _settings_view(store: SettingsStore, persona: Persona) -> dict[str, object]:
    """Settings as shown to the client; the API key itself is never returned."""
    try:
        has_api_key = bool(store.api_key())
        custom_prompt = store.custom_prompt(persona)
    except SettingsError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    return {
        "persona": persona.key,
        "display_name": persona.info.display_name,
        "description": persona.info.description,
        "has_api_key": has_api_key,
        "custom_prompt": custom_prompt,
    }
