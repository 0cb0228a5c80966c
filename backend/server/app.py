"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware
- Initialize shared resources (HTTP client, settings store, session history)
- Register routes
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import AppConfig
from observability.logger import log_event
from policy import GUIDANCE_REQUEST_TIMEOUT_S
from session.history import SessionHistory
from settings.store import SettingsStore

from server.routes import register_routes


def create_app(
    config: AppConfig | None = None,
    *,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    This is the app factory pattern that allows:
    - Testing with different configurations (and a mock transport)
    - Environment-specific setup
    - ASGI server compatibility
    """
    config = config or AppConfig.load_from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log_event({"event_type": "APP_STARTED", "env": config.env})
        yield
        await app.state.http_client.aclose()
        log_event({"event_type": "APP_STOPPED", "env": config.env})

    app = FastAPI(title="Live Guidance API", lifespan=lifespan)

    app.state.config = config

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # tighten later
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # One HTTP connection pool per process, shared by all sessions
    app.state.http_client = build_http_client(transport=http_transport)
    app.state.settings = SettingsStore(config.settings_path)
    app.state.history = SessionHistory()

    # Routes
    register_routes(app)

    return app


def build_http_client(
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Build the shared client used for generation calls."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(GUIDANCE_REQUEST_TIMEOUT_S),
        transport=transport,
    )
