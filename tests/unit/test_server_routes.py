# pylint: disable=missing-module-docstring,missing-function-docstring
from pathlib import Path
from typing import Iterator

import httpx
import pytest
from fastapi.testclient import TestClient

from config import AppConfig
from observability import logger
from server.app import create_app


@pytest.fixture(autouse=True)
def _quiet_logs(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(logger, "_print", lambda line: None)


def _generation_handler(request: httpx.Request) -> httpx.Response:
    if request.url.params.get("key") != "good-key":
        return httpx.Response(403, json={"error": {"message": "bad key"}})
    return httpx.Response(
        200,
        json={"candidates": [{"content": {"parts": [{"text": "**Lead with impact.**"}]}}]},
    )


@pytest.fixture
def client(tmp_path: Path) -> Iterator[TestClient]:
    config = AppConfig(
        env="test",
        log_level="INFO",
        gemini_api_key=None,
        gemini_model="gemini-test",
        gemini_base_url="https://generation.test/v1beta/models",
        settings_path=tmp_path / "settings.json",
        enable_json_logs=True,
    )
    app = create_app(config, http_transport=httpx.MockTransport(_generation_handler))
    with TestClient(app) as test_client:
        yield test_client


def test_health(client: TestClient):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_settings_read_defaults(client: TestClient):
    response = client.get("/settings/interview")

    assert response.status_code == 200
    assert response.json() == {
        "persona": "interview",
        "display_name": "Job Interview",
        "description": "Get real-time coaching",
        "has_api_key": False,
        "custom_prompt": "",
    }


def test_settings_write_never_echoes_key(client: TestClient):
    response = client.put(
        "/settings/sales",
        json={"api_key": "good-key", "custom_prompt": "Selling CRM seats"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["has_api_key"] is True
    assert body["custom_prompt"] == "Selling CRM seats"
    assert "good-key" not in response.text

    # Custom prompts are per persona, the key is shared
    other = client.get("/settings/exam").json()
    assert other["has_api_key"] is True
    assert other["custom_prompt"] == ""


def test_settings_unknown_persona_is_404(client: TestClient):
    assert client.get("/settings/karaoke").status_code == 404
    assert client.put("/settings/karaoke", json={}).status_code == 404


def test_websocket_guidance_flow(client: TestClient):
    with client.websocket_connect("/ws") as ws:
        hello = ws.receive_json()
        assert hello["type"] == "CONNECTED"

        ws.send_json({"type": "SESSION_START", "persona": "interview", "api_key": "good-key"})
        init = ws.receive_json()
        assert init["type"] == "SESSION_INIT"
        assert init["has_api_key"] is True

        ws.send_json({"type": "FRAGMENT", "text": "Tell me about yourself"})
        update = ws.receive_json()
        assert update == {"type": "GUIDANCE_UPDATED", "text": "**Lead with impact.**"}

        ws.send_json({"type": "SESSION_END"})
        ended = ws.receive_json()
        assert ended["type"] == "SESSION_ENDED"
        assert ended["session"]["session_id"] == init["session_id"]


def test_websocket_uses_persisted_key(client: TestClient):
    client.put("/settings/meeting", json={"api_key": "good-key"})

    with client.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_json({"type": "SESSION_START", "persona": "meeting"})
        assert ws.receive_json()["has_api_key"] is True

        ws.send_json({"type": "CHAT_MESSAGE", "text": "What should I say?"})
        received = [ws.receive_json() for _ in range(4)]

    assert [m["type"] for m in received] == [
        "TYPING_CHANGED",
        "MESSAGE_APPENDED",
        "MESSAGE_APPENDED",
        "TYPING_CHANGED",
    ]
    assert received[2]["message"]["content"] == "**Lead with impact.**"


def test_websocket_request_failure_is_reported(client: TestClient):
    with client.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_json({"type": "SESSION_START", "persona": "sales", "api_key": "wrong-key"})
        ws.receive_json()

        ws.send_json({"type": "FRAGMENT", "text": "Pricing?"})
        error = ws.receive_json()

    assert error["type"] == "GUIDANCE_ERROR"
    assert error["error"]["kind"] == "request_failed"
    assert error["error"]["status_code"] == 403
    assert error["error"]["message"] == "Error: Unable to get AI response"


def test_sessions_summary_lists_completed_sessions(client: TestClient):
    assert client.get("/sessions").json() == {
        "total_sessions": 0,
        "total_hours": 0.0,
        "recent": [],
    }

    with client.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_json({"type": "SESSION_START", "persona": "negotiation", "api_key": "good-key"})
        init = ws.receive_json()
        ws.send_json({"type": "SESSION_END"})
        ws.receive_json()

    summary = client.get("/sessions").json()
    assert summary["total_sessions"] == 1
    (recent,) = summary["recent"]
    assert recent["session_id"] == init["session_id"]
    assert recent["persona"] == "negotiation"
    assert recent["status"] == "completed"


def test_websocket_restart_reports_previous_session(client: TestClient):
    with client.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_json({"type": "SESSION_START", "persona": "interview", "api_key": "good-key"})
        first = ws.receive_json()

        ws.send_json({"type": "SESSION_START", "persona": "exam", "api_key": "good-key"})
        ended = ws.receive_json()
        init = ws.receive_json()

    assert ended["type"] == "SESSION_ENDED"
    assert ended["session"]["session_id"] == first["session_id"]
    assert init["type"] == "SESSION_INIT"
    assert init["persona"] == "exam"
