"""Gemini generateContent adapter"""
from __future__ import annotations

import asyncio
import time
from typing import Any

import httpx

from adapters.llm.base import GuidanceAdapter
from adapters.llm.errors import GuidanceErrorKind, GuidanceResult
from context.persona import Persona
from observability.logger import log_event
from observability.metrics import timed
from policy import (
    GENERATION_MAX_OUTPUT_TOKENS,
    GENERATION_TEMPERATURE,
    GENERATION_TOP_K,
    GENERATION_TOP_P,
    GUIDANCE_BASE_URL_DEFAULT,
    GUIDANCE_MODEL_DEFAULT,
    GUIDANCE_REQUEST_TIMEOUT_S,
    GUIDANCE_RESOURCE_TIMEOUT_S,
    PAYLOAD_PREVIEW_CHARS,
)


def build_payload(system_prompt: str, user_prompt: str) -> dict[str, Any]:
    """
    Build the generateContent request body.

    Both prompts travel as ordered parts of a single content entry,
    system instruction first.
    """
    return {
        "contents": [
            {
                "parts": [
                    {"text": system_prompt},
                    {"text": user_prompt},
                ]
            }
        ],
        "generationConfig": {
            "temperature": GENERATION_TEMPERATURE,
            "topK": GENERATION_TOP_K,
            "topP": GENERATION_TOP_P,
            "maxOutputTokens": GENERATION_MAX_OUTPUT_TOKENS,
        },
    }


def extract_candidate_text(data: Any) -> str | None:
    """
    Return the first candidate's first text part, unmodified.

    Returns None for any malformed or empty payload.
    """
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None

    if not isinstance(text, str) or not text:
        return None
    return text


class GeminiGuidanceClient(GuidanceAdapter):
    """
    Concrete single-shot generation adapter.

    Design notes:
    - One client instance serves every request of a session, possibly
      concurrently (one call per channel).
    - The httpx client may be injected and shared across sessions; an
      injected client is never closed here.
    - Adapter does NOT:
        - Retry
        - Track request ids
        - Decide orchestration outcomes
    """

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient | None = None,
        model: str = GUIDANCE_MODEL_DEFAULT,
        base_url: str = GUIDANCE_BASE_URL_DEFAULT,
        session_id: str | None = None,
    ) -> None:
        """
        Args:
            http_client:
                Shared AsyncClient. When omitted the adapter builds and
                owns one with the policy request timeout.
            model:
                Model identifier string.
            base_url:
                Models collection URL; the model and method are appended.
            session_id:
                Session identifier for logging/correlation.
        """
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(GUIDANCE_REQUEST_TIMEOUT_S),
        )
        self._model = model
        self._base_url = base_url.rstrip("/")
        self.session_id = session_id

        self._api_key = ""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def endpoint(self) -> str:
        return f"{self._base_url}/{self._model}:generateContent"

    def configure(self, api_key: str, persona: Persona, custom_prompt: str = "") -> None:
        """
        Bind the credential for the session.

        Prompts are rendered by the runtime from orchestrator state; the
        persona is only recorded in the configuration log.
        """
        self._api_key = api_key.strip()
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "guidance_client_configured",
            "session_id": self.session_id,
            "persona": persona.key,
            "has_api_key": bool(self._api_key),
            "has_custom_prompt": bool(custom_prompt.strip()),
            "model": self._model,
        })

    async def generate(self, *, system_prompt: str, user_prompt: str) -> GuidanceResult:
        if not self._api_key:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "guidance_missing_credential",
                "session_id": self.session_id,
            })
            return GuidanceResult.failure(
                GuidanceErrorKind.MISSING_CREDENTIAL,
                "API key is not configured",
            )

        payload = build_payload(system_prompt, user_prompt)

        try:
            with timed("guidance_request_ms", session_id=self.session_id):
                response = await asyncio.wait_for(
                    self._http.post(
                        self.endpoint,
                        params={"key": self._api_key},
                        json=payload,
                    ),
                    timeout=GUIDANCE_RESOURCE_TIMEOUT_S,
                )
        except asyncio.TimeoutError:
            return self._request_failed(
                f"resource timeout after {GUIDANCE_RESOURCE_TIMEOUT_S}s"
            )
        except httpx.HTTPError as exc:
            # Transport messages may echo the URL, which carries the key
            message = str(exc).replace(self._api_key, "***")
            return self._request_failed(f"{type(exc).__name__}: {message}")

        if not response.is_success:
            return self._request_failed(
                response.text[:PAYLOAD_PREVIEW_CHARS],
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            data = None

        text = extract_candidate_text(data)
        if text is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "guidance_empty_response",
                "session_id": self.session_id,
                "status_code": response.status_code,
                "body_preview": response.text[:PAYLOAD_PREVIEW_CHARS],
            })
            return GuidanceResult.failure(
                GuidanceErrorKind.EMPTY_RESPONSE,
                "no candidate text in response",
                status_code=response.status_code,
            )

        return GuidanceResult.success(text)

    async def aclose(self) -> None:
        if self._owns_client and not self._http.is_closed:
            await self._http.aclose()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _request_failed(self, detail: str, status_code: int | None = None) -> GuidanceResult:
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "guidance_request_failed",
            "session_id": self.session_id,
            "status_code": status_code,
            "detail": detail,
        })
        return GuidanceResult.failure(
            GuidanceErrorKind.REQUEST_FAILED,
            detail,
            status_code=status_code,
        )


def _now_ms() -> int:
    """Wall-clock timestamp in milliseconds (logging only)."""
    return int(time.time() * 1000)
