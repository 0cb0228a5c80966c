"""
POLICY-AS-CONSTANTS
-------------------
Single source of truth for all behavioral invariants in the system.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from typing import Final, Tuple

# =============================================================================
# Generation Service
# =============================================================================

GUIDANCE_MODEL_DEFAULT: Final[str] = "gemini-1.5-flash-latest"
GUIDANCE_BASE_URL_DEFAULT: Final[str] = (
    "https://generativelanguage.googleapis.com/v1beta/models"
)

# Fixed generation parameters. Not caller-configurable: response length and
# tone stay consistent across personas.
GENERATION_TEMPERATURE: Final[float] = 0.7
GENERATION_TOP_K: Final[int] = 40
GENERATION_TOP_P: Final[float] = 0.95
GENERATION_MAX_OUTPUT_TOKENS: Final[int] = 1024

# =============================================================================
# Timeouts
# =============================================================================

# Per-request transport timeout (connect / read / write / pool)
GUIDANCE_REQUEST_TIMEOUT_S: Final[float] = 30.0

# Whole-call ceiling, including retries inside the transport
GUIDANCE_RESOURCE_TIMEOUT_S: Final[float] = 60.0

# =============================================================================
# Conversation Context
# =============================================================================

RECENT_CONTEXT_TURNS: Final[int] = 3
CONTEXT_HEADER: Final[str] = "Previous conversation context:"

# =============================================================================
# Prompt Assembly
# =============================================================================

CURRENT_INPUT_PREFIX: Final[str] = "Current question/statement: "
CONTEXT_INPUT_SEPARATOR: Final[str] = "\n\n"

CUSTOM_CONTEXT_OPEN: Final[str] = "\n\nUser-provided context:\n-----\n"
CUSTOM_CONTEXT_CLOSE: Final[str] = "\n-----\n"

DEFAULT_MAX_SENTENCES: Final[int] = 3
EXAM_MAX_SENTENCES: Final[int] = 2

# =============================================================================
# User-facing fallback strings
# =============================================================================

FALLBACK_MISSING_CREDENTIAL: Final[str] = (
    "Please configure your Gemini API key in Settings."
)
FALLBACK_REQUEST_FAILED: Final[str] = "Error: Unable to get AI response"
FALLBACK_EMPTY_RESPONSE: Final[str] = "No response generated"
FALLBACK_CANCELLED: Final[str] = "Request cancelled"

GUIDANCE_PLACEHOLDER: Final[str] = "Ready to provide real-time guidance"

# =============================================================================
# Session
# =============================================================================

SESSION_ID_PREFIX: Final[str] = "sess_"
SESSION_ID_HEX_LEN: Final[int] = 12

# Completed sessions kept for the recent-sessions summary (totals count all)
RECENT_SESSIONS_MAX: Final[int] = 10

# =============================================================================
# Persisted Settings
# =============================================================================

SETTINGS_API_KEY: Final[str] = "gemini_api_key"
SETTINGS_CUSTOM_PROMPT_PREFIX: Final[str] = "custom_prompt_"
SETTINGS_LAST_PERSONA: Final[str] = "last_session_type"

# =============================================================================
# Gateway
# =============================================================================

# Inbound message types accepted on the session WebSocket
GATEWAY_INBOUND_TYPES: Final[Tuple[str, ...]] = (
    "SESSION_START",
    "FRAGMENT",
    "CHAT_MESSAGE",
    "CLEAR_CHAT",
    "SESSION_END",
)

PAYLOAD_PREVIEW_CHARS: Final[int] = 100
