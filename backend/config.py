"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No orchestration logic
- No behavioral constants (see policy.py)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from policy import GUIDANCE_BASE_URL_DEFAULT, GUIDANCE_MODEL_DEFAULT


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the gateway and session bootstrap code.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str
    log_level: str

    # ------------------------------------------------------------------
    # Generation service
    # ------------------------------------------------------------------

    # Fallback only; the persisted settings key takes precedence
    gemini_api_key: str | None
    gemini_model: str
    gemini_base_url: str

    # ------------------------------------------------------------------
    # Persisted settings
    # ------------------------------------------------------------------

    settings_path: Path

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """Load configuration from environment variables."""
        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),

            gemini_api_key=os.environ.get("GEMINI_API_KEY"),
            gemini_model=os.environ.get("GEMINI_MODEL", GUIDANCE_MODEL_DEFAULT),
            gemini_base_url=os.environ.get("GEMINI_BASE_URL", GUIDANCE_BASE_URL_DEFAULT),

            settings_path=Path(
                os.environ.get("SETTINGS_PATH", "~/.guidance/settings.json")
            ).expanduser(),

            enable_json_logs=os.environ.get("ENABLE_JSON_LOGS", "1") == "1",
        )
