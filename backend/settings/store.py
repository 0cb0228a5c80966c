"""
Persisted settings store.

Responsibilities:
- String key -> string value storage backed by one JSON file
- Read the generation API key and per-persona custom context
- Write session settings atomically

Non-responsibilities:
- No schema beyond string keys and string values
- No caching across processes (every read hits the file)
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
import time
from pathlib import Path

from context.persona import Persona
from observability.logger import log_event
from policy import (
    SETTINGS_API_KEY,
    SETTINGS_CUSTOM_PROMPT_PREFIX,
    SETTINGS_LAST_PERSONA,
)


class SettingsError(Exception):
    """Settings file exists but cannot be read as a JSON string map."""


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def custom_prompt_key(persona: Persona | str) -> str:
    key = persona.key if isinstance(persona, Persona) else persona
    return f"{SETTINGS_CUSTOM_PROMPT_PREFIX}{key}"


class SettingsStore:
    """
    JSON-file settings store.

    A missing file reads as empty. Writes go to a uniquely named sibling
    temp file which then replaces the target, so readers never see a
    partial file. Read-modify-write updates are serialized per store.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._write_lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    # ------------------------------------------------------------------
    # Raw access
    # ------------------------------------------------------------------

    def load(self) -> dict[str, str]:
        """
        Read the whole map.

        Raises:
            SettingsError if the file is not a JSON object of strings.
        """
        if not self._path.exists():
            return {}

        try:
            data = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except (OSError, ValueError) as exc:
            raise SettingsError(f"cannot read settings file {self._path}: {exc}") from exc

        if not isinstance(data, dict):
            raise SettingsError(f"settings file {self._path} is not a JSON object")

        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def get(self, key: str, default: str = "") -> str:
        return self.load().get(key, default)

    def set(self, key: str, value: str) -> None:
        self.update({key: value})

    def update(self, values: dict[str, str]) -> None:
        """Merge `values` into the stored map and write it back atomically."""
        with self._write_lock:
            data = self.load()
            data.update(values)
            self._write(data)
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "settings_written",
            "keys": sorted(values),
        })

    # ------------------------------------------------------------------
    # Typed accessors
    # ------------------------------------------------------------------

    def api_key(self) -> str:
        return self.get(SETTINGS_API_KEY)

    def custom_prompt(self, persona: Persona | str) -> str:
        return self.get(custom_prompt_key(persona))

    def last_persona(self) -> str:
        return self.get(SETTINGS_LAST_PERSONA)

    def save_session_settings(
        self,
        persona: Persona | str,
        api_key: str | None = None,
        custom_prompt: str | None = None,
    ) -> None:
        """
        Persist what a settings surface edits for one persona.

        None leaves the stored value untouched; "" clears it.
        """
        key = persona.key if isinstance(persona, Persona) else persona
        values: dict[str, str] = {SETTINGS_LAST_PERSONA: key}
        if api_key is not None:
            values[SETTINGS_API_KEY] = api_key.strip()
        if custom_prompt is not None:
            values[custom_prompt_key(key)] = custom_prompt
        self.update(values)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _write(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=self._path.parent,
            prefix=f"{self._path.name}.",
            suffix=".tmp",
            delete=False,
        ) as tmp:
            tmp.write(json.dumps(data, indent=2, sort_keys=True))
        try:
            os.replace(tmp.name, self._path)
        except OSError:
            os.unlink(tmp.name)
            raise
