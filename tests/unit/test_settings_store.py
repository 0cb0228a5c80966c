# pylint: disable=missing-module-docstring,missing-function-docstring
import json
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

import pytest

from context.persona import Persona, PersonaKind
from session.lifecycle import SessionConfig
from settings import store as store_mod
from settings.store import SettingsError, SettingsStore


@pytest.fixture(autouse=True)
def _quiet_logs(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(store_mod, "log_event", emitted.append)
    return emitted


@pytest.fixture
def store(tmp_path: Path) -> SettingsStore:
    return SettingsStore(tmp_path / "nested" / "settings.json")


def test_missing_file_reads_as_empty(store: SettingsStore):
    assert store.load() == {}
    assert store.api_key() == ""
    assert store.custom_prompt("sales") == ""


def test_set_and_get_round_trip_through_file(store: SettingsStore):
    store.set("gemini_api_key", "abc")

    assert store.get("gemini_api_key") == "abc"
    assert json.loads(store.path.read_text(encoding="utf-8")) == {"gemini_api_key": "abc"}
    assert list(store.path.parent.glob("*.tmp")) == []


def test_custom_prompts_are_keyed_per_persona(store: SettingsStore):
    store.save_session_settings("interview", custom_prompt="Senior backend role")
    store.save_session_settings(Persona(kind=PersonaKind.SALES), custom_prompt="CRM seats")

    assert store.custom_prompt("interview") == "Senior backend role"
    assert store.custom_prompt(Persona(kind=PersonaKind.SALES)) == "CRM seats"
    assert store.get("custom_prompt_sales") == "CRM seats"
    assert store.last_persona() == "sales"


def test_save_session_settings_none_leaves_values(store: SettingsStore):
    store.save_session_settings("exam", api_key=" key-1 ", custom_prompt="Biology")
    store.save_session_settings("exam")

    assert store.api_key() == "key-1"
    assert store.custom_prompt("exam") == "Biology"


def test_corrupt_file_raises_settings_error(store: SettingsStore):
    store.path.parent.mkdir(parents=True)
    store.path.write_text("{not json", encoding="utf-8")

    with pytest.raises(SettingsError):
        store.load()


def test_non_object_file_raises_settings_error(store: SettingsStore):
    store.path.parent.mkdir(parents=True)
    store.path.write_text("[1, 2]", encoding="utf-8")

    with pytest.raises(SettingsError):
        store.api_key()


def test_write_is_logged_without_values(store: SettingsStore, _quiet_logs: list[dict[str, Any]]):
    store.save_session_settings("meeting", api_key="very-secret")

    (event,) = _quiet_logs
    assert event["event_type"] == "settings_written"
    assert "very-secret" not in json.dumps(event)



def test_each_write_uses_its_own_temp_file(store: SettingsStore, monkeypatch: pytest.MonkeyPatch):
    sources: list[str] = []
    real_replace = os.replace

    def recording_replace(src: str, dst: Path) -> None:
        sources.append(str(src))
        real_replace(src, dst)

    monkeypatch.setattr(store_mod.os, "replace", recording_replace)

    # Two stores on one file stand in for two processes
    other = SettingsStore(store.path)
    store.set("a", "1")
    other.set("b", "2")

    assert len(set(sources)) == 2
    assert all(Path(src).parent == store.path.parent for src in sources)
    assert str(store.path.with_suffix(".json.tmp")) not in sources
    assert store.load() == {"a": "1", "b": "2"}


def test_concurrent_updates_keep_every_key(store: SettingsStore):
    keys = [f"key_{i}" for i in range(20)]

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda k: store.set(k, k), keys))

    assert store.load() == {k: k for k in keys}
    assert list(store.path.parent.glob("*.tmp")) == []

# ---------------------------------------------------------------------
# SessionConfig resolution
# ---------------------------------------------------------------------

def test_session_config_reads_persisted_values(store: SettingsStore):
    store.save_session_settings("negotiation", api_key="stored", custom_prompt="Salary talk")

    config = SessionConfig.from_settings(store, "negotiation")

    assert config.api_key == "stored"
    assert config.persona == Persona(kind=PersonaKind.NEGOTIATION, custom_context="Salary talk")


def test_session_config_explicit_values_win(store: SettingsStore):
    store.save_session_settings("interview", api_key="stored", custom_prompt="stored ctx")

    config = SessionConfig.from_settings(
        store, "interview", api_key="explicit", custom_prompt="explicit ctx"
    )

    assert config.api_key == "explicit"
    assert config.persona.custom_context == "explicit ctx"


def test_session_config_falls_back_to_environment_key(store: SettingsStore):
    config = SessionConfig.from_settings(store, "meeting", fallback_api_key="env-key")

    assert config.api_key == "env-key"


def test_session_config_rejects_unknown_persona(store: SettingsStore):
    with pytest.raises(ValueError):
        SessionConfig.from_settings(store, "karaoke")
