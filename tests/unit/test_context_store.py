# pylint: disable=missing-module-docstring,missing-function-docstring
from typing import Any

import pytest

from context import conversation
from context.conversation import ContextStore, Turn


@pytest.fixture(autouse=True)
def _quiet_logs(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(conversation, "log_event", emitted.append)
    return emitted


def _store_with(*inputs: str) -> ContextStore:
    store = ContextStore(session_id="sess_ctx")
    for i, text in enumerate(inputs):
        store.append_turn(text, f"response {i}", timestamp=float(i))
    return store


def test_recent_context_returns_last_three_inputs_oldest_first():
    store = _store_with("T1", "T2", "T3", "T4", "T5")

    assert store.recent_context(3) == "Previous conversation context:\nT3\nT4\nT5"


def test_recent_context_defaults_to_three_turns():
    store = _store_with("a", "b", "c", "d")

    assert store.recent_context() == store.recent_context(3)


def test_recent_context_empty_store_is_empty_string():
    assert ContextStore().recent_context() == ""


def test_whitespace_inputs_are_filtered_inside_the_window():
    store = _store_with("T1", "T2", "   ", "T4")

    # The blank turn still occupies one of the three slots
    assert store.recent_context(3) == "Previous conversation context:\nT2\nT4"


def test_only_whitespace_inputs_render_nothing():
    store = _store_with("", " \n ")

    assert store.recent_context(3) == ""


def test_non_positive_window_renders_nothing():
    store = _store_with("T1")

    assert store.recent_context(0) == ""
    assert store.recent_context(-1) == ""


def test_append_turn_keeps_insertion_order_and_returns_turn():
    store = ContextStore()

    first = store.append_turn("in 1", "out 1", timestamp=10.0)
    store.append_turn("in 2", "out 2", timestamp=5.0)

    assert first == Turn(input_text="in 1", response_text="out 1", timestamp=10.0)
    assert [t.input_text for t in store.snapshot()] == ["in 1", "in 2"]
    assert len(store) == 2


def test_snapshot_is_stable_while_appending():
    store = _store_with("T1")

    snapshot = store.snapshot()
    store.append_turn("T2", "R2")

    assert len(snapshot) == 1
    assert len(store.snapshot()) == 2


def test_reset_clears_turns_and_rebinds_session(_quiet_logs: list[dict[str, Any]]):
    store = _store_with("T1", "T2")

    store.reset("sess_next")

    assert len(store) == 0
    assert store.session_id == "sess_next"
    assert store.recent_context() == ""
    assert _quiet_logs[-1]["event_type"] == "context_reset"
    assert _quiet_logs[-1]["dropped_turns"] == 2
