# pylint: disable=missing-module-docstring,missing-function-docstring
import asyncio
import json
from typing import Any

import pytest

from adapters.llm.base import GuidanceAdapter
from adapters.llm.errors import GuidanceError, GuidanceErrorKind, GuidanceResult
from context.conversation import ContextStore
from context.messages import Message, Sender
from context.persona import Persona, PersonaKind
from context.serialization import build_system_prompt
from observability import logger
from orchestrator.enums.channel import Channel
from orchestrator.runtime import Runtime
from orchestrator.runtime_context import RuntimeExecutionContext
from orchestrator.state_dataclass import OrchestratorState
from session.lifecycle import SessionConfig, SessionLifecycle, SessionStatus


# ---------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------

class FakeGuidanceClient(GuidanceAdapter):
    """Answers "reply: <user prompt>" unless told otherwise."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.gates: dict[str, asyncio.Event] = {}
        self.results: dict[str, GuidanceResult] = {}
        self.raises: dict[str, Exception] = {}
        self.configured: list[tuple[str, Persona, str]] = []

    def configure(self, api_key: str, persona: Persona, custom_prompt: str = "") -> None:
        self.configured.append((api_key, persona, custom_prompt))

    async def generate(self, *, system_prompt: str, user_prompt: str) -> GuidanceResult:
        self.calls.append((system_prompt, user_prompt))
        gate = self.gates.get(user_prompt)
        if gate is not None:
            await gate.wait()
        if user_prompt in self.raises:
            raise self.raises[user_prompt]
        return self.results.get(user_prompt, GuidanceResult.success(f"reply: {user_prompt}"))

    async def aclose(self) -> None:
        pass

    def gate(self, user_prompt: str) -> asyncio.Event:
        event = asyncio.Event()
        self.gates[user_prompt] = event
        return event

    @property
    def user_prompts(self) -> list[str]:
        return [user for _, user in self.calls]


class RecordingSurface:
    def __init__(self) -> None:
        self.updates: list[str] = []
        self.errors: list[GuidanceError] = []

    async def on_guidance_updated(self, text: str) -> None:
        self.updates.append(text)

    async def on_guidance_error(self, error: GuidanceError) -> None:
        self.errors.append(error)


class RecordingTranscript:
    def __init__(self) -> None:
        self.messages: list[Message] = []
        self.typing: list[bool] = []
        self.errors: list[GuidanceError] = []
        self.cleared = 0

    async def on_message_appended(self, message: Message) -> None:
        self.messages.append(message)

    async def on_typing_changed(self, typing: bool) -> None:
        self.typing.append(typing)

    async def on_chat_error(self, error: GuidanceError) -> None:
        self.errors.append(error)

    async def on_transcript_cleared(self) -> None:
        self.cleared += 1


class Pipeline:
    def __init__(self) -> None:
        self.store = ContextStore()
        self.client = FakeGuidanceClient()
        self.surface = RecordingSurface()
        self.transcript = RecordingTranscript()
        self.runtime = Runtime(
            initial_state=OrchestratorState(),
            context=RuntimeExecutionContext(
                context_store=self.store,
                guidance_client=self.client,
                guidance_surface=self.surface,
                chat_transcript=self.transcript,
            ),
        )
        self.lifecycle = SessionLifecycle(runtime=self.runtime, guidance_client=self.client)

    async def start(self, kind: PersonaKind = PersonaKind.INTERVIEW) -> None:
        await self.lifecycle.start(SessionConfig(persona=Persona(kind=kind), api_key="key"))


@pytest.fixture(autouse=True)
def _log_lines(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    lines: list[str] = []
    monkeypatch.setattr(logger, "_print", lines.append)
    return lines


def _events(lines: list[str], event_type: str) -> list[dict[str, Any]]:
    decoded = [json.loads(line) for line in lines]
    return [e for e in decoded if e.get("event_type") == event_type]


def _guidance_prompt(text: str) -> str:
    return f"Current question/statement: {text}"


# ---------------------------------------------------------------------
# Guidance channel
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_interview_end_to_end_scenario():
    p = Pipeline()
    await p.start(PersonaKind.INTERVIEW)
    p.client.results[_guidance_prompt("Tell me about yourself")] = GuidanceResult.success(
        "**I have 5 years of experience...**"
    )

    await p.lifecycle.on_fragment("Tell me about yourself")
    await p.runtime.wait_idle()

    (turn,) = p.store.snapshot()
    assert turn.input_text == "Tell me about yourself"
    assert turn.response_text == "**I have 5 years of experience...**"
    assert p.surface.updates == ["**I have 5 years of experience...**"]

    await p.lifecycle.on_fragment("What about weaknesses?")
    await p.runtime.wait_idle()

    system_prompt, user_prompt = p.client.calls[-1]
    assert system_prompt == build_system_prompt(Persona(kind=PersonaKind.INTERVIEW))
    assert user_prompt == (
        "Previous conversation context:\nTell me about yourself"
        "\n\nCurrent question/statement: What about weaknesses?"
    )
    assert len(p.store) == 2


@pytest.mark.asyncio
async def test_fragment_storm_coalesces_to_latest():
    p = Pipeline()
    await p.start()
    release = p.client.gate(_guidance_prompt("F1"))

    await p.lifecycle.on_fragment("F1")
    await asyncio.sleep(0)
    for text in ("F2", "F3"):
        await p.lifecycle.on_fragment(text)
        assert p.runtime.in_flight_count(Channel.GUIDANCE) == 1

    release.set()
    await p.runtime.wait_idle()

    assert len(p.client.calls) == 2
    assert p.client.user_prompts[1].endswith("Current question/statement: F3")
    assert not any("F2" in prompt for prompt in p.client.user_prompts)
    assert [t.input_text for t in p.store.snapshot()] == ["F1", "F3"]


@pytest.mark.asyncio
async def test_adapter_exception_becomes_request_failed():
    p = Pipeline()
    await p.start()
    p.client.raises[_guidance_prompt("boom")] = RuntimeError("adapter bug")

    await p.lifecycle.on_fragment("boom")
    await p.runtime.wait_idle()

    (error,) = p.surface.errors
    assert error.kind is GuidanceErrorKind.REQUEST_FAILED
    assert "adapter bug" in error.detail
    assert len(p.store) == 0

    await p.lifecycle.on_fragment("next")
    await p.runtime.wait_idle()
    assert p.surface.updates == ["reply: Current question/statement: next"]


@pytest.mark.asyncio
async def test_failing_sink_is_logged_and_context_still_updates(_log_lines: list[str]):
    p = Pipeline()
    await p.start()

    async def broken(text: str) -> None:
        raise RuntimeError(f"ui gone: {text}")

    p.surface.on_guidance_updated = broken  # type: ignore[method-assign]

    await p.lifecycle.on_fragment("hello")
    await p.runtime.wait_idle()

    assert len(p.store) == 1
    sink_errors = _events(_log_lines, "sink_error")
    assert len(sink_errors) == 1
    assert sink_errors[0]["sink"] == "guidance_updated"


# ---------------------------------------------------------------------
# Chat channel
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_chat_fifo_when_first_request_is_slowest():
    p = Pipeline()
    await p.start()
    release_m1 = p.client.gate("M1")

    for text in ("M1", "M2", "M3"):
        await p.lifecycle.on_user_message(text)
    await asyncio.sleep(0)

    # M2 is not even submitted while M1 is outstanding
    assert p.client.user_prompts == ["M1"]
    assert p.runtime.in_flight_count(Channel.CHAT) == 1

    release_m1.set()
    await p.runtime.wait_idle()

    assert [(m.sender, m.content) for m in p.transcript.messages] == [
        (Sender.USER, "M1"),
        (Sender.AI, "reply: M1"),
        (Sender.USER, "M2"),
        (Sender.AI, "reply: M2"),
        (Sender.USER, "M3"),
        (Sender.AI, "reply: M3"),
    ]
    assert p.transcript.typing == [True, False, True, False, True, False]
    assert [t.input_text for t in p.store.snapshot()] == ["M1", "M2", "M3"]


@pytest.mark.asyncio
async def test_chat_failure_marks_message_and_advances_queue():
    p = Pipeline()
    await p.start()
    p.client.results["M1"] = GuidanceResult.failure(GuidanceErrorKind.REQUEST_FAILED, "500")
    release_m1 = p.client.gate("M1")

    await p.lifecycle.on_user_message("M1")
    await p.lifecycle.on_user_message("M2")
    release_m1.set()
    await p.runtime.wait_idle()

    assert [(m.content, m.failed) for m in p.transcript.messages] == [
        ("M1", True),
        ("M2", False),
        ("reply: M2", False),
    ]
    assert [e.kind for e in p.transcript.errors] == [GuidanceErrorKind.REQUEST_FAILED]
    assert [t.input_text for t in p.store.snapshot()] == ["M2"]


@pytest.mark.asyncio
async def test_chat_messages_do_not_carry_history():
    p = Pipeline()
    await p.start()

    await p.lifecycle.on_fragment("earlier question")
    await p.runtime.wait_idle()
    await p.lifecycle.on_user_message("  plain chat  ")
    await p.runtime.wait_idle()

    assert p.client.user_prompts[-1] == "plain chat"


@pytest.mark.asyncio
async def test_channels_run_concurrently():
    p = Pipeline()
    await p.start()
    release_f = p.client.gate(_guidance_prompt("F1"))
    release_m = p.client.gate("M1")

    await p.lifecycle.on_fragment("F1")
    await p.lifecycle.on_user_message("M1")
    await asyncio.sleep(0)

    assert p.runtime.in_flight_count() == 2
    assert p.runtime.in_flight_count(Channel.GUIDANCE) == 1
    assert p.runtime.in_flight_count(Channel.CHAT) == 1

    release_m.set()
    release_f.set()
    await p.runtime.wait_idle()
    assert p.runtime.in_flight_count() == 0


@pytest.mark.asyncio
async def test_clear_chat_keeps_context():
    p = Pipeline()
    await p.start()
    await p.lifecycle.on_user_message("M1")
    await p.runtime.wait_idle()

    await p.lifecycle.clear_chat()

    assert p.transcript.cleared == 1
    assert len(p.store) == 1


# ---------------------------------------------------------------------
# Session lifecycle
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_end_discards_in_flight_result(_log_lines: list[str]):
    p = Pipeline()
    await p.start()
    release = p.client.gate(_guidance_prompt("F1"))
    release_chat = p.client.gate("M1")

    await p.lifecycle.on_fragment("F1")
    await p.lifecycle.on_user_message("M1")
    await asyncio.sleep(0)

    record = await p.lifecycle.end()

    release.set()
    release_chat.set()
    await p.runtime.wait_idle()

    assert record is not None
    assert record.status is SessionStatus.COMPLETED
    assert record.ended_at is not None
    assert p.lifecycle.session_id is None

    assert p.surface.updates == []
    assert p.transcript.messages == []
    assert p.transcript.typing == [True, False]
    assert len(p.store) == 0
    discarded = _events(_log_lines, "request_result_discarded")
    assert {e["channel"] for e in discarded} == {"GUIDANCE", "CHAT"}


@pytest.mark.asyncio
async def test_start_configures_client_and_issues_session_id():
    p = Pipeline()
    persona = Persona(kind=PersonaKind.NEGOTIATION, custom_context="Budget is 10k")

    record = await p.lifecycle.start(SessionConfig(persona=persona, api_key="key-1"))

    assert p.client.configured == [("key-1", persona, "Budget is 10k")]
    assert p.client.session_id == record.session_id
    assert record.session_id.startswith("sess_")
    assert len(record.session_id) == len("sess_") + 12
    assert record.status is SessionStatus.ACTIVE
    assert p.runtime.state.persona == persona
    assert p.store.session_id == record.session_id


@pytest.mark.asyncio
async def test_restart_completes_previous_record():
    p = Pipeline()
    await p.start()
    first = p.lifecycle.record
    await p.lifecycle.on_fragment("old session")
    await p.runtime.wait_idle()

    await p.start(PersonaKind.EXAM)

    assert first is not None
    assert p.lifecycle.record is not None
    assert p.lifecycle.record.session_id != first.session_id
    assert p.lifecycle.record.persona.kind is PersonaKind.EXAM
    assert len(p.store) == 0


@pytest.mark.asyncio
async def test_end_without_session_is_a_no_op():
    p = Pipeline()

    assert await p.lifecycle.end() is None


@pytest.mark.asyncio
async def test_shutdown_cancels_in_flight_tasks():
    p = Pipeline()
    await p.start()
    p.client.gate(_guidance_prompt("never answered"))

    await p.lifecycle.on_fragment("never answered")
    await asyncio.sleep(0)
    await p.runtime.shutdown()
    await asyncio.sleep(0)

    assert p.runtime.in_flight_count() == 0
    assert p.surface.updates == []
