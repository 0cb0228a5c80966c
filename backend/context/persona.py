"""
Persona definitions.

A persona selects:
- the fixed instruction template (adapters/llm/prompts.py)
- the response-length policy (sentence-count ceiling)
- an optional user-supplied context block

Personas are immutable for the lifetime of a session.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from policy import DEFAULT_MAX_SENTENCES, EXAM_MAX_SENTENCES


class PersonaKind(str, Enum):
    """Persona identifiers, also used as persisted-settings keys."""

    INTERVIEW = "interview"
    SALES = "sales"
    MEETING = "meeting"
    NEGOTIATION = "negotiation"
    EXAM = "exam"


@dataclass(frozen=True)
class PersonaInfo:
    """Human-facing metadata for a persona."""
    display_name: str
    description: str
    max_sentences: int


PERSONA_INFO: dict[PersonaKind, PersonaInfo] = {
    PersonaKind.INTERVIEW: PersonaInfo("Job Interview", "Get real-time coaching", DEFAULT_MAX_SENTENCES),
    PersonaKind.SALES: PersonaInfo("Sales Call", "Optimize your pitch", DEFAULT_MAX_SENTENCES),
    PersonaKind.MEETING: PersonaInfo("Meeting", "Stay on track", DEFAULT_MAX_SENTENCES),
    PersonaKind.NEGOTIATION: PersonaInfo("Negotiation", "Strategic guidance", DEFAULT_MAX_SENTENCES),
    PersonaKind.EXAM: PersonaInfo("Exam", "Quick answers", EXAM_MAX_SENTENCES),
}


@dataclass(frozen=True)
class Persona:
    """Session-scoped persona configuration."""

    kind: PersonaKind = PersonaKind.INTERVIEW
    custom_context: str = ""

    @property
    def key(self) -> str:
        return self.kind.value

    @property
    def info(self) -> PersonaInfo:
        return PERSONA_INFO[self.kind]

    @property
    def max_sentences(self) -> int:
        return self.info.max_sentences

    @staticmethod
    def from_key(key: str, custom_context: str = "", *, strict: bool = True) -> Persona:
        """
        Build a persona from its identifier.

        Raises:
            ValueError if `key` is unknown and `strict` is True.
            With strict=False, unknown keys fall back to INTERVIEW.
        """
        try:
            kind = PersonaKind(key.strip().lower())
        except ValueError:
            if strict:
                raise ValueError(f"unknown persona: {key!r}") from None
            kind = PersonaKind.INTERVIEW
        return Persona(kind=kind, custom_context=custom_context)
