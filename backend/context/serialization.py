"""
Prompt assembly for the generation service.

Responsibilities:
- Convert persona + custom context into the system instruction
- Convert new input + recent history into the user prompt

Non-responsibilities:
- No history storage
- No logging
- No orchestration decisions
"""

from __future__ import annotations

from adapters.llm.prompts import render_template
from context.persona import Persona
from policy import (
    CONTEXT_INPUT_SEPARATOR,
    CURRENT_INPUT_PREFIX,
    CUSTOM_CONTEXT_CLOSE,
    CUSTOM_CONTEXT_OPEN,
)


def build_system_prompt(persona: Persona) -> str:
    """
    Render the system instruction for a persona.

    Output format:
        <persona template>

        User-provided context:
        -----
        <custom context>
        -----

    The custom block is appended only when it is non-empty after trimming.
    """
    base = render_template(persona.kind, persona.max_sentences)

    custom = persona.custom_context.strip()
    if not custom:
        return base

    return base + CUSTOM_CONTEXT_OPEN + custom + CUSTOM_CONTEXT_CLOSE


def build_user_prompt(
    new_input: str,
    recent_context: str,
    *,
    is_chat_message: bool,
) -> str:
    """
    Render the user prompt.

    Rules:
    - Chat messages are self-contained: returned verbatim (trimmed)
    - Guidance input is prefixed with the recent history block when present
    - Empty input never reaches this function (rejected by the reducer)
    """
    text = new_input.strip()

    if is_chat_message:
        return text

    if recent_context:
        return recent_context + CONTEXT_INPUT_SEPARATOR + CURRENT_INPUT_PREFIX + text

    return CURRENT_INPUT_PREFIX + text
