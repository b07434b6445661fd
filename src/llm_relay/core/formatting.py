"""core.formatting

Conversation re-sequencing shared by vendors that need a separate system
prompt and strictly alternating ``user``/``assistant`` turns (Anthropic,
Gemini).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from llm_relay.core.types import Message, Role

if TYPE_CHECKING:
    from collections.abc import Iterable

TURN_SEPARATOR = '\n\n'

# Placeholders inserted so the conversation is never empty and always opens
# with a user turn.
EMPTY_CONVERSATION_PLACEHOLDER = 'Hello'
LEADING_USER_PLACEHOLDER = '.'


def extract_system(messages: Iterable[Message]) -> tuple[str | None, list[Message]]:
    """Split *messages* into a joined system prompt and the remaining turns."""
    system_parts: list[str] = []
    turns: list[Message] = []
    for message in messages:
        if message.role is Role.system:
            system_parts.append(message.content)
        else:
            turns.append(message)
    system = TURN_SEPARATOR.join(system_parts) if system_parts else None
    return system, turns


def merge_consecutive(turns: Iterable[Message]) -> list[Message]:
    """Merge runs of same-role turns, joining contents with a blank line."""
    merged: list[Message] = []
    for turn in turns:
        if merged and merged[-1].role is turn.role:
            previous = merged[-1]
            merged[-1] = Message(role=turn.role, content=previous.content + TURN_SEPARATOR + turn.content)
        else:
            merged.append(turn)
    return merged


def alternate_turns(messages: Iterable[Message]) -> tuple[str | None, list[Message]]:
    """Return ``(system, turns)`` where turns start with user and alternate.

    1. every system message is pulled out and joined into one string;
    2. an empty conversation gets a single ``user: "Hello"`` turn;
    3. a conversation opening with the assistant gets ``user: "."`` prepended;
    4. consecutive same-role turns are merged losslessly.
    """
    system, turns = extract_system(messages)
    if not turns:
        turns = [Message(role=Role.user, content=EMPTY_CONVERSATION_PLACEHOLDER)]
    if turns[0].role is not Role.user:
        turns.insert(0, Message(role=Role.user, content=LEADING_USER_PLACEHOLDER))
    return system, merge_consecutive(turns)
