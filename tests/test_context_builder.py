"""Tests for prompt payload assembly."""

from __future__ import annotations

from persona_chat.memory.context_builder import (
    CLOSING_LINE,
    OPENING_MODEL_TURN,
    PLACEHOLDER_USER_TURN,
    ContextWindowBuilder,
    recent_window,
)
from persona_chat.models.conversation import Conversation
from persona_chat.models.lorebook import LorebookEntry
from persona_chat.models.message import Message
from persona_chat.settings import ChatSettings, OutputLength, ThinkingBudget


def _conversation(messages: list[Message], **fields) -> Conversation:
    return Conversation(
        id="chat_test",
        title="t",
        persona_name="Mina",
        persona_instructions="A cheerful baker.",
        model_selector="gemini-pro",
        messages=messages,
        **fields,
    )


def _alternating(count: int, start_role: str = "user") -> list[Message]:
    roles = ("user", "assistant") if start_role == "user" else ("assistant", "user")
    return [Message(roles[i % 2], f"m{i}") for i in range(count)]


def test_window_cap_for_every_history_length() -> None:
    builder = ContextWindowBuilder(max_turns=10)
    for n in range(0, 45):
        payload = builder.build(_conversation(_alternating(n)), [])
        assert len(payload.window) == min(n, 20)
        if n:
            assert payload.window[-1].content == f"m{n - 1}"


def test_first_turn_is_always_user() -> None:
    builder = ContextWindowBuilder(max_turns=3)
    for start_role in ("user", "assistant"):
        for n in range(0, 15):
            payload = builder.build(_conversation(_alternating(n, start_role)), [])
            assert payload.turns[0]["role"] == "user"


def test_window_starting_on_assistant_gets_placeholder() -> None:
    # 21 messages: the 20-message window starts on an assistant turn
    payload = ContextWindowBuilder().build(_conversation(_alternating(21)), [])

    assert payload.window[0].role == "assistant"
    assert payload.synthetic_opening is True
    assert payload.turns[0] == {"role": "user", "parts": [{"text": PLACEHOLDER_USER_TURN}]}
    assert len(payload.turns) == 21
    assert payload.turns[1]["role"] == "model"


def test_empty_history_builds_opening_pair() -> None:
    payload = ContextWindowBuilder().build(_conversation([]), [])

    assert payload.window == []
    assert [t["role"] for t in payload.turns] == ["user", "model"]
    assert payload.turns[1]["parts"][0]["text"] == OPENING_MODEL_TURN
    assert "You are Mina." in payload.system_instruction


def test_summary_lives_in_persona_block_only() -> None:
    conversation = _conversation(
        _alternating(30),
        context_summary="SUMMARY-MARKER: they met at the bakery",
        summary_checkpoint=10,
    )
    payload = ContextWindowBuilder().build(conversation, [])

    assert "SUMMARY-MARKER" in payload.system_instruction
    for turn in payload.turns:
        assert "SUMMARY-MARKER" not in turn["parts"][0]["text"]


def test_persona_block_order() -> None:
    conversation = _conversation(
        _alternating(2),
        context_summary="older events",
        user_note="It is always raining.",
    )
    entry = LorebookEntry(id="lb1", keywords=["bread", "oven"], content="The oven is magic.")
    settings = ChatSettings(max_output_tokens=OutputLength.TINY)

    block = ContextWindowBuilder().build(conversation, [entry], settings=settings).system_instruction

    positions = [
        block.index("You are Mina."),
        block.index("A cheerful baker."),
        block.index("It is always raining."),
        block.index("older events"),
        block.index("[Keywords: bread, oven]\nThe oven is magic."),
        block.index("1-2 sentences"),
        block.index(CLOSING_LINE),
    ]
    assert positions == sorted(positions)


def test_optional_sections_are_omitted() -> None:
    block = ContextWindowBuilder().build(_conversation(_alternating(2)), []).system_instruction

    assert "[User note" not in block
    assert "[Summary" not in block
    assert "[Lorebook]" not in block


def test_settings_drive_output_cap_and_thinking() -> None:
    builder = ContextWindowBuilder()
    conversation = _conversation(_alternating(2))

    capped = builder.build(conversation, [], settings=ChatSettings(
        max_output_tokens=OutputLength.SHORT, thinking_budget=ThinkingBudget.HIGH,
    ))
    assert capped.max_output_tokens == 512
    assert capped.thinking_budget == 2048

    unlimited = builder.build(conversation, [], settings=ChatSettings(
        max_output_tokens=OutputLength.UNLIMITED, thinking_budget=None,
    ))
    assert unlimited.max_output_tokens is None
    assert unlimited.thinking_budget is None
    assert "Reply" not in unlimited.system_instruction


def test_assistant_turns_use_model_role() -> None:
    payload = ContextWindowBuilder().build(_conversation(_alternating(4)), [])
    assert [t["role"] for t in payload.turns] == ["user", "model", "user", "model"]


def test_recent_window_helper() -> None:
    messages = _alternating(7)
    assert [m.content for m in recent_window(messages, 2)] == ["m3", "m4", "m5", "m6"]
    assert recent_window(messages, 0) == []
