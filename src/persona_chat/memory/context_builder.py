"""Bounded prompt assembly for the completion provider.

Only the trailing ``max_turns * 2`` messages are ever sent verbatim. Anything
older reaches the model through the rolling summary in the persona block.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from ..core.prompt_builder import PromptBuilder
from ..models.conversation import Conversation
from ..models.lorebook import LorebookEntry
from ..models.message import ROLE_USER, Message
from ..settings import ChatSettings, length_instruction, output_token_cap

logger = logging.getLogger(__name__)

DEFAULT_MAX_TURNS = 10

PLACEHOLDER_USER_TURN = "Let's begin."
OPENING_MODEL_TURN = "Understood! I'm ready."
CLOSING_LINE = "Converse naturally and warmly."


@dataclass
class PromptPayload:
    """Everything the completion provider needs for one request.

    Attributes:
        system_instruction: The persona block
        turns: Provider-native turns; always starts with a user turn
        window: The stored messages included verbatim (no synthetic turns)
        lorebook_entries: Entries folded into the persona block
        synthetic_opening: True when a placeholder turn was prepended
    """
    system_instruction: str
    turns: list[dict[str, Any]]
    window: list[Message]
    model_selector: str
    lorebook_entries: list[LorebookEntry] = field(default_factory=list)
    max_output_tokens: int | None = None
    thinking_budget: int | None = None
    synthetic_opening: bool = False


def recent_window(messages: list[Message], max_turns: int = DEFAULT_MAX_TURNS) -> list[Message]:
    """The trailing slice of at most ``max_turns * 2`` messages."""
    limit = max(0, max_turns) * 2
    if limit == 0:
        return []
    return list(messages[-limit:])


def _user_turn(text: str) -> dict[str, Any]:
    return {"role": "user", "parts": [{"text": text}]}


def _model_turn(text: str) -> dict[str, Any]:
    return {"role": "model", "parts": [{"text": text}]}


class ContextWindowBuilder:
    """Composes the persona block and the recent window into a PromptPayload."""

    def __init__(self, max_turns: int = DEFAULT_MAX_TURNS):
        self.max_turns = max_turns

    def persona_block(
        self,
        conversation: Conversation,
        lorebook_active: list[LorebookEntry],
        settings: ChatSettings | None = None,
        max_turns: int | None = None,
    ) -> PromptBuilder:
        max_turns = self.max_turns if max_turns is None else max_turns
        builder = PromptBuilder()
        builder.add_section("identity", f"You are {conversation.persona_name}.")
        builder.add_section("instructions", conversation.persona_instructions)

        if conversation.user_note:
            builder.add_section(
                "user_note",
                "[User note: authoritative world setting]\n"
                "The user wrote the following setting and context. "
                "Always treat it as true and honor it in every reply.\n"
                f"{conversation.user_note}",
            )

        if conversation.context_summary:
            builder.add_section(
                "summary",
                "[Summary of earlier conversation]\n"
                f"This condenses the conversation older than the most recent {max_turns} turns. "
                "Use it as background and give the recent conversation priority.\n"
                f"{conversation.context_summary}",
            )

        if lorebook_active:
            snippets = "\n\n".join(
                f"[Keywords: {', '.join(entry.keywords)}]\n{entry.content}" for entry in lorebook_active
            )
            builder.add_section(
                "lorebook",
                f"[Lorebook]\n{snippets}\n\nKeep your replies consistent with the lorebook details above.",
                metadata={"entry_ids": [entry.id for entry in lorebook_active]},
            )

        if settings is not None:
            builder.add_section("length", length_instruction(settings.max_output_tokens))

        builder.add_section("closing", CLOSING_LINE)
        return builder

    def build(
        self,
        conversation: Conversation,
        lorebook_active: list[LorebookEntry],
        max_turns: int | None = None,
        settings: ChatSettings | None = None,
    ) -> PromptPayload:
        max_turns = self.max_turns if max_turns is None else max_turns
        window = recent_window(conversation.messages, max_turns)
        system_instruction = self.persona_block(conversation, lorebook_active, settings, max_turns).build()

        turns = [message.to_provider_format() for message in window]
        synthetic = False
        if not turns:
            # Nothing to continue from: open with the persona alone
            turns = [_user_turn(PLACEHOLDER_USER_TURN), _model_turn(OPENING_MODEL_TURN)]
            synthetic = True
        elif window[0].role != ROLE_USER:
            turns.insert(0, _user_turn(PLACEHOLDER_USER_TURN))
            synthetic = True

        payload = PromptPayload(
            system_instruction=system_instruction,
            turns=turns,
            window=window,
            model_selector=conversation.model_selector,
            lorebook_entries=list(lorebook_active),
            synthetic_opening=synthetic,
        )
        if settings is not None:
            payload.max_output_tokens = output_token_cap(settings.max_output_tokens)
            payload.thinking_budget = (
                int(settings.thinking_budget) if settings.thinking_budget is not None else None
            )

        logger.debug(
            f"Built payload for {conversation.id}: {len(window)} of {len(conversation.messages)} messages, "
            f"{len(lorebook_active)} lorebook entries, synthetic_opening={synthetic}"
        )
        return payload
