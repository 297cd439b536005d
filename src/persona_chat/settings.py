"""User chat settings and the discrete tiers they select from.

Each tier is a closed enum mapped to its policy through an explicit lookup
table, so every value has exactly one documented behavior.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from enum import IntEnum
from typing import Any

from .storage.base import KeyValueStore

logger = logging.getLogger(__name__)

SETTINGS_KEY = "settings:chat"

MIN_OUTPUT_TOKENS = 256


class OutputLength(IntEnum):
    """Maximum output tokens; UNLIMITED sends no cap and no length instruction."""
    TINY = 256
    SHORT = 512
    MEDIUM = 1024
    LONG = 2048
    DETAILED = 4096
    EXHAUSTIVE = 6144
    UNLIMITED = 8192


LENGTH_INSTRUCTIONS: dict[OutputLength, str | None] = {
    OutputLength.TINY: "Keep your reply very brief: deliver only the essentials in 1-2 sentences.",
    OutputLength.SHORT: "Keep your reply concise and clear.",
    OutputLength.MEDIUM: "Reply at a moderate length.",
    OutputLength.LONG: "Reply in detail.",
    OutputLength.DETAILED: (
        "Reply in great detail and depth. Include examples and explanations where useful."
    ),
    OutputLength.EXHAUSTIVE: (
        "Reply with exhaustive depth. Cover multiple perspectives with rich examples "
        "and background so the answer is complete."
    ),
    OutputLength.UNLIMITED: None,
}


class ThinkingBudget(IntEnum):
    """Thinking token budget for models that support it (-1 lets the model decide)."""
    MINIMAL = 128
    LOW = 512
    MEDIUM = 1024
    HIGH = 2048
    MAXIMUM = 32768
    DYNAMIC = -1


class MaxActiveLorebooks(IntEnum):
    FEW = 3
    DEFAULT = 5
    MORE = 8
    MOST = 10


# Values written by earlier releases
_LEGACY_OUTPUT_LENGTHS = {100: OutputLength.TINY, 500: OutputLength.SHORT, 1000: OutputLength.MEDIUM}


def length_instruction(tier: OutputLength) -> str | None:
    return LENGTH_INSTRUCTIONS[OutputLength(tier)]


def output_token_cap(tier: OutputLength) -> int | None:
    """Output token cap to send to the provider, or None for no cap."""
    tier = OutputLength(tier)
    if tier is OutputLength.UNLIMITED:
        return None
    return max(MIN_OUTPUT_TOKENS, int(tier))


@dataclass
class ChatSettings:
    max_output_tokens: OutputLength = OutputLength.UNLIMITED
    thinking_budget: ThinkingBudget | None = ThinkingBudget.MEDIUM
    max_active_lorebooks: MaxActiveLorebooks = MaxActiveLorebooks.DEFAULT
    active_credential_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["max_output_tokens"] = int(self.max_output_tokens)
        data["thinking_budget"] = int(self.thinking_budget) if self.thinking_budget is not None else None
        data["max_active_lorebooks"] = int(self.max_active_lorebooks)
        return data


def migrate_settings(raw: dict[str, Any] | None) -> ChatSettings:
    """Build ChatSettings from a stored record, repairing legacy or invalid values."""
    settings = ChatSettings()
    if not raw:
        return settings

    output = raw.get("max_output_tokens")
    if output in _LEGACY_OUTPUT_LENGTHS:
        settings.max_output_tokens = _LEGACY_OUTPUT_LENGTHS[output]
    elif output in OutputLength._value2member_map_:
        settings.max_output_tokens = OutputLength(output)

    if "thinking_budget" in raw:
        budget = raw.get("thinking_budget")
        if budget is None:
            settings.thinking_budget = None
        elif budget in ThinkingBudget._value2member_map_:
            settings.thinking_budget = ThinkingBudget(budget)

    lorebooks = raw.get("max_active_lorebooks")
    if lorebooks in MaxActiveLorebooks._value2member_map_:
        settings.max_active_lorebooks = MaxActiveLorebooks(lorebooks)

    credential_id = raw.get("active_credential_id")
    if isinstance(credential_id, str) and credential_id:
        settings.active_credential_id = credential_id

    return settings


class SettingsStore:
    def __init__(self, store: KeyValueStore):
        self.store = store

    async def load(self) -> ChatSettings:
        return migrate_settings(await self.store.get(SETTINGS_KEY))

    async def save(self, settings: ChatSettings) -> None:
        await self.store.set(SETTINGS_KEY, settings.to_dict())

    async def update(self, **updates: Any) -> ChatSettings:
        current = (await self.load()).to_dict()
        current.update(updates)
        settings = migrate_settings(current)
        await self.save(settings)
        return settings
