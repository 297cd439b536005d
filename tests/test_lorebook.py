"""Tests for lorebook activation and entry management."""

from __future__ import annotations

import asyncio

import pytest

from persona_chat.errors import LorebookNotFoundError, LorebookValidationError
from persona_chat.memory.lorebook import LorebookIndex, detect_active
from persona_chat.models.lorebook import LorebookEntry
from persona_chat.models.message import Message
from persona_chat.storage.memory import InMemoryStore


def _entry(entry_id: str, keywords: list[str], updated_at: float, enabled: bool = True) -> LorebookEntry:
    return LorebookEntry(
        id=entry_id,
        keywords=keywords,
        content=f"content for {entry_id}",
        enabled=enabled,
        created_at=updated_at,
        updated_at=updated_at,
    )


class TestDetectActive:
    def test_cap_keeps_most_recently_updated(self) -> None:
        entries = [_entry("dragon", ["dragon"], 100.0), _entry("forest", ["forest"], 200.0)]
        messages = [Message("user", "a dragon flew over the forest")]

        active = detect_active(messages, entries, cap=1)

        assert [e.id for e in active] == ["forest"]

    def test_matches_are_case_insensitive_and_trimmed(self) -> None:
        entries = [_entry("castle", ["  CaStLe "], 1.0)]
        messages = [Message("assistant", "We reached the old Castle gate.")]

        assert [e.id for e in detect_active(messages, entries, cap=5)] == ["castle"]

    def test_any_keyword_activates(self) -> None:
        entries = [_entry("sword", ["blade", "sword"], 1.0)]
        messages = [Message("user", "hand me the sword")]

        assert len(detect_active(messages, entries, cap=5)) == 1

    def test_disabled_and_whitespace_entries_never_activate(self) -> None:
        entries = [
            _entry("off", ["dragon"], 3.0, enabled=False),
            _entry("blank", ["   ", ""], 2.0),
            _entry("on", ["dragon"], 1.0),
        ]
        messages = [Message("user", "dragon   ")]

        assert [e.id for e in detect_active(messages, entries, cap=5)] == ["on"]

    def test_scans_all_messages_in_window(self) -> None:
        entries = [_entry("a", ["apple"], 1.0), _entry("b", ["banana"], 2.0)]
        messages = [Message("user", "I like apple"), Message("assistant", "banana is fine too")]

        assert [e.id for e in detect_active(messages, entries, cap=5)] == ["b", "a"]

    def test_empty_inputs_yield_nothing(self) -> None:
        entries = [_entry("a", ["apple"], 1.0)]
        assert detect_active([], entries, cap=5) == []
        assert detect_active([Message("user", "apple")], [], cap=5) == []
        assert detect_active([Message("user", "apple")], entries, cap=0) == []

    def test_never_exceeds_cap(self) -> None:
        entries = [_entry(f"e{i}", ["word"], float(i)) for i in range(12)]
        messages = [Message("user", "word")]

        for cap in (1, 3, 5, 8, 10):
            active = detect_active(messages, entries, cap=cap)
            assert len(active) == cap
            assert [e.updated_at for e in active] == sorted((e.updated_at for e in active), reverse=True)


class TestLorebookIndex:
    def test_add_list_update_delete(self) -> None:
        async def scenario():
            index = LorebookIndex(InMemoryStore())
            first = await index.add(["elf", " "], "Elves live in the east.")
            await asyncio.sleep(0.01)
            second = await index.add(["orc"], "Orcs hate the sun.")

            assert first.keywords == ["elf"]
            assert [e.id for e in await index.list_entries()] == [second.id, first.id]

            await asyncio.sleep(0.01)
            updated = await index.update(first.id, content="Elves moved west.")
            assert updated.content == "Elves moved west."
            assert [e.id for e in await index.list_entries()] == [first.id, second.id]

            assert await index.delete(second.id) is True
            assert await index.delete(second.id) is False
            with pytest.raises(LorebookNotFoundError):
                await index.get(second.id)

        asyncio.run(scenario())

    def test_validation_limits(self) -> None:
        async def scenario():
            index = LorebookIndex(InMemoryStore())
            with pytest.raises(LorebookValidationError):
                await index.add(["a", "b", "c", "d", "e", "f"], "too many keywords")
            with pytest.raises(LorebookValidationError):
                await index.add(["a"], "x" * 501)
            with pytest.raises(LorebookValidationError):
                await index.add(["  "], "no usable keyword")

            entry = await index.add(["a", "b", "c", "d", "e"], "x" * 500)
            with pytest.raises(LorebookValidationError):
                await index.update(entry.id, keywords=[])

            disabled = await index.update(entry.id, enabled=False)
            assert disabled.enabled is False

        asyncio.run(scenario())

    def test_detect_active_reads_stored_entries(self) -> None:
        async def scenario():
            index = LorebookIndex(InMemoryStore())
            await index.add(["moon"], "The moon is red.")
            await index.add(["sun"], "The sun never sets.", enabled=False)
            return await index.detect_active([Message("user", "look at the moon and sun")], cap=5)

        active = asyncio.run(scenario())
        assert [e.content for e in active] == ["The moon is red."]
