"""Tests for persona block section assembly."""

from persona_chat.core.prompt_builder import PromptBuilder, SectionPosition


def test_sections_follow_position_not_insertion_order() -> None:
    builder = PromptBuilder()
    builder.add_section("closing", "Bye.")
    builder.add_section("summary", "Earlier stuff.")
    builder.add_section("identity", "You are Kai.")

    assert builder.build() == "You are Kai.\n\nEarlier stuff.\n\nBye."


def test_blank_sections_are_skipped() -> None:
    builder = PromptBuilder()
    builder.add_section("identity", "You are Kai.")
    builder.add_section("user_note", "   ")
    builder.add_section("summary", None)

    assert not builder.has_section("user_note")
    assert builder.build() == "You are Kai."


def test_custom_position_and_replacement() -> None:
    builder = PromptBuilder(separator="\n")
    builder.add_section("identity", "You are Kai.")
    builder.add_section("extra", "Before everything.", position=SectionPosition.IDENTITY - 1)
    builder.add_section("identity", "You are Lee.")

    assert builder.build() == "Before everything.\nYou are Lee."


def test_build_with_debug_reports_sizes() -> None:
    builder = PromptBuilder()
    builder.add_section("identity", "You are Kai.")
    builder.add_section("lorebook", "snippet", metadata={"entry_ids": ["a"]})

    prompt, info = builder.build_with_debug()

    assert info["section_order"] == ["identity", "lorebook"]
    assert info["total_chars"] == len("You are Kai.") + len("snippet")
    assert builder.get_section("lorebook").metadata == {"entry_ids": ["a"]}
    assert prompt.endswith("snippet")


def test_empty_builder_builds_empty_string() -> None:
    assert PromptBuilder().build() == ""
