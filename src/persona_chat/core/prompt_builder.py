"""Ordered assembly of the persona block.

The persona block is the system instruction sent with every completion. It is
composed from named sections so each contribution (persona identity, user note,
rolling summary, active lorebook entries, length guidance) can be inspected and
ordered independently.

Usage:
    builder = PromptBuilder()
    builder.add_section("identity", "You are Mina.")
    builder.add_section("summary", summary_text)
    persona_block = builder.build()
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class PromptSection:
    """A named section of the persona block.

    Attributes:
        name: Unique identifier (e.g. 'identity', 'lorebook')
        content: Section text
        position: Sort order, lower comes first
        metadata: Extra data for inspection (e.g. entry ids, source)
    """
    name: str
    content: str
    position: int = 50
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.content:
            self.content = self.content.strip()


class SectionPosition:
    """Standard ordering for persona block sections."""
    IDENTITY = 0
    INSTRUCTIONS = 1
    USER_NOTE = 2
    SUMMARY = 3
    LOREBOOK = 4
    LENGTH = 5
    CLOSING = 6
    CUSTOM = 50


_DEFAULT_POSITIONS = {
    "identity": SectionPosition.IDENTITY,
    "instructions": SectionPosition.INSTRUCTIONS,
    "user_note": SectionPosition.USER_NOTE,
    "summary": SectionPosition.SUMMARY,
    "lorebook": SectionPosition.LOREBOOK,
    "length": SectionPosition.LENGTH,
    "closing": SectionPosition.CLOSING,
}


class PromptBuilder:
    """Assembles the persona block from ordered, named sections."""

    def __init__(self, separator: str = "\n\n"):
        self._sections: OrderedDict[str, PromptSection] = OrderedDict()
        self._separator = separator

    def add_section(
        self,
        name: str,
        content: str | None,
        *,
        position: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> "PromptBuilder":
        """Add or replace a named section; blank content is skipped.

        Returns:
            self for method chaining
        """
        if not content or not content.strip():
            logger.debug(f"Section '{name}' has empty content, skipping")
            return self

        if position is None:
            position = _DEFAULT_POSITIONS.get(name, SectionPosition.CUSTOM)

        self._sections[name] = PromptSection(
            name=name,
            content=content,
            position=position,
            metadata=metadata or {},
        )
        return self

    def get_section(self, name: str) -> PromptSection | None:
        return self._sections.get(name)

    def has_section(self, name: str) -> bool:
        return name in self._sections

    @property
    def sections(self) -> list[PromptSection]:
        """All sections in position order (insertion order breaks ties)."""
        return sorted(self._sections.values(), key=lambda s: s.position)

    def build(self) -> str:
        sections = self.sections
        if not sections:
            return ""
        logger.debug(f"Built persona block with sections: {[s.name for s in sections]}")
        return self._separator.join(s.content for s in sections)

    def build_with_debug(self) -> tuple[str, dict[str, Any]]:
        """Build the block and return per-section sizes for diagnostics."""
        sections = self.sections
        debug_info = {
            "section_order": [s.name for s in sections],
            "section_sizes": {s.name: len(s.content) for s in sections},
            "total_chars": sum(len(s.content) for s in sections),
        }
        return self.build(), debug_info
