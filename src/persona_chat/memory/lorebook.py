"""Lorebook storage and keyword activation.

A lorebook entry is injected into the persona block when any of its
keywords appears in the recent message window. The number of active
entries is capped so lorebook content can never crowd out the
conversation itself.
"""

import logging
import time
from typing import Iterable

from ..errors import LorebookNotFoundError, LorebookValidationError
from ..models.lorebook import (
    MAX_CONTENT_LENGTH,
    MAX_KEYWORDS,
    LorebookEntry,
    generate_lorebook_id,
)
from ..models.message import Message
from ..storage.base import KeyValueStore

logger = logging.getLogger(__name__)

KEY_PREFIX = "lorebook:"


def detect_active(
    recent_messages: list[Message],
    entries: Iterable[LorebookEntry],
    cap: int,
) -> list[LorebookEntry]:
    """Return the enabled entries triggered by `recent_messages`.

    An entry is triggered when any trimmed, lowercased keyword is a
    substring of the lowercased window text. Triggered entries are ordered
    by `updated_at` (newest first) and truncated to `cap`.
    """
    if not recent_messages or cap <= 0:
        return []

    enabled = [e for e in entries if e.enabled]
    if not enabled:
        return []

    combined_text = " ".join(m.content for m in recent_messages).lower()

    detected = [
        entry for entry in enabled
        if any(keyword in combined_text for keyword in entry.normalized_keywords)
    ]
    detected.sort(key=lambda e: e.updated_at, reverse=True)
    return detected[:cap]


def validate_entry(keywords: list[str], content: str, enabled: bool = True) -> None:
    if len(keywords) > MAX_KEYWORDS:
        raise LorebookValidationError(f"At most {MAX_KEYWORDS} keywords are allowed")
    if len(content) > MAX_CONTENT_LENGTH:
        raise LorebookValidationError(f"Content is limited to {MAX_CONTENT_LENGTH} characters")
    if enabled and not any(k and k.strip() for k in keywords):
        raise LorebookValidationError("At least one non-blank keyword is required")


class LorebookIndex:
    """CRUD over lorebook entries plus activation against a message window."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    async def list_entries(self) -> list[LorebookEntry]:
        """All entries, most recently updated first."""
        entries = []
        for key in await self.store.keys(KEY_PREFIX):
            data = await self.store.get(key)
            if data is not None:
                entries.append(LorebookEntry.from_dict(data))
        entries.sort(key=lambda e: e.updated_at, reverse=True)
        return entries

    async def get(self, entry_id: str) -> LorebookEntry:
        data = await self.store.get(f"{KEY_PREFIX}{entry_id}")
        if data is None:
            raise LorebookNotFoundError(f"Lorebook entry not found: {entry_id}")
        return LorebookEntry.from_dict(data)

    async def add(self, keywords: list[str], content: str, enabled: bool = True) -> LorebookEntry:
        keywords = [k.strip() for k in keywords if k and k.strip()]
        validate_entry(keywords, content, enabled=True)
        entry = LorebookEntry(
            id=generate_lorebook_id(),
            keywords=keywords,
            content=content,
            enabled=enabled,
        )
        await self.store.set(f"{KEY_PREFIX}{entry.id}", entry.to_dict())
        logger.debug(f"Added lorebook entry {entry.id} ({', '.join(keywords)})")
        return entry

    async def update(
        self,
        entry_id: str,
        *,
        keywords: list[str] | None = None,
        content: str | None = None,
        enabled: bool | None = None,
    ) -> LorebookEntry:
        entry = await self.get(entry_id)
        if keywords is not None:
            entry.keywords = [k.strip() for k in keywords if k and k.strip()]
        if content is not None:
            entry.content = content
        if enabled is not None:
            entry.enabled = enabled
        validate_entry(entry.keywords, entry.content, enabled=entry.enabled)
        entry.updated_at = time.time()
        await self.store.set(f"{KEY_PREFIX}{entry.id}", entry.to_dict())
        return entry

    async def delete(self, entry_id: str) -> bool:
        return await self.store.delete(f"{KEY_PREFIX}{entry_id}")

    async def detect_active(self, recent_messages: list[Message], cap: int) -> list[LorebookEntry]:
        active = detect_active(recent_messages, await self.list_entries(), cap)
        if active:
            logger.debug(f"Lorebook activated {len(active)} entries: {[e.id for e in active]}")
        return active
