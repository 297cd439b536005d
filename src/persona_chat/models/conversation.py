"""Conversation record owned by the message store."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any

from .message import ROLE_USER, Message

ELLIPSIS = "..."


def generate_conversation_id() -> str:
    return f"chat_{uuid.uuid4().hex[:16]}"


def generate_title(messages: list[Message], default_title: str = "New Chat", max_chars: int = 30) -> str:
    """Derive a conversation title from the first user message.

    Empty histories (or histories with no user turn) get `default_title`.
    Titles longer than `max_chars` are cut and marked with an ellipsis.
    """
    first_user = next((m for m in messages if m.role == ROLE_USER), None)
    if first_user is None:
        return default_title
    title = first_user.content[:max_chars]
    if len(title) < len(first_user.content):
        return f"{title}{ELLIPSIS}"
    return title


@dataclass
class Conversation:
    id: str
    title: str
    persona_name: str
    persona_instructions: str
    model_selector: str
    messages: list[Message] = field(default_factory=list)
    context_summary: str | None = None
    summary_checkpoint: int = 0
    user_note: str | None = None
    title_edited: bool = False
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    @property
    def message_count(self) -> int:
        return len(self.messages)

    @property
    def unsummarized_count(self) -> int:
        return len(self.messages) - self.summary_checkpoint

    @property
    def preview(self) -> str:
        first_user = next((m for m in self.messages if m.role == ROLE_USER), None)
        return first_user.content[:80] if first_user else ""

    def touch(self) -> None:
        self.updated_at = time.time()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "persona_name": self.persona_name,
            "persona_instructions": self.persona_instructions,
            "model_selector": self.model_selector,
            "messages": [m.to_dict() for m in self.messages],
            "context_summary": self.context_summary,
            "summary_checkpoint": self.summary_checkpoint,
            "user_note": self.user_note,
            "title_edited": self.title_edited,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Conversation":
        messages = [Message.from_dict(m) for m in data.get("messages", [])]
        checkpoint = int(data.get("summary_checkpoint") or 0)
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            persona_name=data.get("persona_name", ""),
            persona_instructions=data.get("persona_instructions", ""),
            model_selector=data.get("model_selector", ""),
            messages=messages,
            context_summary=data.get("context_summary"),
            # Clamp records written by older versions
            summary_checkpoint=max(0, min(checkpoint, len(messages))),
            user_note=data.get("user_note"),
            title_edited=bool(data.get("title_edited", False)),
            created_at=float(data.get("created_at") or time.time()),
            updated_at=float(data.get("updated_at") or time.time()),
        )
