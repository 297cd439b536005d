from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any

MAX_KEYWORDS = 5
MAX_CONTENT_LENGTH = 500


def generate_lorebook_id() -> str:
    return f"lorebook_{uuid.uuid4().hex[:12]}"


@dataclass
class LorebookEntry:
    """A keyword-triggered snippet of conditional context."""
    id: str
    keywords: list[str]
    content: str
    enabled: bool = True
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    @property
    def normalized_keywords(self) -> list[str]:
        """Trimmed, lowercased keywords with blanks removed."""
        return [k.strip().lower() for k in self.keywords if k and k.strip()]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "keywords": list(self.keywords),
            "content": self.content,
            "enabled": self.enabled,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LorebookEntry":
        return cls(
            id=data["id"],
            keywords=list(data.get("keywords") or []),
            content=data.get("content", ""),
            enabled=bool(data.get("enabled", True)),
            created_at=float(data.get("created_at") or time.time()),
            updated_at=float(data.get("updated_at") or time.time()),
        )
