import time
from typing import Any

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
VALID_ROLES = (ROLE_USER, ROLE_ASSISTANT)


class Message:
    """A single conversation turn as stored in the message log."""

    def __init__(
        self,
        role: str,
        content: str,
        timestamp: float | None = None,
    ):
        if role not in VALID_ROLES:
            raise ValueError(f"Invalid message role: {role!r}")
        self.role = role
        self.content = content if content is not None else ""
        self.timestamp = timestamp if timestamp else time.time()

    @classmethod
    def from_dict(cls, data: dict) -> 'Message':
        """Create a Message from a dictionary"""
        role = data.get("role", ROLE_USER)
        content = cls._extract_content(data)
        timestamp = data.get("timestamp", time.time())
        return cls(role, content, timestamp)

    @staticmethod
    def _extract_content(data: dict) -> str:
        content = data.get("content", "")
        if isinstance(content, list):
            return " ".join(item.get("text", "") for item in content if item.get("type") == "text")
        return str(content)

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content, "timestamp": self.timestamp}

    def to_provider_format(self) -> dict[str, Any]:
        """Convert to the provider's turn format (assistant turns are 'model')."""
        provider_role = "model" if self.role == ROLE_ASSISTANT else "user"
        return {"role": provider_role, "parts": [{"text": self.content or ""}]}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Message):
            return NotImplemented
        return self.role == other.role and self.content == other.content

    def __repr__(self) -> str:
        preview = self.content[:40]
        return f"Message(role={self.role!r}, content={preview!r})"
