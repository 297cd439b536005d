from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any


def generate_credential_id() -> str:
    return f"key_{uuid.uuid4().hex[:12]}"


def mask_secret(secret: str) -> str:
    if len(secret) <= 8:
        return "*" * len(secret)
    return f"{secret[:4]}...{secret[-4:]}"


@dataclass
class Credential:
    """A provider API key in the credential pool."""
    id: str
    secret: str
    display_name: str
    is_active: bool = True
    quota_exceeded_at: float | None = None
    last_used_at: float | None = None
    created_at: float = field(default_factory=time.time)

    def is_cooling_down(self, now: float, cooldown_seconds: float) -> bool:
        if self.quota_exceeded_at is None:
            return False
        return now - self.quota_exceeded_at < cooldown_seconds

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "secret": self.secret,
            "display_name": self.display_name,
            "is_active": self.is_active,
            "quota_exceeded_at": self.quota_exceeded_at,
            "last_used_at": self.last_used_at,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Credential":
        return cls(
            id=data["id"],
            secret=data["secret"],
            display_name=data.get("display_name", ""),
            is_active=bool(data.get("is_active", True)),
            quota_exceeded_at=data.get("quota_exceeded_at"),
            last_used_at=data.get("last_used_at"),
            created_at=float(data.get("created_at") or time.time()),
        )
