from abc import ABC, abstractmethod
from typing import Any


class KeyValueStore(ABC):
    """Abstract async key-value store.

    Values are JSON-compatible dicts. Every method is a suspension point;
    implementations raise StorageError on backend failure.
    """

    @abstractmethod
    async def get(self, key: str) -> dict[str, Any] | None:
        """Return the value stored under `key`, or None."""
        ...

    @abstractmethod
    async def set(self, key: str, value: dict[str, Any]) -> None:
        """Insert or replace the value stored under `key`."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove `key`. Returns True if something was deleted."""
        ...

    @abstractmethod
    async def keys(self, prefix: str = "") -> list[str]:
        """List keys starting with `prefix`, sorted."""
        ...

    async def close(self) -> None:
        pass
