"""Credential sources for the completion provider.

The chat core only sees the CredentialProvider capability. Stored keys,
a single server-side key from the environment and "no keys at all" are
interchangeable implementations of it.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

from ..errors import CredentialNotFoundError, InvalidRequestError
from ..models.credential import Credential, generate_credential_id
from ..settings import SettingsStore
from ..storage.base import KeyValueStore

logger = logging.getLogger(__name__)

KEY_PREFIX = "credential:"
ENV_CREDENTIAL_ID = "env"


class CredentialProvider(ABC):
    """Abstract source of provider credentials."""

    @abstractmethod
    async def list_credentials(self) -> list[Credential]:
        """Credentials in selection order."""
        pass

    @abstractmethod
    async def mark(self, credential_id: str, **fields) -> None:
        """Set only `fields` on the current record for `credential_id`."""
        pass

    async def pinned_id(self) -> str | None:
        return None


class NullCredentialProvider(CredentialProvider):
    """Provides no credentials; every selection yields None."""

    async def list_credentials(self) -> list[Credential]:
        return []

    async def mark(self, credential_id: str, **fields) -> None:
        return None


class StaticCredentialProvider(CredentialProvider):
    """A single credential held in memory, e.g. the server-side env key."""

    def __init__(self, secret: str, credential_id: str = ENV_CREDENTIAL_ID, display_name: str = "Server key"):
        self._credential = Credential(id=credential_id, secret=secret, display_name=display_name)

    async def list_credentials(self) -> list[Credential]:
        return [Credential.from_dict(self._credential.to_dict())]

    async def mark(self, credential_id: str, **fields) -> None:
        if credential_id == self._credential.id:
            for name, value in fields.items():
                setattr(self._credential, name, value)


class StoredCredentialProvider(CredentialProvider):
    """User-managed credential pool persisted in the key-value store.

    When the pool is empty, credentials come from `fallback` instead.
    """

    def __init__(
        self,
        store: KeyValueStore,
        settings_store: SettingsStore,
        fallback: CredentialProvider | None = None,
    ):
        self.store = store
        self.settings_store = settings_store
        self.fallback = fallback or NullCredentialProvider()
        self._lock = asyncio.Lock()

    async def stored_credentials(self) -> list[Credential]:
        credentials = []
        for key in await self.store.keys(KEY_PREFIX):
            data = await self.store.get(key)
            if data is not None:
                credentials.append(Credential.from_dict(data))
        credentials.sort(key=lambda c: c.created_at)
        return credentials

    async def list_credentials(self) -> list[Credential]:
        credentials = await self.stored_credentials()
        if credentials:
            return credentials
        return await self.fallback.list_credentials()

    async def mark(self, credential_id: str, **fields) -> None:
        key = f"{KEY_PREFIX}{credential_id}"
        async with self._lock:
            data = await self.store.get(key)
            if data is None:
                await self.fallback.mark(credential_id, **fields)
                return
            data.update(fields)
            await self.store.set(key, data)

    async def pinned_id(self) -> str | None:
        return (await self.settings_store.load()).active_credential_id

    # ---- Pool management ----

    async def get(self, credential_id: str) -> Credential:
        data = await self.store.get(f"{KEY_PREFIX}{credential_id}")
        if data is None:
            raise CredentialNotFoundError(f"Credential not found: {credential_id}")
        return Credential.from_dict(data)

    async def add(self, secret: str, display_name: str = "") -> Credential:
        secret = secret.strip()
        if not secret:
            raise InvalidRequestError("API key must not be empty")
        credential = Credential(
            id=generate_credential_id(),
            secret=secret,
            display_name=display_name.strip() or f"Key {len(await self.stored_credentials()) + 1}",
        )
        await self.store.set(f"{KEY_PREFIX}{credential.id}", credential.to_dict())
        logger.info(f"Added credential {credential.id} ({credential.display_name})")
        return credential

    async def update(
        self,
        credential_id: str,
        *,
        display_name: str | None = None,
        is_active: bool | None = None,
    ) -> Credential:
        async with self._lock:
            credential = await self.get(credential_id)
            if display_name is not None:
                credential.display_name = display_name
            if is_active is not None:
                credential.is_active = is_active
            await self.store.set(f"{KEY_PREFIX}{credential.id}", credential.to_dict())
        return credential

    async def delete(self, credential_id: str) -> None:
        if not await self.store.delete(f"{KEY_PREFIX}{credential_id}"):
            raise CredentialNotFoundError(f"Credential not found: {credential_id}")
        if await self.pinned_id() == credential_id:
            await self.settings_store.update(active_credential_id=None)
        logger.info(f"Deleted credential {credential_id}")

    async def pin(self, credential_id: str | None) -> None:
        """Pin a credential for preferred selection, or clear the pin with None."""
        if credential_id is not None:
            await self.get(credential_id)
        await self.settings_store.update(active_credential_id=credential_id)
