"""Key rotation across the credential pool."""

from __future__ import annotations

import logging
import time
from typing import Callable

from ..models.credential import Credential
from .providers import CredentialProvider

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_SECONDS = 3600


class KeyRotationPolicy:
    """Selects the credential for a request and benches quota-exhausted ones.

    A credential marked quota-exceeded at T is skipped for every selection
    before T + cooldown and becomes eligible again from then on; the stale
    flag is cleared the first time it is considered after expiry.
    """

    def __init__(
        self,
        provider: CredentialProvider,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.provider = provider
        self.cooldown_seconds = cooldown_seconds
        self.clock = clock

    async def _ordered(self) -> list[Credential]:
        credentials = await self.provider.list_credentials()
        pinned = await self.provider.pinned_id()
        if pinned:
            credentials.sort(key=lambda c: c.id != pinned)
        return credentials

    async def select_credential(self, previously_tried: set[str] | None = None) -> Credential | None:
        """Return the next eligible credential not in `previously_tried`, or None."""
        previously_tried = previously_tried or set()
        now = self.clock()

        for credential in await self._ordered():
            if not credential.is_active or credential.id in previously_tried:
                continue
            if credential.quota_exceeded_at is not None:
                if credential.is_cooling_down(now, self.cooldown_seconds):
                    continue
                logger.info(f"Quota cooldown expired for credential {credential.id}")
                credential.quota_exceeded_at = None
                await self.provider.mark(credential.id, quota_exceeded_at=None, last_used_at=now)
            else:
                await self.provider.mark(credential.id, last_used_at=now)
            credential.last_used_at = now
            return credential

        return None

    async def mark_quota_exceeded(self, credential: Credential) -> None:
        credential.quota_exceeded_at = self.clock()
        await self.provider.mark(credential.id, quota_exceeded_at=credential.quota_exceeded_at)
        logger.info(f"Credential {credential.id} hit its quota; benched for {self.cooldown_seconds:.0f}s")
