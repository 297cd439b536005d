"""Provider calls with transient backoff and credential failover."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from ..clients.base import CompletionProvider, CompletionRequest, CompletionResponse, retry_with_backoff
from ..credentials.rotation import KeyRotationPolicy
from ..errors import NoCredentialError, ProviderError, QuotaExceededError, TransientProviderError

logger = logging.getLogger(__name__)


class RotatingCompleter:
    """Runs one logical completion across the credential pool.

    Each call starts a fresh exclusion set. Per credential, transient errors
    are retried with backoff first; a quota error benches the credential and
    moves on, as does a transient error that outlives its retries. Invalid
    credentials and other provider errors surface immediately. The loop ends
    after at most one attempt per credential.
    """

    def __init__(
        self,
        provider: CompletionProvider,
        rotation: KeyRotationPolicy,
        *,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.provider = provider
        self.rotation = rotation
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.sleep = sleep

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        tried: set[str] = set()
        last_error: ProviderError | None = None

        while True:
            credential = await self.rotation.select_credential(tried)
            if credential is None:
                break
            tried.add(credential.id)

            try:
                return await retry_with_backoff(
                    lambda: self.provider.complete(request, credential),
                    max_attempts=self.max_attempts,
                    base_delay=self.base_delay,
                    sleep=self.sleep,
                )
            except QuotaExceededError as e:
                await self.rotation.mark_quota_exceeded(credential)
                logger.info(f"Rotating away from credential {credential.id} after quota error")
                last_error = e
            except TransientProviderError as e:
                logger.info(f"Rotating away from credential {credential.id} after repeated transient errors")
                last_error = e

        if last_error is not None:
            raise last_error
        raise NoCredentialError(
            "No usable API key. Add a key in the credential settings or wait for the quota to reset."
        )
