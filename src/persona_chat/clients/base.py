"""Completion provider interface, error classification and retry backoff."""

from __future__ import annotations

import asyncio
import logging
import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

from ..errors import (
    InvalidCredentialError,
    ProviderError,
    QuotaExceededError,
    TransientProviderError,
)
from ..models.credential import Credential

logger = logging.getLogger(__name__)

T = TypeVar("T")

CHARS_PER_TOKEN = 3

_RETRY_AFTER_PATTERNS = (
    re.compile(r"retry in ([\d.]+)s", re.IGNORECASE),
    re.compile(r"\"?retryDelay\"?:\s*\"?([\d.]+)s", re.IGNORECASE),
)
_DAILY_LIMIT_PATTERN = re.compile(r"limit:\s*(\d+)")

_QUOTA_MARKERS = ("quota", "resource_exhausted", "resource exhausted")
_INVALID_KEY_MARKERS = ("api key not valid", "api_key_invalid", "invalid api key", "permission_denied")
_TRANSIENT_MARKERS = ("overloaded", "unavailable", "rate limit", "try again later")


def estimate_tokens(text: str) -> int:
    """Rough token count used for diagnostics (about three characters per token)."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


@dataclass
class CompletionRequest:
    """One provider call.

    `model` is a model selector from the models config; the provider
    resolves it to a concrete model id.
    """
    model: str
    turns: list[dict[str, Any]]
    system_instruction: str | None = None
    max_output_tokens: int | None = None
    thinking_budget: int | None = None
    temperature: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class CompletionResponse:
    text: str
    token_estimate: int
    model: str
    credential_id: str | None = None


class CompletionProvider(ABC):
    """Abstract base class for completion providers."""

    @abstractmethod
    async def complete(self, request: CompletionRequest, credential: Credential) -> CompletionResponse:
        """Run one completion with the given credential.

        Raises:
            ProviderError: a classified provider failure (quota, invalid
                credential, transient, empty response or other).
        """
        pass


def parse_retry_after(message: str) -> float | None:
    for pattern in _RETRY_AFTER_PATTERNS:
        match = pattern.search(message or "")
        if match:
            try:
                return float(match.group(1))
            except ValueError:
                return None
    return None


def parse_daily_limit(message: str) -> int | None:
    match = _DAILY_LIMIT_PATTERN.search(message or "")
    return int(match.group(1)) if match else None


def quota_message(original: str) -> str:
    """User-facing quota message with daily limit and retry guidance when present."""
    parts = ["API quota exceeded."]
    limit = parse_daily_limit(original)
    if limit is not None and "free_tier" in original.lower():
        parts.append(f"The free tier allows {limit} requests per day.")
    elif limit is not None:
        parts.append(f"The current limit is {limit} requests.")
    retry_after = parse_retry_after(original)
    if retry_after is not None:
        parts.append(f"Try again in about {math.ceil(retry_after)} seconds.")
    else:
        parts.append("Try again later or add another API key.")
    return " ".join(parts)


def _status_of(exc: BaseException) -> int | None:
    for attr in ("code", "status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    return None


def classify_error(exc: BaseException) -> ProviderError:
    """Map an SDK or transport exception onto the provider error taxonomy."""
    if isinstance(exc, ProviderError):
        return exc

    message = str(exc)
    lowered = message.lower()
    status = _status_of(exc)

    if status == 429 or any(marker in lowered for marker in _QUOTA_MARKERS):
        return QuotaExceededError(
            quota_message(message),
            status=status or 429,
            original_message=message,
            retry_after_seconds=parse_retry_after(message),
        )

    if status in (401, 403) or any(marker in lowered for marker in _INVALID_KEY_MARKERS) or (
        status == 400 and "api key" in lowered
    ):
        return InvalidCredentialError(
            "The API key was rejected. Check the key in your credential settings.",
            status=status,
            original_message=message,
        )

    if status in (500, 502, 503, 504) or any(marker in lowered for marker in _TRANSIENT_MARKERS):
        return TransientProviderError(
            "The model is temporarily unavailable. Please try again shortly.",
            status=status,
            original_message=message,
        )

    return ProviderError(message or type(exc).__name__, status=status, original_message=message)


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """Await `fn()` retrying transient provider errors with doubling delays.

    Only TransientProviderError is retried; every other error propagates on
    the first occurrence. After `max_attempts` the last transient error is
    raised.
    """
    attempt = 1
    while True:
        try:
            return await fn()
        except TransientProviderError as e:
            if attempt >= max_attempts:
                logger.warning(f"Giving up after {attempt} attempts: {e.original_message}")
                raise
            delay = base_delay * (2 ** (attempt - 1))
            logger.info(f"Transient provider error (attempt {attempt}/{max_attempts}), retrying in {delay:.1f}s")
            await sleep(delay)
            attempt += 1
