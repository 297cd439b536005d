"""Completion providers.

- CompletionProvider: abstract interface consumed by the chat core
- GeminiClient: google-genai backed implementation
"""

from .base import (
    CompletionProvider,
    CompletionRequest,
    CompletionResponse,
    classify_error,
    estimate_tokens,
    retry_with_backoff,
)
from .gemini_client import GeminiClient

__all__ = [
    "CompletionProvider",
    "CompletionRequest",
    "CompletionResponse",
    "GeminiClient",
    "classify_error",
    "estimate_tokens",
    "retry_with_backoff",
]
