"""Conversation memory and context-window management.

- MessageStore: per-conversation message log with summary checkpoint and user note
- LorebookIndex / detect_active: keyword-triggered conditional context
- ContextWindowBuilder: bounded prompt payload for the completion provider
- SummarizationScheduler: rolling summary of older turns
"""

from .context_builder import ContextWindowBuilder, PromptPayload
from .lorebook import LorebookIndex, detect_active
from .message_store import MessageStore
from .summarization import SummarizationScheduler, SummaryState

__all__ = [
    "ContextWindowBuilder",
    "LorebookIndex",
    "MessageStore",
    "PromptPayload",
    "SummarizationScheduler",
    "SummaryState",
    "detect_active",
]
