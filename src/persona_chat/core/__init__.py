"""Chat orchestration.

- PromptBuilder: ordered persona-block sections
- RotatingCompleter: backoff and credential failover around the provider
- ChatService (core.chat_service): the operations exposed to the UI layer
"""

from .completion import RotatingCompleter
from .prompt_builder import PromptBuilder, PromptSection, SectionPosition

__all__ = [
    "PromptBuilder",
    "PromptSection",
    "RotatingCompleter",
    "SectionPosition",
]
