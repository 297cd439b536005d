"""Rolling summary of older conversation turns.

Per conversation the scheduler cycles Idle -> Pending -> Summarizing -> Idle.
A summary pass re-reads the conversation from the store when it starts,
folds the unsummarized slice (plus the prior summary) into one narrative and
advances the checkpoint to the message count captured at that moment, so
messages appended while the provider call is in flight stay unsummarized.

Summaries are non-destructive: raw messages remain in the message log.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

from ..clients.base import CompletionRequest
from ..core.completion import RotatingCompleter
from ..models.conversation import Conversation
from ..models.message import ROLE_USER, Message
from ..utils.config import Config
from .message_store import MessageStore

logger = logging.getLogger(__name__)


class SummaryState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SUMMARIZING = "summarizing"


SUMMARIZATION_PROMPT = """Summarize the conversation below so it can be continued later without the transcript.

Requirements:
1. Merge the existing summary (if any) and the new conversation into ONE narrative summary.
2. Keep persistent facts: names, relationships, world rules, decisions, user preferences and ongoing tasks or plans.
3. Drop one-off small talk and ephemeral exchanges that will not matter later.
4. Honor the user note as ground truth; do not contradict it.
5. Do not add facts that are not present in the conversation.
6. Write plain prose, not a transcript.
{existing_summary}{user_note}
New conversation:
{messages}
"""


def format_transcript(messages: list[Message], persona_name: str) -> str:
    lines = []
    for message in messages:
        speaker = "User" if message.role == ROLE_USER else persona_name
        lines.append(f"{speaker}: {message.content}")
    return "\n".join(lines)


def build_summary_prompt(
    messages: list[Message],
    persona_name: str,
    existing_summary: str | None = None,
    user_note: str | None = None,
) -> str:
    return SUMMARIZATION_PROMPT.format(
        existing_summary=f"\nExisting summary:\n{existing_summary}\n" if existing_summary else "",
        user_note=f"\nUser note:\n{user_note}\n" if user_note else "",
        messages=format_transcript(messages, persona_name),
    )


class SummarizationScheduler:
    """Schedules background summary passes and applies their results."""

    def __init__(self, message_store: MessageStore, completer: RotatingCompleter, config: Config):
        self.message_store = message_store
        self.completer = completer
        self.config = config
        self._states: dict[str, SummaryState] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    def state(self, conversation_id: str) -> SummaryState:
        return self._states.get(conversation_id, SummaryState.IDLE)

    def should_summarize(self, conversation: Conversation) -> bool:
        return conversation.unsummarized_count >= self.config.SUMMARIZATION_THRESHOLD

    def maybe_schedule(self, conversation: Conversation) -> bool:
        """Start a background pass if the threshold is crossed and none is running.

        Must be called from a running event loop. Returns True when a pass
        was scheduled.
        """
        if self.state(conversation.id) is not SummaryState.IDLE:
            return False
        if not self.should_summarize(conversation):
            return False

        logger.info(
            f"Scheduling summary for {conversation.id}: {conversation.unsummarized_count} unsummarized messages "
            f"(checkpoint {conversation.summary_checkpoint})"
        )
        self._states[conversation.id] = SummaryState.PENDING
        task = asyncio.create_task(self._run_background(conversation.id))
        self._tasks[conversation.id] = task
        return True

    async def _run_background(self, conversation_id: str) -> None:
        try:
            await self.run_summary(conversation_id)
        except Exception as e:
            logger.warning(f"Summarization failed for {conversation_id}: {e}")
        finally:
            self._states.pop(conversation_id, None)
            self._tasks.pop(conversation_id, None)

    async def run_summary(self, conversation_id: str, *, full_history: bool = False) -> bool:
        """Summarize and apply; returns True if a new summary was stored.

        With `full_history` the whole log is summarized from scratch instead
        of merging the unsummarized slice into the prior summary.
        """
        self._states[conversation_id] = SummaryState.SUMMARIZING
        conversation = await self.message_store.load(conversation_id)
        end = len(conversation.messages)
        start = 0 if full_history else conversation.summary_checkpoint
        new_slice = conversation.messages[start:end]
        if not new_slice:
            logger.debug(f"Nothing to summarize for {conversation_id}")
            return False

        prompt = build_summary_prompt(
            new_slice,
            conversation.persona_name,
            existing_summary=None if full_history else conversation.context_summary,
            user_note=conversation.user_note,
        )
        request = CompletionRequest(
            model=self.config.SUMMARIZATION_MODEL,
            turns=[{"role": "user", "parts": [{"text": prompt}]}],
            max_output_tokens=self.config.SUMMARIZATION_MAX_OUTPUT_TOKENS,
            temperature=self.config.SUMMARIZATION_TEMPERATURE,
            metadata={"purpose": "summarization", "conversation_id": conversation_id},
        )
        response = await self.completer.complete(request)

        applied = await self.message_store.apply_summary(conversation_id, response.text.strip(), end)
        if applied:
            logger.info(f"Summarized messages {start}..{end} of {conversation_id}")
        return applied

    async def summarize_now(self, conversation_id: str) -> Conversation:
        """User-invoked pass over the full history; errors propagate to the caller."""
        await self.wait_idle(conversation_id)
        try:
            await self.run_summary(conversation_id, full_history=True)
        finally:
            self._states.pop(conversation_id, None)
        return await self.message_store.load(conversation_id)

    async def wait_idle(self, conversation_id: str | None = None) -> None:
        """Wait for the background pass of one conversation (or all) to finish."""
        if conversation_id is not None:
            task = self._tasks.get(conversation_id)
            tasks = [task] if task is not None else []
        else:
            tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
