"""Append-only conversation log backed by a key-value store.

Each conversation is one record under ``conversation:<id>``. Mutations are
read-modify-write cycles serialized per conversation, so a background
summary write can never clobber a concurrent append.
"""

import asyncio
import logging
from typing import Callable

from ..errors import ConversationNotFoundError, MessageIndexError
from ..models.conversation import Conversation, generate_conversation_id, generate_title
from ..models.message import ROLE_ASSISTANT, ROLE_USER, Message
from ..storage.base import KeyValueStore
from ..utils.config import Config

logger = logging.getLogger(__name__)

KEY_PREFIX = "conversation:"


def _key(conversation_id: str) -> str:
    return f"{KEY_PREFIX}{conversation_id}"


class MessageStore:
    store: KeyValueStore
    config: Config

    def __init__(self, store: KeyValueStore, config: Config):
        self.store = store
        self.config = config
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, conversation_id: str) -> asyncio.Lock:
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[conversation_id] = lock
        return lock

    async def _save(self, conversation: Conversation) -> None:
        await self.store.set(_key(conversation.id), conversation.to_dict())

    async def _mutate(self, conversation_id: str, fn: Callable[[Conversation], object]):
        """Load, apply `fn`, refresh updated_at and persist under the conversation lock."""
        async with self._lock(conversation_id):
            conversation = await self.load(conversation_id)
            result = fn(conversation)
            conversation.touch()
            await self._save(conversation)
            return conversation, result

    # ---- Lifecycle ----

    async def create(
        self,
        persona_name: str | None = None,
        persona_instructions: str | None = None,
        model_selector: str | None = None,
    ) -> Conversation:
        conversation = Conversation(
            id=generate_conversation_id(),
            title=self.config.DEFAULT_TITLE,
            persona_name=persona_name or self.config.DEFAULT_PERSONA_NAME,
            persona_instructions=persona_instructions or self.config.DEFAULT_PERSONA_INSTRUCTIONS,
            model_selector=model_selector or self.config.DEFAULT_MODEL,
        )
        await self._save(conversation)
        logger.debug(f"Created conversation {conversation.id}")
        await self._prune()
        return conversation

    async def load(self, conversation_id: str) -> Conversation:
        data = await self.store.get(_key(conversation_id))
        if data is None:
            raise ConversationNotFoundError(conversation_id)
        return Conversation.from_dict(data)

    async def exists(self, conversation_id: str) -> bool:
        return await self.store.get(_key(conversation_id)) is not None

    async def list_conversations(self) -> list[Conversation]:
        """Return all conversations, most recently updated first."""
        conversations = []
        for key in await self.store.keys(KEY_PREFIX):
            data = await self.store.get(key)
            if data is not None:
                conversations.append(Conversation.from_dict(data))
        conversations.sort(key=lambda c: c.updated_at, reverse=True)
        return conversations

    async def delete(self, conversation_id: str) -> bool:
        async with self._lock(conversation_id):
            deleted = await self.store.delete(_key(conversation_id))
        self._locks.pop(conversation_id, None)
        return deleted

    async def _prune(self) -> None:
        limit = self.config.MAX_STORED_CONVERSATIONS
        if limit <= 0:
            return
        conversations = await self.list_conversations()
        for stale in conversations[limit:]:
            logger.info(f"Pruning conversation {stale.id} (store limit {limit})")
            await self.delete(stale.id)

    # ---- Message log ----

    async def append(self, conversation_id: str, message: Message) -> Message:
        """Append a message and persist it before returning."""

        def _append(conversation: Conversation) -> None:
            conversation.messages.append(message)
            if message.role == ROLE_USER and not conversation.title_edited:
                if conversation.title == self.config.DEFAULT_TITLE:
                    conversation.title = generate_title(
                        conversation.messages,
                        default_title=self.config.DEFAULT_TITLE,
                        max_chars=self.config.TITLE_MAX_CHARS,
                    )

        await self._mutate(conversation_id, _append)
        return message

    async def load_window(self, conversation_id: str, start: int, count: int) -> list[Message]:
        """Return up to `count` messages starting at `start` (for paginated scrollback)."""
        if start < 0 or count < 0:
            raise MessageIndexError(f"Invalid window start={start} count={count}")
        conversation = await self.load(conversation_id)
        return conversation.messages[start:start + count]

    async def edit_message(self, conversation_id: str, index: int, content: str) -> Message:
        """Overwrite the content of the message at `index` in place."""

        def _edit(conversation: Conversation) -> Message:
            if not 0 <= index < len(conversation.messages):
                raise MessageIndexError(f"Message index {index} out of range")
            original = conversation.messages[index]
            edited = Message(original.role, content, original.timestamp)
            conversation.messages[index] = edited
            return edited

        _, edited = await self._mutate(conversation_id, _edit)
        return edited

    async def replace_and_truncate(self, conversation_id: str, index: int, content: str) -> Conversation:
        """Replace the assistant message at `index` and drop every later message."""

        def _reroll(conversation: Conversation) -> None:
            validate_reroll_index(conversation, index)
            conversation.messages[index] = Message(ROLE_ASSISTANT, content)
            del conversation.messages[index + 1:]

        conversation, _ = await self._mutate(conversation_id, _reroll)
        return conversation

    # ---- Field setters ----

    async def set_title(self, conversation_id: str, title: str) -> Conversation:
        def _set(conversation: Conversation) -> None:
            conversation.title = title
            conversation.title_edited = True

        conversation, _ = await self._mutate(conversation_id, _set)
        return conversation

    async def set_persona(self, conversation_id: str, name: str, instructions: str) -> Conversation:
        def _set(conversation: Conversation) -> None:
            conversation.persona_name = name
            conversation.persona_instructions = instructions

        conversation, _ = await self._mutate(conversation_id, _set)
        return conversation

    async def set_user_note(self, conversation_id: str, note: str | None) -> Conversation:
        def _set(conversation: Conversation) -> None:
            conversation.user_note = note if note and note.strip() else None

        conversation, _ = await self._mutate(conversation_id, _set)
        return conversation

    async def set_model(self, conversation_id: str, model_selector: str) -> Conversation:
        def _set(conversation: Conversation) -> None:
            conversation.model_selector = model_selector

        conversation, _ = await self._mutate(conversation_id, _set)
        return conversation

    async def apply_summary(self, conversation_id: str, summary: str, checkpoint: int) -> bool:
        """Store a new summary and advance the checkpoint.

        Rejected (returns False) when `checkpoint` would move backwards or
        past the number of stored messages.
        """

        def _apply(conversation: Conversation) -> bool:
            if checkpoint < conversation.summary_checkpoint or checkpoint > len(conversation.messages):
                logger.warning(
                    f"Discarding summary for {conversation_id}: checkpoint {checkpoint} "
                    f"(current {conversation.summary_checkpoint}, messages {len(conversation.messages)})"
                )
                return False
            conversation.context_summary = summary
            conversation.summary_checkpoint = checkpoint
            return True

        async with self._lock(conversation_id):
            conversation = await self.load(conversation_id)
            applied = _apply(conversation)
            if applied:
                conversation.touch()
                await self._save(conversation)
        return applied


def validate_reroll_index(conversation: Conversation, index: int) -> None:
    """Raise MessageIndexError unless `index` is a rerollable assistant turn."""
    if not 0 <= index < len(conversation.messages):
        raise MessageIndexError(f"Message index {index} out of range")
    if conversation.messages[index].role != ROLE_ASSISTANT:
        raise MessageIndexError(f"Message {index} is not an assistant message")
    if index < conversation.summary_checkpoint:
        raise MessageIndexError(
            f"Message {index} is already folded into the summary (checkpoint {conversation.summary_checkpoint})"
        )
