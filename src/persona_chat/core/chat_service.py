"""Chat operations exposed to the UI layer.

ChatService wires the message store, lorebook, context builder,
summarization scheduler and the rotating completer together. All state
lives in the injected collaborators; the service itself only tracks which
conversations have a send in flight.
"""

from __future__ import annotations

import dataclasses
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from ..clients.base import CompletionRequest, CompletionResponse
from ..credentials.providers import StoredCredentialProvider
from ..errors import ConversationBusyError, InvalidRequestError, NoCredentialError, ProviderError
from ..memory.context_builder import ContextWindowBuilder, PromptPayload, recent_window
from ..memory.lorebook import LorebookIndex
from ..memory.message_store import MessageStore, validate_reroll_index
from ..memory.summarization import SummarizationScheduler
from ..models.conversation import Conversation
from ..models.message import ROLE_ASSISTANT, ROLE_USER, Message
from ..personas import Character, build_character_prompt
from ..settings import ChatSettings, SettingsStore
from ..utils.config import Config
from .completion import RotatingCompleter

logger = logging.getLogger(__name__)


@dataclass
class SendResult:
    conversation: Conversation
    reply: Message
    failed: bool = False
    token_estimate: int = 0
    summary_scheduled: bool = False


class ChatService:
    def __init__(
        self,
        config: Config,
        message_store: MessageStore,
        lorebook: LorebookIndex,
        completer: RotatingCompleter,
        settings_store: SettingsStore,
        credentials: StoredCredentialProvider | None = None,
        context_builder: ContextWindowBuilder | None = None,
        scheduler: SummarizationScheduler | None = None,
    ):
        self.config = config
        self.message_store = message_store
        self.lorebook = lorebook
        self.completer = completer
        self.settings_store = settings_store
        self.credentials = credentials
        self.context_builder = context_builder or ContextWindowBuilder(max_turns=config.HISTORY_MAX_TURNS)
        self.scheduler = scheduler or SummarizationScheduler(message_store, completer, config)
        self._in_flight: set[str] = set()

    @contextmanager
    def _busy(self, conversation_id: str) -> Iterator[None]:
        if conversation_id in self._in_flight:
            raise ConversationBusyError(conversation_id)
        self._in_flight.add(conversation_id)
        try:
            yield
        finally:
            self._in_flight.discard(conversation_id)

    def is_busy(self, conversation_id: str) -> bool:
        return conversation_id in self._in_flight

    # ---- Conversations ----

    async def create_conversation(
        self,
        persona_name: str | None = None,
        persona_instructions: str | None = None,
        model_selector: str | None = None,
    ) -> Conversation:
        return await self.message_store.create(persona_name, persona_instructions, model_selector)

    async def list_conversations(self) -> list[Conversation]:
        return await self.message_store.list_conversations()

    async def get_conversation(self, conversation_id: str) -> Conversation:
        return await self.message_store.load(conversation_id)

    async def load_window(self, conversation_id: str, start: int, count: int) -> list[Message]:
        return await self.message_store.load_window(conversation_id, start, count)

    async def delete_conversation(self, conversation_id: str) -> bool:
        return await self.message_store.delete(conversation_id)

    async def set_title(self, conversation_id: str, title: str) -> Conversation:
        return await self.message_store.set_title(conversation_id, title)

    async def set_persona(self, conversation_id: str, name: str, instructions: str) -> Conversation:
        """Takes effect from the next request; stored messages are untouched."""
        return await self.message_store.set_persona(conversation_id, name, instructions)

    async def set_character(self, conversation_id: str, character: Character) -> Conversation:
        return await self.set_persona(conversation_id, character.name, build_character_prompt(character))

    async def set_user_note(self, conversation_id: str, note: str | None) -> Conversation:
        return await self.message_store.set_user_note(conversation_id, note)

    async def set_model(self, conversation_id: str, model_selector: str) -> Conversation:
        if model_selector not in self.config.get_model_options():
            raise InvalidRequestError(f"Unknown model: {model_selector}")
        return await self.message_store.set_model(conversation_id, model_selector)

    async def set_active_credential(self, credential_id: str | None) -> ChatSettings:
        if self.credentials is None:
            raise NoCredentialError("Credential management is not available")
        await self.credentials.pin(credential_id)
        return await self.settings_store.load()

    # ---- Prompting ----

    async def build_payload(
        self, conversation: Conversation, settings: ChatSettings | None = None
    ) -> PromptPayload:
        settings = settings or await self.settings_store.load()
        window = recent_window(conversation.messages, self.context_builder.max_turns)
        active = await self.lorebook.detect_active(window, int(settings.max_active_lorebooks))
        return self.context_builder.build(conversation, active, settings=settings)

    async def _complete(self, conversation: Conversation) -> CompletionResponse:
        payload = await self.build_payload(conversation)
        request = CompletionRequest(
            model=payload.model_selector,
            turns=payload.turns,
            system_instruction=payload.system_instruction,
            max_output_tokens=payload.max_output_tokens,
            thinking_budget=payload.thinking_budget,
            metadata={"conversation_id": conversation.id},
        )
        return await self.completer.complete(request)

    # ---- Chat operations ----

    async def send_message(self, conversation_id: str, text: str) -> SendResult:
        """Append the user's message, get a reply and append it.

        On provider failure an apologetic assistant message is appended and
        the error is re-raised; the user's message stays in history either way.
        """
        if not text or not text.strip():
            raise InvalidRequestError("Message text must not be empty")

        with self._busy(conversation_id):
            await self.message_store.append(conversation_id, Message(ROLE_USER, text))
            conversation = await self.message_store.load(conversation_id)

            try:
                response = await self._complete(conversation)
            except (ProviderError, NoCredentialError) as e:
                logger.warning(f"Reply failed for {conversation_id}: {e}")
                await self.message_store.append(
                    conversation_id,
                    Message(ROLE_ASSISTANT, f"{self.config.FAILED_REPLY_MESSAGE}\n\n{e}"),
                )
                raise

            reply = await self.message_store.append(conversation_id, Message(ROLE_ASSISTANT, response.text))
            conversation = await self.message_store.load(conversation_id)
            scheduled = self.scheduler.maybe_schedule(conversation)
            return SendResult(
                conversation=conversation,
                reply=reply,
                token_estimate=response.token_estimate,
                summary_scheduled=scheduled,
            )

    async def reroll(self, conversation_id: str, index: int | None = None) -> SendResult:
        """Regenerate the assistant message at `index` and drop everything after it.

        Without `index` the most recent assistant message is rerolled.
        History is only modified once the new reply has arrived.
        """
        with self._busy(conversation_id):
            await self.scheduler.wait_idle(conversation_id)
            conversation = await self.message_store.load(conversation_id)
            if index is None:
                index = next(
                    (i for i in range(len(conversation.messages) - 1, -1, -1)
                     if conversation.messages[i].role == ROLE_ASSISTANT),
                    -1,
                )
            validate_reroll_index(conversation, index)

            prefix = dataclasses.replace(conversation, messages=conversation.messages[:index])
            response = await self._complete(prefix)

            conversation = await self.message_store.replace_and_truncate(conversation_id, index, response.text)
            return SendResult(
                conversation=conversation,
                reply=conversation.messages[index],
                token_estimate=response.token_estimate,
            )

    async def reroll_last(self, conversation_id: str) -> SendResult:
        return await self.reroll(conversation_id)

    async def edit_message(self, conversation_id: str, index: int, text: str) -> Message:
        with self._busy(conversation_id):
            return await self.message_store.edit_message(conversation_id, index, text)

    async def summarize_now(self, conversation_id: str) -> Conversation:
        return await self.scheduler.summarize_now(conversation_id)
