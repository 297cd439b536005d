"""Pydantic schemas for the persona-chat service API."""

from __future__ import annotations

import time

from pydantic import BaseModel, Field, model_validator

from .. import __version__
from ..models.conversation import Conversation
from ..models.credential import Credential, mask_secret
from ..models.lorebook import MAX_CONTENT_LENGTH, MAX_KEYWORDS, LorebookEntry
from ..models.message import Message
from ..settings import ChatSettings, MaxActiveLorebooks, OutputLength, ThinkingBudget

SERVICE_VERSION = __version__


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = SERVICE_VERSION
    timestamp: float = Field(default_factory=time.time)


# =============================================================================
# Conversations
# =============================================================================

class MessageOut(BaseModel):
    index: int
    role: str
    content: str
    timestamp: float

    @classmethod
    def from_message(cls, message: Message, index: int) -> "MessageOut":
        return cls(index=index, role=message.role, content=message.content, timestamp=message.timestamp)


class ConversationInfo(BaseModel):
    """Conversation list item (no messages)."""
    id: str
    title: str
    persona_name: str
    model: str
    message_count: int
    preview: str
    created_at: float
    updated_at: float

    @classmethod
    def from_conversation(cls, conversation: Conversation) -> "ConversationInfo":
        return cls(
            id=conversation.id,
            title=conversation.title,
            persona_name=conversation.persona_name,
            model=conversation.model_selector,
            message_count=conversation.message_count,
            preview=conversation.preview,
            created_at=conversation.created_at,
            updated_at=conversation.updated_at,
        )


class ConversationDetail(ConversationInfo):
    persona_instructions: str
    context_summary: str | None = None
    summary_checkpoint: int = 0
    user_note: str | None = None
    title_edited: bool = False
    summary_state: str = "idle"
    messages: list[MessageOut] = Field(default_factory=list)

    @classmethod
    def from_conversation(cls, conversation: Conversation, summary_state: str = "idle") -> "ConversationDetail":
        info = ConversationInfo.from_conversation(conversation)
        return cls(
            **info.model_dump(),
            persona_instructions=conversation.persona_instructions,
            context_summary=conversation.context_summary,
            summary_checkpoint=conversation.summary_checkpoint,
            user_note=conversation.user_note,
            title_edited=conversation.title_edited,
            summary_state=summary_state,
            messages=[MessageOut.from_message(m, i) for i, m in enumerate(conversation.messages)],
        )


class ConversationListResponse(BaseModel):
    conversations: list[ConversationInfo]
    total: int


class CreateConversationRequest(BaseModel):
    persona_name: str | None = None
    persona_instructions: str | None = None
    model: str | None = Field(default=None, description="Model selector (e.g. gemini-flash)")


class MessageWindowResponse(BaseModel):
    conversation_id: str
    start: int
    total: int
    messages: list[MessageOut]


class TitleRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)


class CharacterIn(BaseModel):
    name: str = Field(min_length=1)
    relationship: str
    personality: str
    background: str = ""
    first_person: str = "I"
    second_person: str = "you"
    style: str = "casual"
    traits: list[str] = Field(default_factory=list)
    safety_rules: str = ""


class PersonaRequest(BaseModel):
    """Either a plain name + instructions pair or a character sheet."""
    name: str | None = None
    instructions: str | None = None
    character: CharacterIn | None = None

    @model_validator(mode="after")
    def _check_source(self) -> "PersonaRequest":
        if self.character is None and not (self.name and self.name.strip()):
            raise ValueError("Provide either a persona name or a character")
        return self


class NoteRequest(BaseModel):
    note: str | None = None


class ModelRequest(BaseModel):
    model: str


class DeleteResponse(BaseModel):
    deleted: bool


# =============================================================================
# Chat
# =============================================================================

class SendMessageRequest(BaseModel):
    text: str = Field(min_length=1)


class RerollRequest(BaseModel):
    index: int | None = Field(default=None, description="Assistant message index; defaults to the latest")


class EditMessageRequest(BaseModel):
    text: str = Field(min_length=1)


class ReplyResponse(BaseModel):
    conversation_id: str
    reply: MessageOut
    message_count: int
    token_estimate: int = 0
    summary_scheduled: bool = False


class SummaryResponse(BaseModel):
    conversation_id: str
    context_summary: str | None
    summary_checkpoint: int
    message_count: int


# =============================================================================
# Lorebook
# =============================================================================

class LorebookEntryIn(BaseModel):
    keywords: list[str] = Field(min_length=1, max_length=MAX_KEYWORDS)
    content: str = Field(min_length=1, max_length=MAX_CONTENT_LENGTH)
    enabled: bool = True


class LorebookEntryUpdate(BaseModel):
    keywords: list[str] | None = Field(default=None, max_length=MAX_KEYWORDS)
    content: str | None = Field(default=None, max_length=MAX_CONTENT_LENGTH)
    enabled: bool | None = None


class LorebookEntryOut(BaseModel):
    id: str
    keywords: list[str]
    content: str
    enabled: bool
    created_at: float
    updated_at: float

    @classmethod
    def from_entry(cls, entry: LorebookEntry) -> "LorebookEntryOut":
        return cls(**entry.to_dict())


# =============================================================================
# Credentials
# =============================================================================

class CredentialIn(BaseModel):
    secret: str = Field(min_length=1)
    display_name: str = ""


class CredentialUpdate(BaseModel):
    display_name: str | None = None
    is_active: bool | None = None


class CredentialOut(BaseModel):
    """Credential as shown to clients; the secret is always masked."""
    id: str
    display_name: str
    masked_secret: str
    is_active: bool
    quota_exceeded_at: float | None = None
    last_used_at: float | None = None
    pinned: bool = False

    @classmethod
    def from_credential(cls, credential: Credential, pinned_id: str | None = None) -> "CredentialOut":
        return cls(
            id=credential.id,
            display_name=credential.display_name,
            masked_secret=mask_secret(credential.secret),
            is_active=credential.is_active,
            quota_exceeded_at=credential.quota_exceeded_at,
            last_used_at=credential.last_used_at,
            pinned=credential.id == pinned_id,
        )


class PinRequest(BaseModel):
    credential_id: str | None = None


# =============================================================================
# Settings
# =============================================================================

class SettingsOut(BaseModel):
    max_output_tokens: int
    thinking_budget: int | None
    max_active_lorebooks: int
    active_credential_id: str | None = None
    model_options: list[str] = Field(default_factory=list)

    @classmethod
    def from_settings(cls, settings: ChatSettings, model_options: list[str]) -> "SettingsOut":
        return cls(**settings.to_dict(), model_options=model_options)


class SettingsUpdate(BaseModel):
    """Partial update; only fields that are sent are changed."""
    max_output_tokens: OutputLength | None = None
    thinking_budget: ThinkingBudget | None = None
    max_active_lorebooks: MaxActiveLorebooks | None = None
