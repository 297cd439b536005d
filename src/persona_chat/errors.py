"""Exception hierarchy for persona-chat."""

from __future__ import annotations


class PersonaChatError(Exception):
    """Base class for all persona-chat errors."""
    pass


class StorageError(PersonaChatError):
    """Raised when the key-value store fails to read or write a record."""
    pass


class ConversationNotFoundError(PersonaChatError):
    """Raised when a conversation id does not exist in the store."""

    def __init__(self, conversation_id: str):
        self.conversation_id = conversation_id
        super().__init__(f"Conversation not found: {conversation_id}")


class ConversationBusyError(PersonaChatError):
    """Raised when a send is already in flight for the conversation."""

    def __init__(self, conversation_id: str):
        self.conversation_id = conversation_id
        super().__init__(f"A message is already being processed for conversation {conversation_id}")


class InvalidRequestError(PersonaChatError):
    """Raised for malformed caller input such as an empty message or unknown model."""
    pass


class MessageIndexError(PersonaChatError):
    """Raised for edit/reroll positions that are out of range or not allowed."""
    pass


class LorebookNotFoundError(PersonaChatError):
    """Raised when a lorebook entry id does not exist."""
    pass


class LorebookValidationError(PersonaChatError):
    """Raised when a lorebook entry breaks the keyword or content limits."""
    pass


class CredentialNotFoundError(PersonaChatError):
    """Raised when a credential id does not exist in the pool."""
    pass


class NoCredentialError(PersonaChatError):
    """Raised when no usable credential is available for a request."""
    pass


class ProviderError(PersonaChatError):
    """Base class for completion provider failures.

    `status` keeps the HTTP-equivalent status reported by the provider (if
    any) and `original_message` the untranslated provider message.
    """

    def __init__(self, message: str, *, status: int | None = None, original_message: str = ""):
        self.status = status
        self.original_message = original_message or message
        super().__init__(message)


class QuotaExceededError(ProviderError):
    """Provider reported a rate or quota limit (HTTP 429)."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = 429,
        original_message: str = "",
        retry_after_seconds: float | None = None,
    ):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(message, status=status, original_message=original_message)


class InvalidCredentialError(ProviderError):
    """Provider rejected the credential (HTTP 401/403)."""
    pass


class TransientProviderError(ProviderError):
    """Provider is temporarily unavailable or overloaded (HTTP 503)."""
    pass


class EmptyResponseError(ProviderError):
    """Provider returned no usable text."""
    pass
