from .conversation import Conversation
from .credential import Credential
from .lorebook import LorebookEntry
from .message import Message

__all__ = ["Conversation", "Credential", "LorebookEntry", "Message"]
