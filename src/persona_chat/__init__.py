"""persona-chat: persona chat backend with rolling memory, lorebooks and key rotation."""

__version__ = "0.1.0"
