"""Shared fakes for persona-chat tests."""

from __future__ import annotations

import inspect
from typing import Any, Callable

import pytest

from persona_chat.clients.base import CompletionProvider, CompletionRequest, CompletionResponse
from persona_chat.core.chat_service import ChatService
from persona_chat.core.completion import RotatingCompleter
from persona_chat.credentials.providers import StaticCredentialProvider, StoredCredentialProvider
from persona_chat.credentials.rotation import KeyRotationPolicy
from persona_chat.memory.lorebook import LorebookIndex
from persona_chat.memory.message_store import MessageStore
from persona_chat.models.credential import Credential
from persona_chat.settings import SettingsStore
from persona_chat.storage.memory import InMemoryStore
from persona_chat.utils.config import Config


class FakeProvider(CompletionProvider):
    """Records every call; `handler(request, credential)` may return text, raise, or be async."""

    def __init__(self, handler: Callable[..., Any] | None = None):
        self.handler = handler
        self.calls: list[tuple[CompletionRequest, Credential]] = []

    @property
    def chat_calls(self) -> list[CompletionRequest]:
        return [r for r, _ in self.calls if r.metadata.get("purpose") != "summarization"]

    @property
    def summary_calls(self) -> list[CompletionRequest]:
        return [r for r, _ in self.calls if r.metadata.get("purpose") == "summarization"]

    async def complete(self, request: CompletionRequest, credential: Credential) -> CompletionResponse:
        self.calls.append((request, credential))
        if self.handler is not None:
            text = self.handler(request, credential)
            if inspect.isawaitable(text):
                text = await text
        elif request.metadata.get("purpose") == "summarization":
            text = f"summary #{len(self.summary_calls)}"
        else:
            text = f"reply #{len(self.chat_calls)}"
        return CompletionResponse(text=text, token_estimate=len(text), model=request.model, credential_id=credential.id)


async def no_sleep(delay: float) -> None:
    return None


@pytest.fixture
def config(tmp_path) -> Config:
    return Config(
        MODELS_CONFIG_PATH=str(tmp_path / "missing-models.yaml"),
        DATABASE_URL=f"sqlite:///{tmp_path / 'chat.db'}",
        GEMINI_API_KEY="",
    )


@pytest.fixture
def make_service(config):
    """Build a ChatService over an in-memory store with one server-side key."""

    def _make(provider: FakeProvider | None = None, **config_overrides: Any) -> ChatService:
        cfg = config.model_copy(update=config_overrides) if config_overrides else config
        store = InMemoryStore()
        settings_store = SettingsStore(store)
        credentials = StoredCredentialProvider(
            store, settings_store, fallback=StaticCredentialProvider("server-secret")
        )
        completer = RotatingCompleter(
            provider or FakeProvider(),
            KeyRotationPolicy(credentials, cooldown_seconds=cfg.KEY_COOLDOWN_SECONDS),
            max_attempts=cfg.RETRY_MAX_ATTEMPTS,
            base_delay=cfg.RETRY_BASE_DELAY,
            sleep=no_sleep,
        )
        return ChatService(
            config=cfg,
            message_store=MessageStore(store, cfg),
            lorebook=LorebookIndex(store),
            completer=completer,
            settings_store=settings_store,
            credentials=credentials,
        )

    return _make


@pytest.fixture
def fake_provider():
    """Factory for FakeProvider instances."""
    return FakeProvider
