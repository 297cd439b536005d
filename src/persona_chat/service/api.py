"""FastAPI service for persona-chat.

Run with: persona-chat-service
Or: uvicorn persona_chat.service.api:app --host 127.0.0.1 --port 8650
"""

from __future__ import annotations

import logging
import math
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..clients.gemini_client import GeminiClient
from ..core.chat_service import ChatService
from ..core.completion import RotatingCompleter
from ..credentials.providers import NullCredentialProvider, StaticCredentialProvider, StoredCredentialProvider
from ..credentials.rotation import KeyRotationPolicy
from ..errors import (
    ConversationBusyError,
    ConversationNotFoundError,
    CredentialNotFoundError,
    InvalidCredentialError,
    InvalidRequestError,
    LorebookNotFoundError,
    LorebookValidationError,
    MessageIndexError,
    NoCredentialError,
    PersonaChatError,
    ProviderError,
    QuotaExceededError,
)
from ..memory.lorebook import LorebookIndex
from ..memory.message_store import MessageStore
from ..settings import SettingsStore
from ..shared.logging import LogConfig, generate_request_id, set_request_id
from ..storage import KeyValueStore, get_sql_store
from ..utils.config import Config
from .dependencies import set_service
from .routes import all_routers
from .schemas import SERVICE_VERSION

log = logging.getLogger(__name__)

ERROR_STATUS: dict[type[PersonaChatError], int] = {
    ConversationNotFoundError: 404,
    LorebookNotFoundError: 404,
    CredentialNotFoundError: 404,
    LorebookValidationError: 422,
    MessageIndexError: 422,
    InvalidRequestError: 422,
    ConversationBusyError: 409,
    InvalidCredentialError: 401,
    QuotaExceededError: 429,
    NoCredentialError: 503,
    ProviderError: 502,
    PersonaChatError: 500,
}


def build_chat_service(config: Config, store: KeyValueStore | None = None) -> ChatService:
    """Wire the chat core from configuration."""
    store = store or get_sql_store(config.DATABASE_URL)
    settings_store = SettingsStore(store)
    fallback = StaticCredentialProvider(config.GEMINI_API_KEY) if config.GEMINI_API_KEY else NullCredentialProvider()
    credentials = StoredCredentialProvider(store, settings_store, fallback=fallback)
    completer = RotatingCompleter(
        GeminiClient(config),
        KeyRotationPolicy(credentials, cooldown_seconds=config.KEY_COOLDOWN_SECONDS),
        max_attempts=config.RETRY_MAX_ATTEMPTS,
        base_delay=config.RETRY_BASE_DELAY,
    )
    return ChatService(
        config=config,
        message_store=MessageStore(store, config),
        lorebook=LorebookIndex(store),
        completer=completer,
        settings_store=settings_store,
        credentials=credentials,
    )


async def _handle_error(request: Request, exc: PersonaChatError) -> JSONResponse:
    status = next((code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 500)
    headers = {}
    if isinstance(exc, QuotaExceededError) and exc.retry_after_seconds is not None:
        headers["Retry-After"] = str(math.ceil(exc.retry_after_seconds))
    if status >= 500:
        log.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        log.info(f"{request.method} {request.url.path} -> {status}: {exc}")
    return JSONResponse(status_code=status, content={"detail": str(exc)}, headers=headers)


def create_app(service: ChatService | None = None, config: Config | None = None) -> FastAPI:
    """Create the FastAPI app. A prebuilt `service` skips wiring from config."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        chat_service = service or build_chat_service(config or Config())
        set_service(chat_service)
        log.info(f"persona-chat service {SERVICE_VERSION} ready")
        yield
        await chat_service.scheduler.wait_idle()
        await chat_service.message_store.store.close()
        set_service(None)

    app = FastAPI(
        title="persona-chat API",
        description="Persona chat with rolling conversation memory and lorebook context",
        version=SERVICE_VERSION,
        lifespan=lifespan,
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_id(request_id)
        try:
            response = await call_next(request)
        finally:
            set_request_id(None)
        response.headers["X-Request-ID"] = request_id
        return response

    app.add_exception_handler(PersonaChatError, _handle_error)

    for router in all_routers:
        app.include_router(router)

    return app


app = create_app()


def main():
    """Entry point for the persona-chat service."""
    import argparse

    config = Config()

    parser = argparse.ArgumentParser(description="persona-chat service")
    parser.add_argument("--host", default=config.SERVICE_HOST, help="Host to bind to")
    parser.add_argument("--port", type=int, default=config.SERVICE_PORT, help="Port to listen on")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log rotation, retries and summarization")
    parser.add_argument("--debug", action="store_true", help="Enable DEBUG logging and the debug log file")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload (dev mode)")
    args = parser.parse_args()

    LogConfig.configure(verbose=args.verbose or config.VERBOSE, debug=args.debug or config.DEBUG)

    import uvicorn

    uvicorn.run(
        "persona_chat.service.api:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="debug" if args.debug else "warning",
    )


if __name__ == "__main__":
    main()
