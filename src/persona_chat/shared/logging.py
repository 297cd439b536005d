from __future__ import annotations

import logging
import os
import sys
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler
from uuid import uuid4

from rich.console import Console

# Tracks the API request being served across awaits
_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)


def generate_request_id() -> str:
    """Generate a short request ID for tracing."""
    return uuid4().hex[:8]


def set_request_id(request_id: str | None) -> None:
    _request_id.set(request_id)


def get_request_id() -> str | None:
    return _request_id.get()


class _RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        request_id = get_request_id()
        if request_id:
            if record.args:
                record.msg = record.msg % record.args
                record.args = ()
            # Escape [ for Rich markup
            record.msg = f"\\[{request_id}] {record.msg}"
        return True


class LogConfig:
    """Centralized logging setup for the service.

    Logging levels:
    - Default: WARNING and above
    - --verbose: INFO from persona_chat (rotation, summarization, retries)
    - --debug: DEBUG everywhere plus a rotating debug log file
    """

    NOISY_LOGGERS: tuple[str, ...] = (
        "httpx",
        "httpcore",
        "google_genai",
        "google.genai",
        "urllib3",
        "sqlalchemy.engine",
        "asyncio",
        "uvicorn",
        "uvicorn.error",
    )

    VERY_NOISY_LOGGERS: tuple[str, ...] = (
        "uvicorn.access",
    )

    @classmethod
    def configure(cls, *, verbose: bool = False, debug: bool = False) -> None:
        from rich.logging import RichHandler

        root = logging.getLogger()
        root.handlers.clear()

        for logger_name in cls.NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)
        for logger_name in cls.VERY_NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.ERROR)

        console_level = logging.INFO if (verbose or debug) else logging.WARNING
        root_level = logging.DEBUG if debug else console_level

        console = Console(stderr=True, force_terminal=True)
        handler = RichHandler(
            console=console,
            show_path=False,
            show_time=False,
            show_level=False,
            rich_tracebacks=True,
            markup=True,
        )
        handler.addFilter(_RequestIdFilter())
        handler.setLevel(console_level)
        root.addHandler(handler)
        root.setLevel(root_level)

        if debug:
            cls._add_debug_file_handler(root)
        if verbose or debug:
            logging.getLogger("persona_chat").setLevel(logging.DEBUG if debug else logging.INFO)

    @staticmethod
    def _add_debug_file_handler(root: logging.Logger) -> None:
        log_dir = os.getenv("PERSONA_CHAT_LOG_DIR", ".logs")
        os.makedirs(log_dir, exist_ok=True)
        log_path = os.path.join(log_dir, "persona-chat.debug.log")
        try:
            with open(log_path, "a", encoding="utf-8"):
                pass
        except OSError as exc:
            print(f"[persona-chat] Failed to open debug log file: {log_path} ({exc})", file=sys.stderr)
            return
        for existing in root.handlers:
            if isinstance(existing, RotatingFileHandler) and existing.baseFilename == os.path.abspath(log_path):
                return

        handler = RotatingFileHandler(
            log_path,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(name)s | %(levelname)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        root.addHandler(handler)
