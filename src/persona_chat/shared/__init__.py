"""Shared utilities used across persona-chat components."""

from .logging import (
    LogConfig,
    generate_request_id,
    get_request_id,
    set_request_id,
)

__all__ = [
    "LogConfig",
    "generate_request_id",
    "get_request_id",
    "set_request_id",
]
