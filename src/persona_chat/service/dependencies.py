"""Shared FastAPI dependencies and service helpers."""

from typing import TYPE_CHECKING

from fastapi import HTTPException

if TYPE_CHECKING:
    from ..core.chat_service import ChatService

_service: "ChatService | None" = None


def set_service(service: "ChatService | None") -> None:
    """Set the global chat service instance."""
    global _service
    _service = service


def get_service() -> "ChatService":
    """Get the initialized chat service instance."""
    if _service is None:
        raise RuntimeError("Service not initialized")
    return _service


def require_credentials():
    """Dependency that requires a managed credential pool."""
    credentials = get_service().credentials
    if credentials is None:
        raise HTTPException(status_code=503, detail="Credential management unavailable")
    return credentials
