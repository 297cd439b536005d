"""Route router collection for app registration."""

from .chat import router as chat_router
from .conversations import router as conversations_router
from .credentials import router as credentials_router
from .health import router as health_router
from .lorebook import router as lorebook_router
from .settings import router as settings_router

all_routers = [
    health_router,
    conversations_router,
    chat_router,
    lorebook_router,
    credentials_router,
    settings_router,
]

__all__ = ["all_routers"]
