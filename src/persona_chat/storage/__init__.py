"""Key-value persistence for persona-chat.

All records (conversations, lorebook entries, credentials, settings) are
stored as JSON values under namespaced keys such as ``conversation:<id>``.
Only per-key atomicity is assumed.

Included backends:
- InMemoryStore: process-local dict, used by tests and ephemeral runs
- SQLKeyValueStore: SQLModel table (sqlite by default)
"""

from .base import KeyValueStore
from .memory import InMemoryStore
from .sql import SQLKeyValueStore


def get_sql_store(database_url: str) -> SQLKeyValueStore:
    return SQLKeyValueStore(database_url)


__all__ = ["InMemoryStore", "KeyValueStore", "SQLKeyValueStore", "get_sql_store"]
