"""SQLModel-backed key-value store.

One row per key with the value serialized as JSON text. Blocking session
work runs in the default executor so callers stay on the event loop.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.engine import make_url
from sqlmodel import Field, Session, SQLModel, create_engine, select

from ..errors import StorageError
from .base import KeyValueStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class KeyValueRecord(SQLModel, table=True):
    """DB-backed key-value record."""

    __tablename__ = "kv_records"

    key: str = Field(sa_column=Column(String(255), primary_key=True))
    value_json: str = Field(sa_column=Column(Text, nullable=False))
    updated_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


def _ensure_sqlite_dir(database_url: str) -> None:
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite" or not url.database or url.database == ":memory:":
        return
    Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)


class SQLKeyValueStore(KeyValueStore):
    def __init__(self, database_url: str, engine=None):
        if engine is None:
            _ensure_sqlite_dir(database_url)
            connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
            engine = create_engine(database_url, connect_args=connect_args)
        self.engine = engine
        SQLModel.metadata.create_all(self.engine, tables=[KeyValueRecord.__table__])
        logger.debug(f"SQL key-value store ready ({self.engine.url.get_backend_name()})")

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, fn, *args)
        except SQLAlchemyError as e:
            raise StorageError(f"Storage operation failed: {e}") from e

    async def get(self, key: str) -> dict[str, Any] | None:
        def _get():
            with Session(self.engine) as session:
                record = session.get(KeyValueRecord, key)
                return record.value_json if record else None

        raw = await self._run(_get)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupted record under {key!r}: {e}") from e

    async def set(self, key: str, value: dict[str, Any]) -> None:
        payload = json.dumps(value, ensure_ascii=False)

        def _upsert():
            with Session(self.engine) as session:
                record = session.get(KeyValueRecord, key)
                if record is None:
                    record = KeyValueRecord(key=key, value_json=payload)
                else:
                    record.value_json = payload
                    record.updated_at = _utcnow()
                session.add(record)
                session.commit()

        await self._run(_upsert)

    async def delete(self, key: str) -> bool:
        def _delete():
            with Session(self.engine) as session:
                record = session.get(KeyValueRecord, key)
                if record is None:
                    return False
                session.delete(record)
                session.commit()
                return True

        return await self._run(_delete)

    async def keys(self, prefix: str = "") -> list[str]:
        def _keys():
            with Session(self.engine) as session:
                statement = select(KeyValueRecord.key)
                if prefix:
                    statement = statement.where(KeyValueRecord.key.startswith(prefix))
                return sorted(session.exec(statement).all())

        return await self._run(_keys)

    async def close(self) -> None:
        self.engine.dispose()
