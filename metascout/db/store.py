"""
Key-value stores for the snapshot cache.

The cache talks to storage only through KeyValueStore, so it runs the same
against an in-memory dict in tests and a database table in production.
Implementations raise CacheUnavailableError when storage cannot be used.
"""

from collections.abc import Mapping
from typing import Protocol

from sqlalchemy import delete, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from metascout.models.db import KeyValueEntryDB
from metascout.models.failure import CacheUnavailableError


class KeyValueStore(Protocol):
    """Async string-to-string storage."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def set_many(self, items: Mapping[str, str]) -> None:
        """Write several entries so readers see all of them or none."""
        ...

    async def delete(self, key: str) -> None: ...

    async def ping(self) -> bool: ...


class InMemoryStore:
    """Dict-backed store for tests and storage-less deployments."""

    def __init__(self, initial: Mapping[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def set_many(self, items: Mapping[str, str]) -> None:
        self._data = {**self._data, **items}

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def ping(self) -> bool:
        return True


class SqlKeyValueStore:
    """Store backed by the ``kv_entries`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get(self, key: str) -> str | None:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(KeyValueEntryDB.value).where(KeyValueEntryDB.key == key)
                )
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise CacheUnavailableError("get", str(e)) from e

    async def set(self, key: str, value: str) -> None:
        await self.set_many({key: value})

    async def set_many(self, items: Mapping[str, str]) -> None:
        try:
            async with self._session_factory() as session, session.begin():
                for key, value in items.items():
                    entry = await session.get(KeyValueEntryDB, key)
                    if entry is None:
                        session.add(KeyValueEntryDB(key=key, value=value))
                    else:
                        entry.value = value
        except SQLAlchemyError as e:
            raise CacheUnavailableError("set", str(e)) from e

    async def delete(self, key: str) -> None:
        try:
            async with self._session_factory() as session, session.begin():
                await session.execute(delete(KeyValueEntryDB).where(KeyValueEntryDB.key == key))
        except SQLAlchemyError as e:
            raise CacheUnavailableError("delete", str(e)) from e

    async def ping(self) -> bool:
        """True if the database answers a trivial query."""
        try:
            async with self._session_factory() as session:
                await session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            return False
