"""SQLAlchemy-backed key-value store."""
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models.storage import StorageEntry
from .base import KeyValueStore


class SQLKeyValueStore(KeyValueStore):
    """Persists entries in the ``storage_entries`` table, one session per call."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        super().__init__()
        self._session_factory = session_factory

    async def get(self, key: str) -> Optional[str]:
        async with self._session_factory() as session:
            stmt = select(StorageEntry.value).where(StorageEntry.key == key)
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def keys(self, prefix: str = "") -> List[str]:
        async with self._session_factory() as session:
            stmt = select(StorageEntry.key).order_by(StorageEntry.key)
            if prefix:
                stmt = stmt.where(StorageEntry.key.startswith(prefix, autoescape=True))
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def _write(self, key: str, value: str) -> None:
        async with self._session_factory() as session:
            entry = await session.get(StorageEntry, key)
            if entry is None:
                session.add(StorageEntry(key=key, value=value))
            else:
                entry.value = value
            await session.commit()

    async def _delete(self, key: str) -> None:
        async with self._session_factory() as session:
            await session.execute(delete(StorageEntry).where(StorageEntry.key == key))
            await session.commit()
