"""Client-local persistent key/value storage."""
import logging
from typing import Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..models.local_value import LocalValue
from ..utils.db_utils import retry_on_lock

logger = logging.getLogger(__name__)


class LocalStore:
    """Get/set/remove string values by fixed key, backed by the local database."""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def get(self, key: str) -> Optional[str]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(LocalValue).where(LocalValue.key == key)
            )
            row = result.scalar_one_or_none()
            return row.value if row else None

    async def set(self, key: str, value: str):
        async with self._session_factory() as session:
            result = await session.execute(
                select(LocalValue).where(LocalValue.key == key)
            )
            row = result.scalar_one_or_none()
            if row:
                row.value = str(value)
            else:
                session.add(LocalValue(key=key, value=str(value)))
            await retry_on_lock(session.commit)

    async def remove(self, *keys: str):
        if not keys:
            return
        async with self._session_factory() as session:
            await session.execute(
                delete(LocalValue).where(LocalValue.key.in_(keys))
            )
            await retry_on_lock(session.commit)
