"""Local storage setup and session management.

The kitchen board keeps its client-local state (current push token, platform,
admin registration marker) in a small SQLite database so it survives restarts.
Set DATABASE_URL to point it somewhere other than DATA_PATH.
"""
import logging
import os
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from .config import settings, get_database_url

logger = logging.getLogger(__name__)

# Base class for models
Base = declarative_base()


def build_engine(url: str) -> AsyncEngine:
    """Create an async SQLite engine configured for concurrent access."""
    engine = create_async_engine(
        url,
        echo=False,
        pool_pre_ping=True,
        connect_args={"timeout": 30},  # Wait up to 30 seconds for locks
    )

    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        """Configure SQLite for better concurrent access."""
        cursor = dbapi_connection.cursor()
        # WAL mode allows concurrent reads during writes
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA busy_timeout=30000")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()

    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory bound to an engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


_database_url = get_database_url()
engine = build_engine(_database_url)
async_session = build_session_factory(engine)


async def init_db(target: AsyncEngine = None):
    """Initialize storage - create tables and ensure data directory exists."""
    target = target or engine
    if target is engine and not settings.database_url:
        os.makedirs(settings.data_path, exist_ok=True)

    # Import models so they register on Base.metadata
    from . import models  # noqa: F401

    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Local storage initialized")


async def close_db(target: AsyncEngine = None):
    """Close database connections."""
    await (target or engine).dispose()
