from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy import event
from sqlalchemy.pool import StaticPool
from contextlib import asynccontextmanager
from typing import AsyncIterator
import logging

from bloglab.config import Settings

logger = logging.getLogger(__name__)

def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores REFERENCES clauses unless asked per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()

def create_engine(database_url: str, settings: Settings) -> AsyncEngine:
    """Build an engine for the given URL.

    In-memory SQLite needs a single shared connection, other URLs get a
    regular pool.
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url:
            kwargs["poolclass"] = StaticPool
        engine = create_async_engine(database_url, echo=settings.DEBUG, **kwargs)
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    return create_async_engine(
        database_url,
        echo=settings.DEBUG,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_pre_ping=True,
    )

def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

@asynccontextmanager
async def session_scope(factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """Unit of work: commit on success, roll back on error, always close"""
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(f"Database session error: {e}")
            raise

async def init_db(engine: AsyncEngine) -> None:
    """Create all tables"""
    from bloglab.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database initialized successfully")

async def drop_db(engine: AsyncEngine) -> None:
    from bloglab.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    logger.info("Database tables dropped")

async def close_db(engine: AsyncEngine) -> None:
    """Close database connections"""
    await engine.dispose()
    logger.info("Database connections closed")
