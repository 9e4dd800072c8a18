"""
Async SQLAlchemy engine and session management for the remote tier.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base. All models inherit from this."""
    pass


def create_engine(url: str, debug: bool = False) -> AsyncEngine:
    # Ensure we're using asyncpg driver for PostgreSQL
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)

    # SQLite doesn't support pool_size / max_overflow
    is_sqlite = "sqlite" in url
    kwargs = {"echo": debug}
    if not is_sqlite:
        kwargs["pool_size"] = 10
        kwargs["max_overflow"] = 5
        kwargs["pool_pre_ping"] = True

    engine = create_async_engine(url, **kwargs)
    logger.info("Database engine created (%s)", "sqlite" if is_sqlite else "postgresql")
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@asynccontextmanager
async def session_scope(factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """One unit of work: commit on success, rollback on error."""
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables. Called on startup."""
    async with engine.begin() as conn:
        # Import all models so they register with Base.metadata
        from ..models import artist, knowledge, memory  # noqa: F401

        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created/verified")


async def close_db(engine: AsyncEngine) -> None:
    """Dispose engine. Called on shutdown."""
    await engine.dispose()
    logger.info("Database engine disposed")
