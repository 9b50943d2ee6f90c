"""
Database layer — async SQLAlchemy 2.0 engine and session factory.

The engine is owned by a ``Database`` object created at startup and
handed to the stores, so tests can point the same code at
``sqlite+aiosqlite:///:memory:``.

Usage:
    db = Database(settings.DATABASE_URL)
    await db.init()
    async with db.session() as session:
        ...
    await db.close()
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""
    pass


def build_engine(url: str, *, echo: bool = False, pool_size: int = 5,
                 max_overflow: int = 5) -> AsyncEngine:
    """Create an async engine; SQLite URLs get the driver's default pool."""
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)
    return create_async_engine(
        url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
    )


class Database:
    """Engine + session factory with explicit lifecycle."""

    def __init__(self, url: str, *, echo: bool = False, pool_size: int = 5,
                 max_overflow: int = 5):
        self.url = url
        self.engine = build_engine(
            url, echo=echo, pool_size=pool_size, max_overflow=max_overflow,
        )
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session; commit on success, roll back on error."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def init(self) -> None:
        """Create all tables (dev/test only — use migrations in production)."""
        # Table modules register themselves on Base.metadata when imported
        from sos_backend.app.alerts import tables  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables initialised")

    async def ping(self) -> None:
        """Round-trip a trivial query; raises if the database is unreachable."""
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def close(self) -> None:
        """Dispose engine connections."""
        await self.engine.dispose()
        logger.info("Database connections closed")
