"""Async engine and session handling for the entry tables."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from framerate.config import DatabaseSettings
from framerate.infrastructure.persistence.models import Base

logger = logging.getLogger(__name__)


def _engine_options(settings: DatabaseSettings) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": settings.echo, "pool_pre_ping": settings.pool_pre_ping}
    if settings.url.startswith("sqlite"):
        # The two sync loops and the health probe share one file; wait on locks instead of failing
        options["connect_args"] = {"check_same_thread": False, "timeout": 30}
    elif settings.url.startswith("postgresql"):
        options.update(
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
            pool_timeout=settings.pool_timeout,
            pool_recycle=settings.pool_recycle,
        )
    return options


class Database:
    """Owns the engine; hands out sessions to repositories and sync workers."""

    def __init__(self, settings: DatabaseSettings) -> None:
        self.settings = settings
        self._engine = create_async_engine(settings.url, **_engine_options(settings))
        self._session_factory = async_sessionmaker(
            self._engine, class_=AsyncSession, expire_on_commit=False
        )

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        """Factory the sync workers open one short-lived session per tick step with."""
        return self._session_factory

    @asynccontextmanager
    async def session_scope(self) -> AsyncGenerator[AsyncSession, None]:
        """Session that commits on clean exit and rolls back if the block raises."""
        async with self._session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            await session.commit()

    async def ping(self) -> bool:
        """SELECT 1 against the engine. False (and a warning) when that fails."""
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as e:
            logger.warning("Database ping failed: %s", e)
            return False
        return True

    async def create_tables(self) -> None:
        """Create movie_entries and show_entries if they are missing."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        await self._engine.dispose()
