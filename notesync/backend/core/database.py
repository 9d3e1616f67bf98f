"""
Database Configuration.

SQLAlchemy async engine and session management.

The Database object is constructed explicitly and handed to the FastAPI
application (app.state.database). Nothing is created at import time, and
tests get an isolated store by building a fresh Database.
"""

from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from notesync.backend.core.logging import get_logger
from notesync.backend.models.base import Base

logger = get_logger(__name__)


class Database:
    """
    Engine and session factory for the authoritative note store.

    An in-memory SQLite URL keeps one shared connection (StaticPool) so
    every session sees the same data for the lifetime of the object.

    Usage:
        database = Database("sqlite+aiosqlite:///:memory:")
        await database.create_all()
        async with database.session() as session:
            ...
        await database.dispose()
    """

    def __init__(self, url: str, echo: bool = False) -> None:
        engine_kwargs: dict[str, Any] = {"echo": echo}
        if url.startswith("sqlite") and ":memory:" in url:
            engine_kwargs["poolclass"] = StaticPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}

        self.url = url
        self.engine: AsyncEngine = create_async_engine(url, **engine_kwargs)
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        logger.debug("Database engine created", extra={"driver": self.engine.url.drivername})

    @classmethod
    def from_config(cls) -> "Database":
        """Build from database.yaml (DATABASE_URL in config/.env takes precedence)."""
        from notesync.backend.core.config import get_app_config, get_database_url

        return cls(get_database_url(), echo=get_app_config().database.echo)

    async def create_all(self) -> None:
        """Create all tables that do not exist yet."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        """Drop all tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def ping(self) -> None:
        """Run SELECT 1. Raises on connectivity problems."""
        async with self.session_factory() as session:
            await session.execute(text("SELECT 1"))

    async def dispose(self) -> None:
        """Close all pooled connections."""
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Transactional session: commits on success, rolls back on error."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise


def get_database(request: Request) -> Database:
    """The Database attached to the running application."""
    return request.app.state.database


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a database session.

    Usage in endpoints:
        @router.get("/items")
        async def get_items(db: AsyncSession = Depends(get_db_session)):
            ...
    """
    async with get_database(request).session() as session:
        yield session
