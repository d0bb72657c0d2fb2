"""Database configuration and connection management."""

from collections.abc import AsyncGenerator
from typing import Any

import structlog
from fastapi import Request
from sqlalchemy import create_engine, pool, text
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from carequeue.config import Settings

logger = structlog.get_logger(__name__)


class Database:
    """
    Owns the async engine and session factory.

    Created once per process in the application lifespan and disposed at
    shutdown; request handlers reach it through ``get_db``.
    """

    def __init__(self, settings: Settings):
        """Create the engine and session factory from settings."""
        url = settings.async_database_url
        engine_kwargs: dict[str, Any] = {"echo": settings.debug, "pool_pre_ping": True}

        if url.startswith("postgresql+asyncpg://"):
            engine_kwargs.update(
                pool_size=settings.db_pool_size,
                max_overflow=settings.db_max_overflow,
                pool_recycle=3600,
                connect_args={
                    "server_settings": {
                        "application_name": settings.app_name,
                    },
                },
            )

        self.engine: AsyncEngine = create_async_engine(url, **engine_kwargs)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session that is rolled back on error and always closed."""
        async with self.session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def check_connection(self) -> bool:
        """Check if database connection is healthy."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning("database_health_check_failed", error=str(e))
            return False

    async def dispose(self) -> None:
        """Close all pooled connections."""
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    database: Database = request.app.state.database
    async for session in database.session():
        yield session


def create_sync_engine(settings: Settings) -> Engine:
    """Sync engine for Alembic migrations and scripts."""
    return create_engine(settings.database_url, poolclass=pool.NullPool)
