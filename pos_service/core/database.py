"""Database configuration and session management."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from .settings import Settings

logger = logging.getLogger(__name__)

# Two independent metadata collections: the central directory and the
# schema every tenant database is migrated to.
CentralBase = declarative_base()
TenantBase = declarative_base()


def is_sqlite_url(database_url: str) -> bool:
    return make_url(database_url).get_backend_name() == "sqlite"


def mask_database_url(database_url: str) -> str:
    """Render a connection URL with its password hidden, for logs."""
    return make_url(database_url).render_as_string(hide_password=True)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    """SQLite ignores FOREIGN KEY clauses unless asked per connection."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine_for_url(
    database_url: str,
    pool_size: int = 5,
    max_overflow: int = 0,
    pool_timeout: int = 30,
    pool_recycle: int = 3600,
    echo: bool = False,
) -> AsyncEngine:
    """Create an async engine, applying pool options only where they apply."""
    if is_sqlite_url(database_url):
        engine = create_async_engine(database_url, echo=echo)
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    return create_async_engine(
        database_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        pool_pre_ping=True,
        echo=echo,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


class DatabaseManager:
    """Connection and session management for the central management database."""

    def __init__(self, settings: Settings):
        self.database_url = settings.database_url
        self._engine = create_engine_for_url(
            settings.database_url,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_timeout=settings.database_pool_timeout,
            pool_recycle=settings.database_pool_recycle,
            echo=settings.debug,
        )
        self._session_factory = create_session_factory(self._engine)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker:
        return self._session_factory

    async def connect(self) -> None:
        """Verify the central database is reachable."""
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            logger.info("Central database connection established")
        except Exception as e:
            logger.error(f"Failed to connect to central database: {e}")
            raise

    async def disconnect(self) -> None:
        """Close central database connections."""
        await self._engine.dispose()
        logger.info("Central database connections closed")

    async def create_all(self) -> None:
        """Create central tables directly from metadata (development and tests)."""
        from pos_service import models  # noqa: F401

        async with self._engine.begin() as conn:
            await conn.run_sync(CentralBase.metadata.create_all)

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get async central database session."""
        async with self._session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise


def get_database(request: Request) -> DatabaseManager:
    """Get the central database manager attached to the application."""
    return request.app.state.database


async def get_central_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get a central database session for FastAPI."""
    async with get_database(request).get_session() as session:
        yield session
