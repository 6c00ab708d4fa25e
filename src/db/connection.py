"""Database connection management for ShipSync.

The engine runs on SQLAlchemy's asyncio extension; SQLite (aiosqlite) is
the default and any async driver URL works through DATABASE_URL.

Usage:
    from src.db.connection import async_init_db, get_async_db_context

    await async_init_db()  # Create tables
    async with get_async_db_context() as db:
        ...
"""

import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.db.models import Base


# Configuration
def get_database_url() -> str:
    """Get database URL from environment or use default SQLite.

    Precedence:
    1. DATABASE_URL (canonical)
    2. SHIPSYNC_DB_PATH (file path, converted to sqlite URL)
    3. <data dir>/shipsync.db
    """
    database_url = os.environ.get("DATABASE_URL", "").strip()
    if database_url:
        return database_url

    db_path = os.environ.get("SHIPSYNC_DB_PATH", "").strip()
    if db_path:
        if db_path.startswith("sqlite"):
            return db_path
        return f"sqlite:///{db_path}"

    from src.utils.paths import get_default_db_path
    return f"sqlite:///{get_default_db_path()}"


def get_async_database_url() -> str:
    """Derive the async driver URL (sqlite:/// -> sqlite+aiosqlite:///)."""
    url = get_database_url()
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///")
    return url


def _set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:
    """Enable foreign keys and WAL for SQLite connections."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA synchronous=NORMAL;")
    cursor.close()


def create_engine_for_url(url: str) -> AsyncEngine:
    """Create an async engine, applying SQLite pragmas where relevant."""
    async_engine = create_async_engine(
        url,
        echo=os.environ.get("SQL_ECHO", "").lower() == "true",
    )
    if url.startswith("sqlite"):
        event.listen(async_engine.sync_engine, "connect", _set_sqlite_pragma)
    return async_engine


def create_session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


# Engine creation
ASYNC_DATABASE_URL = get_async_database_url()
async_engine = create_engine_for_url(ASYNC_DATABASE_URL)
AsyncSessionLocal = create_session_factory(async_engine)


async def get_async_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session for FastAPI's Depends().

    Yields:
        AsyncSession: Async SQLAlchemy session that will be closed after use.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


@asynccontextmanager
async def get_async_db_context() -> AsyncGenerator[AsyncSession, None]:
    """Async context manager for database sessions outside of FastAPI.

    Usage:
        async with get_async_db_context() as db:
            result = await db.execute(select(SalesChannel))
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def async_init_db(engine: AsyncEngine | None = None) -> None:
    """Create all tables if they do not exist."""
    async with (engine or async_engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_async_db() -> None:
    """Close the async engine and dispose of connection pool."""
    await async_engine.dispose()
