"""Database configuration."""

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
from sqlalchemy.orm import DeclarativeBase

from skillpath.core.config import get_settings
from skillpath.core.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()


def configure_sqlite(engine: AsyncEngine) -> None:
    """Make SQLite connections enforce foreign keys and honour SAVEPOINTs.

    SQLite ships with foreign keys off, which would silently skip the
    ON DELETE CASCADE rules the progress tables rely on. The driver also
    defers BEGIN until the first write, so a SAVEPOINT issued earlier would
    open (and on release commit) its own transaction; BEGIN is emitted
    explicitly instead.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, _: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")


# Create async engine
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DATABASE_ECHO,
)
configure_sqlite(engine)

# Create session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create database tables (development convenience; production uses Alembic)."""
    # Import models so every table is registered on Base.metadata
    import skillpath.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        logger.info("Creating database tables")
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    logger.info("Closing database connections")
    await engine.dispose()


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get a database session as a context manager.

    The whole block is one transaction: it is committed when the block exits
    normally and rolled back on any exception.
    """
    session = AsyncSessionLocal()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get a database session for FastAPI dependency injection."""
    async with get_db_session() as session:
        yield session
