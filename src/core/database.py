"""Async database engine factory and session management."""

from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.core.config import settings

# Import all models to register them with Base.metadata
from src.models import Base, Client, ClientDocument  # noqa: F401


def create_engine(
    database_url: str | None = None,
    **engine_options: Any,
) -> AsyncEngine:
    """Create an async SQLAlchemy engine.

    Args:
        database_url: Database connection URL. Defaults to settings.database_url.
        **engine_options: Additional options passed to create_async_engine.

    Returns:
        Configured AsyncEngine instance.
    """
    url = database_url or settings.database_url

    default_options: dict[str, Any] = {
        "pool_pre_ping": True,
        "echo": settings.debug,
    }
    if not url.startswith("sqlite"):
        default_options.update({"pool_size": 20, "max_overflow": 0})
    default_options.update(engine_options)

    engine = create_async_engine(url, **default_options)
    if url.startswith("sqlite"):
        enable_sqlite_savepoints(engine)
    return engine


def enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """Let SQLAlchemy emit BEGIN itself so SAVEPOINT works on SQLite.

    The sqlite3 driver otherwise opens and commits transactions on its own,
    which breaks `Session.begin_nested()`.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection: Any, _record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory.

    Args:
        engine: AsyncEngine instance to bind sessions to.

    Returns:
        Configured async_sessionmaker instance.
    """
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def create_tables(engine: AsyncEngine) -> None:
    """Create any missing tables.

    Intended for development and SQLite setups; PostgreSQL deployments
    run the Alembic migrations instead.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
