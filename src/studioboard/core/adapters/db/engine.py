"""Async SQLAlchemy engine setup for SQLModel."""

from __future__ import annotations

import platform
import sys
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from studioboard.core.paths import get_database_path


def _check_greenlet() -> None:
    """Verify greenlet is functional (required by SQLAlchemy async)."""
    try:
        import greenlet  # noqa: F401
    except (ImportError, OSError) as exc:
        py = f"Python {sys.version_info.major}.{sys.version_info.minor}"
        raise RuntimeError(
            f"greenlet failed to load on {platform.system()} ({py}). "
            f"SQLAlchemy async requires a working greenlet installation.\n"
            f"Original error: {exc}"
        ) from exc


async def create_db_engine(db_path: str | Path | None = None) -> AsyncEngine:
    """Create an async SQLite engine; file databases run in WAL mode."""
    _check_greenlet()
    target = str(db_path) if db_path is not None else str(get_database_path())
    if target == ":memory:":
        engine = create_async_engine(
            "sqlite+aiosqlite:///:memory:",
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        resolved = Path(target)
        resolved.parent.mkdir(parents=True, exist_ok=True)
        engine = create_async_engine(
            f"sqlite+aiosqlite:///{resolved}",
            echo=False,
            connect_args={"check_same_thread": False},
        )

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragmas(dbapi_connection, _connection_record) -> None:
        """Enable FK enforcement for every SQLite connection."""
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    if target != ":memory:":
        async with engine.begin() as conn:
            await conn.exec_driver_sql("PRAGMA journal_mode=WAL")

    return engine


async def create_db_tables(engine: AsyncEngine) -> None:
    """Create all tables from SQLModel metadata."""
    # Registers the table classes on SQLModel.metadata.
    from studioboard.core.adapters.db import schema  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
