from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from wrapper_relayer.app.config import RelayerConfig
from wrapper_relayer.app.infrastructure.db.db_base import BaseDB


def create_app_async_engine(config: RelayerConfig, *, echo: bool = False) -> AsyncEngine:
    """
    Factory for the AsyncEngine backing the relayer's SQLite ledger.

    Centralizing engine creation keeps connection handling consistent
    across tasks and makes it easier to tweak pragmas in one place.
    """
    config.sqlite_path.expanduser().parent.mkdir(parents=True, exist_ok=True)

    engine = create_async_engine(
        config.database_url,  # sqlite+aiosqlite:///...
        echo=echo,
        pool_pre_ping=True,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragmas(dbapi_connection, _connection_record) -> None:  # type: ignore[no-untyped-def]
        cursor = dbapi_connection.cursor()
        # WAL + FULL sync: a committed ProcessedEvent survives a crash
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=FULL")
        cursor.close()

    return engine


async def create_schema(engine: AsyncEngine) -> None:
    """Create missing tables. Deployed databases are migrated with Alembic instead."""
    # models must be imported so their tables are registered on BaseDB.metadata
    from wrapper_relayer.app.infrastructure.db import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(BaseDB.metadata.create_all)
