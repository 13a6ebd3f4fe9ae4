from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import AsyncIterator

from sqlalchemy import event, inspect
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from tinybox_backend import models  # noqa: F401  # register tables on SQLModel.metadata
from tinybox_backend.config import settings
from tinybox_backend.db_urls import ensure_sqlite_parent_dir, normalize_database_url_for_async
from tinybox_backend.errors import SchemaMismatchError

logger = logging.getLogger(__name__)

_VERIFIED_TABLES = ("users", "files", "file_shares")


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    _ = connection_record
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _create_async_engine(database_url: str) -> AsyncEngine:
    ensure_sqlite_parent_dir(database_url)
    url = normalize_database_url_for_async(database_url)
    engine = create_async_engine(url, echo=False, pool_pre_ping=True)
    if engine.dialect.name == "sqlite":
        # SQLite ignores REFERENCES unless enabled per connection; a link can
        # then never be inserted for a file deleted after the ownership check.
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


@lru_cache(maxsize=4)
def get_engine() -> AsyncEngine:
    # Rebuilt after tests/deployments override settings.database_url.
    return _create_async_engine(settings.database_url)


def reset_engine_cache() -> None:
    get_engine.cache_clear()


async def dispose_engine() -> None:
    # Close pooled connections (aiosqlite worker threads) while the event loop is alive.
    if get_engine.cache_info().currsize:
        await get_engine().dispose()
    get_engine.cache_clear()


def _missing_columns(conn: Connection) -> dict[str, list[str]]:
    insp = inspect(conn)
    existing_tables = set(insp.get_table_names())
    missing: dict[str, list[str]] = {}
    for table_name in _VERIFIED_TABLES:
        table = SQLModel.metadata.tables[table_name]
        expected = [c.name for c in table.columns]
        if table_name not in existing_tables:
            missing[table_name] = expected
            continue
        present = {c["name"] for c in insp.get_columns(table_name)}
        absent = [name for name in expected if name not in present]
        if absent:
            missing[table_name] = absent
    return missing


async def verify_schema() -> None:
    """Fail fast when the database is behind the mapped schema.

    Missing tables/columns are a deployment problem (run `alembic upgrade head`),
    not something individual requests should work around.
    """

    engine = get_engine()
    async with engine.connect() as conn:
        missing = await conn.run_sync(_missing_columns)
    if missing:
        summary = "; ".join(f"{t}: {', '.join(cols)}" for t, cols in sorted(missing.items()))
        logger.error("database schema mismatch: %s", summary)
        raise SchemaMismatchError(f"database schema is missing columns ({summary})")


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    session_maker = async_sessionmaker(get_engine(), class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        yield session


async def get_session() -> AsyncIterator[AsyncSession]:
    session_maker = async_sessionmaker(get_engine(), class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        yield session
