from __future__ import annotations

from pathlib import Path

from sqlalchemy.engine import make_url

_ASYNC_DRIVERS = {"sqlite": "sqlite+aiosqlite", "postgresql": "postgresql+psycopg"}
_SYNC_DRIVERS = {"sqlite": "sqlite", "postgresql": "postgresql+psycopg"}


def _with_driver(database_url: str, drivers: dict[str, str]) -> str:
    url = (database_url or "").strip()
    if not url:
        return url
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://") :]
    parsed = make_url(url)
    target = drivers.get(parsed.get_backend_name())
    if target is None:
        return url
    return parsed.set(drivername=target).render_as_string(hide_password=False)


def normalize_database_url_for_async(database_url: str) -> str:
    """Runtime engine URL: aiosqlite for SQLite, psycopg (v3, async-capable) for PostgreSQL."""
    return _with_driver(database_url, _ASYNC_DRIVERS)


def normalize_database_url_for_alembic(database_url: str) -> str:
    # Alembic migrates on a sync engine.
    return _with_driver(database_url, _SYNC_DRIVERS)


def ensure_sqlite_parent_dir(database_url: str) -> None:
    url = (database_url or "").strip()
    if not url.lower().startswith("sqlite"):
        return
    database = make_url(url).database
    if not database or database == ":memory:":
        return
    parent = Path(database).parent
    if str(parent) not in {"", "."}:
        parent.mkdir(parents=True, exist_ok=True)
