from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool
from sqlmodel import SQLModel

from tinybox_backend.config import settings
from tinybox_backend import models  # noqa: F401  # register tables on SQLModel.metadata
from tinybox_backend.db_urls import normalize_database_url_for_alembic


config = context.config
if config.config_file_name is not None:
    # Keep application loggers alive when migrations run in-process (tests, startup scripts).
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = SQLModel.metadata


def _get_database_url() -> str:
    # Prefer the environment so CI/deployments can override; otherwise DATABASE_URL from .env.
    raw = os.getenv("DATABASE_URL") or settings.database_url
    return normalize_database_url_for_alembic(raw)


def run_migrations_offline() -> None:
    url = _get_database_url()
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    configuration = config.get_section(config.config_ini_section) or {}
    configuration["sqlalchemy.url"] = _get_database_url()

    connectable = engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
