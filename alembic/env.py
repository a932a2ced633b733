"""Alembic environment for the agent-images schema."""

from __future__ import annotations

import asyncio
import os
from logging.config import fileConfig
from pathlib import Path

from dotenv import load_dotenv
from sqlalchemy import engine_from_config, pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context
from agent_images.infrastructure.db.metadata import metadata

config = context.config

_INI_DEFAULT_URL = "sqlite:///./agent_images.db"
_ASYNC_DRIVERS = ("+asyncpg", "+aiosqlite")

if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)


def _resolve_url() -> str:
    """Return the migration URL; DATABASE_URL overrides only the ini default."""

    load_dotenv(Path(__file__).resolve().parents[1] / ".env")
    configured = config.get_main_option("sqlalchemy.url") or _INI_DEFAULT_URL
    from_env = os.getenv("DATABASE_URL")
    if from_env and configured == _INI_DEFAULT_URL:
        config.set_main_option("sqlalchemy.url", from_env)
        return from_env
    return configured


def _configure(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=metadata,
        render_as_batch=connection.dialect.name == "sqlite",
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_offline(url: str) -> None:
    """Emit migration SQL without a live connection."""

    context.configure(
        url=url,
        target_metadata=metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_sync() -> None:
    """Migrate through a sync driver such as pysqlite or psycopg."""

    engine = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with engine.connect() as connection:
        _configure(connection)
    engine.dispose()


async def run_async() -> None:
    """Migrate through an async driver, delegating to the sync runner."""

    engine = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    async with engine.connect() as connection:
        await connection.run_sync(_configure)
    await engine.dispose()


migration_url = _resolve_url()
if context.is_offline_mode():
    run_offline(migration_url)
elif any(driver in migration_url for driver in _ASYNC_DRIVERS):
    asyncio.run(run_async())
else:
    run_sync()
