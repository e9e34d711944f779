# Alembic env (async, SQLAlchemy 2.x)
from __future__ import annotations

import asyncio
import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

import fileshare.models  # noqa: F401  registers every table on Base.metadata
from fileshare.db.base import Base

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def get_dsn() -> str:
    """DATABASE_DSN from the environment, else sqlalchemy.url from alembic.ini."""
    env_dsn = os.getenv("DATABASE_DSN")
    if env_dsn:
        return env_dsn
    url = config.get_main_option("sqlalchemy.url")
    if not url:
        raise RuntimeError("DATABASE_DSN env var or sqlalchemy.url in alembic.ini must be set")
    return url


def run_migrations_offline() -> None:
    context.configure(
        url=get_dsn(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection) -> None:  # type: ignore[no-untyped-def]
    context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    # postgresql+psycopg:// serves both the sync app engine and this async one
    connectable: AsyncEngine = create_async_engine(get_dsn(), poolclass=pool.NullPool)

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
