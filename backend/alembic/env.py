"""
Alembic Migration Environment
===============================

What:  Migrates the DevHabit schema: habits, tags, habit_tags and entries.
How:   The URL comes from devhabit.config.settings (DATABASE_URL), never from
       alembic.ini, so migrations hit the same database as the API. The sync
       migration context is driven through connection.run_sync() on an async
       engine built without a pool.
Who:   `alembic upgrade head` / `alembic revision --autogenerate`.

Notes:
    - Autogenerate compares column types as well as columns.
    - SQLite (local runs, tests) has no ALTER COLUMN; batch mode rebuilds
      the table instead.
    - Tables that are not DevHabit models (e.g. left over in a shared
      database) are ignored rather than dropped.
"""

import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.ext.asyncio import async_engine_from_config
from alembic import context

from devhabit.config import settings
from devhabit.database import Base
from devhabit.models import Entry, Habit, HabitTag, Tag

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

DEVHABIT_TABLES = {model.__tablename__ for model in (Habit, Tag, HabitTag, Entry)}

config.set_main_option("sqlalchemy.url", settings.database_url)


def include_object(obj, name, type_, reflected, compare_to) -> bool:
    if type_ == "table":
        return name in DEVHABIT_TABLES
    return True


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        include_object=include_object,
        compare_type=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit SQL to stdout without connecting (review before applying)."""
    _configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection) -> None:
    _configure(
        connection=connection,
        render_as_batch=connection.dialect.name == "sqlite",
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


def run_migrations_online() -> None:
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
