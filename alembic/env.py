"""Alembic environment — async migration runner for web-template.

Imports all models so Base.metadata is populated before autogenerate.

Design Decisions:
    - The target environment arrives as `-x env=<name>` (set by the migrate CLI);
      the database URL comes from the same settings the app loads for it
    - Falls back to the alembic.ini value when no settings file is present
"""

import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context

from webtemplate.config import load_settings
from webtemplate.core.errors import ConfigLoadError
from webtemplate.db.base import Base
# Import all models so Base.metadata has them
from webtemplate.models.user import User  # noqa: F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _get_database_url() -> str:
    """DB URL from the settings of the -x env=<name> environment, else alembic.ini."""
    environment = context.get_x_argument(as_dictionary=True).get("env")
    try:
        return load_settings(environment=environment).database.url
    except ConfigLoadError:
        return config.get_main_option("sqlalchemy.url")


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode (SQL rendering, used by apply --dry-run)."""
    context.configure(
        url=_get_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """Run migrations in 'online' mode with async engine."""
    configuration = config.get_section(config.config_ini_section, {})
    configuration["sqlalchemy.url"] = _get_database_url()
    connectable = async_engine_from_config(
        configuration,
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
