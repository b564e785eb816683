"""Alembic environment for the progression schema.

Migrations run synchronously, so the asyncpg DATABASE_URL the service uses
is rewritten for the psycopg2 driver by ``academy.db.engine.sync_url``.
Every table module is imported so autogenerate sees enrollments, lesson
progress, submissions, credentials and webhook integrations, and column
type changes are compared as well.
"""

from __future__ import annotations

from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool

from alembic import context
from academy.core.config import SETTINGS
from academy.db.engine import Base, sync_url

config = context.config

# DATABASE_URL wins over the alembic.ini placeholder.
if SETTINGS.database_url:
    config.set_main_option("sqlalchemy.url", sync_url(SETTINGS.database_url))

# Keep the service's own loggers enabled when migrating from a script.
if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

import academy.db.tables  # noqa: E402, F401

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit the migration SQL without connecting (``alembic upgrade --sql``)."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
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
