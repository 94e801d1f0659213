"""Alembic migration environment configuration.

Configured to:
- Use SQLModel metadata for autogenerate
- Load database URL from alembic config, settings, or environment
"""

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool
from sqlmodel import SQLModel

from swizz.db.models import Call, TranscriptionEntry  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = SQLModel.metadata


def get_database_url() -> str:
    """Get a sync database URL.

    Priority:
    1. Alembic config (from alembic.ini or -x sqlalchemy.url=)
    2. Application settings
    3. DATABASE_URL environment variable / default SQLite path
    """
    url = config.get_main_option("sqlalchemy.url")
    if url:
        return url

    try:
        from swizz.config import get_settings

        return get_settings().database_url.replace("+aiosqlite", "")
    except Exception:
        # Settings need API keys; migrations in CI may not have them
        return os.environ.get(
            "DATABASE_URL", "sqlite:///./data/swizz.db"
        ).replace("+aiosqlite", "")


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode, emitting SQL to the script output."""
    context.configure(
        url=get_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations against a live connection."""
    configuration = config.get_section(config.config_ini_section, {})
    configuration["sqlalchemy.url"] = get_database_url()

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
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
