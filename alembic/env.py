# alembic/env.py
from logging.config import fileConfig

# Alembic itself runs synchronously, so a plain engine is built from the async URL
from sqlalchemy import create_engine

from alembic import context

import os
import sys

# The project root must be importable so 'survey_builder' resolves
# ('alembic' sits one level below it).
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

# config loads the .env file on import
from survey_builder.config import DATABASE_URL  # noqa: E402
from survey_builder.database import Base, mask_url  # noqa: E402
from survey_builder import models  # noqa: E402,F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def sync_url(url: str) -> str:
    """Drop the async driver suffix (postgresql+asyncpg -> postgresql)."""
    if "+asyncpg" in url:
        return url.replace("+asyncpg", "")
    if "+aiosqlite" in url:
        return url.replace("+aiosqlite", "")
    return url


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode.

    This configures the context with just a URL
    and not an Engine. Calls to context.execute() here emit the given
    string to the script output.
    """
    offline_url = sync_url(DATABASE_URL)
    print(f"[alembic] offline migrations for {mask_url(offline_url)}")
    context.configure(
        url=offline_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode against a live connection."""
    online_url = sync_url(DATABASE_URL)
    print(f"[alembic] connecting to {mask_url(online_url)}")
    connectable = create_engine(online_url)

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
