"""
Alembic env.py — Migration runner for Matchday Markets.

Path handling:
  - Adds src/backend to sys.path so `from models import Base` works from the
    project root; a no-op when the package is installed or PYTHONPATH is set.
  - Reads DATABASE_URL through config.py (which loads .env), falling back to
    alembic.ini's sqlalchemy.url.
"""

import asyncio
import sys
from logging.config import fileConfig
from pathlib import Path

from sqlalchemy import pool
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context

_backend_dir = str(Path(__file__).resolve().parents[1] / "src" / "backend")
if _backend_dir not in sys.path:
    sys.path.insert(0, _backend_dir)

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# models.py, not database.py: reading metadata must not create an engine.
from config import settings  # noqa: E402
from models import Base  # noqa: E402

target_metadata = Base.metadata

if settings.DATABASE_URL:
    config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)


def run_migrations_offline() -> None:
    """Emit SQL without a live connection."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)
    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
