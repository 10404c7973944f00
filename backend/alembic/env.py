"""
Alembic environment. The URL comes from Settings (DATABASE_URL) and the engine
is built with the application's own engine options.
"""

import asyncio
import os
from logging.config import fileConfig

from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool
from alembic import context

os.environ.setdefault("ENVIRONMENT", "development")
from ads_manager.config import get_settings
from ads_manager.database import Base, enable_sqlite_foreign_keys, engine_options, is_sqlite
import ads_manager.models  # noqa: F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

settings = get_settings()
config.set_main_option("sqlalchemy.url", settings.database_url)
target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of connecting."""
    context.configure(
        url=settings.database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _migrate(connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        # SQLite can't ALTER constraints in place
        render_as_batch=connection.dialect.name == "sqlite",
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    options = engine_options(settings.database_url, settings.database_ssl)
    # Migrations open one connection and exit; no pool
    for pool_option in ("pool_size", "max_overflow", "pool_pre_ping"):
        options.pop(pool_option, None)
    migration_engine = create_async_engine(settings.database_url, poolclass=NullPool, **options)
    if is_sqlite(settings.database_url):
        enable_sqlite_foreign_keys(migration_engine)

    async with migration_engine.connect() as connection:
        await connection.run_sync(_migrate)
    await migration_engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
