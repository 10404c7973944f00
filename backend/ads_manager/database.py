"""
Database configuration and session management.
PostgreSQL through asyncpg in deployment; SQLite through aiosqlite for local
development and the test suite. Alembic's env.py builds its engine from the
same `engine_options`.
"""

import logging
import ssl
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from ads_manager.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


def is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def engine_options(url: str, use_ssl: bool = False) -> dict:
    """Keyword arguments for create_async_engine, per backend."""
    if is_sqlite(url):
        return {"echo": False}

    connect_args: dict = {"timeout": 30}
    if use_ssl:
        ctx = ssl.create_default_context()
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
        connect_args["ssl"] = ctx
    return {
        "echo": False,
        "connect_args": connect_args,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_pre_ping": True,
    }


def enable_sqlite_foreign_keys(async_engine) -> None:
    """SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection."""

    @event.listens_for(async_engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_async_engine(
    settings.database_url,
    **engine_options(settings.database_url, settings.database_ssl),
)
if is_sqlite(settings.database_url):
    enable_sqlite_foreign_keys(engine)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncSession:
    """Request-scoped session. Commits when the handler returns, rolls back if it raises."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db():
    """
    Create missing tables from the models (development convenience).
    Deployed databases are migrated with Alembic.
    """
    import ads_manager.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Database ready: {', '.join(sorted(Base.metadata.tables))}")


async def drop_and_recreate_db():
    """Drop and recreate every table. Refuses to run in production."""
    if settings.is_production:
        raise RuntimeError("drop_and_recreate_db() is disabled in production; use Alembic migrations.")

    import ads_manager.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    logger.warning("Database dropped and recreated.")


async def check_db_connection() -> bool:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
