import asyncio

from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.errors import RepositoryError
from app.db.models import Base


def create_engine(database_url: str, pool_size: int = 20) -> AsyncEngine:
    """Create the async engine. Pool sizing is skipped for SQLite, which doesn't pool."""
    if database_url.startswith("sqlite"):
        # In-memory databases live per connection, so every session must share one
        if ":memory:" in database_url:
            return create_async_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
                future=True,
            )
        return create_async_engine(database_url, future=True)
    return create_async_engine(
        database_url,
        pool_size=pool_size,
        max_overflow=0,
        pool_pre_ping=True,
        future=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables if they don't exist. Existing tables are not modified."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def wait_for_database(engine: AsyncEngine, attempts: int = 30, delay: float = 1.0) -> None:
    """
    Block until the database answers a trivial query.

    Raises:
        RepositoryError: still unreachable after `attempts` tries
    """
    last_error: Exception | None = None
    for attempt in range(1, attempts + 1):
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            if attempt > 1:
                logger.info(f"Database reachable after {attempt} attempts")
            return
        except (SQLAlchemyError, OSError) as exc:
            last_error = exc
            logger.info(f"Waiting for database... ({attempt}/{attempts})")
            if attempt < attempts:
                await asyncio.sleep(delay)
    raise RepositoryError(f"database unreachable after {attempts} attempts: {last_error}") from last_error
