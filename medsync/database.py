"""Database configuration and connection management.

Each supported country has its own enrichment database. Engines are created
lazily on first use and shared for the lifetime of the process.
"""

from functools import lru_cache

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from medsync.config import settings
from medsync.constants import SUPPORTED_COUNTRIES


def to_async_url(url: str) -> str:
    """Convert a sync PostgreSQL URL to its asyncpg form."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


@lru_cache
def get_engine(country: str) -> AsyncEngine:
    """
    Get the async engine for a country's enrichment database.

    Args:
        country: Country ISO code

    Returns:
        Async engine with connection pooling
    """
    return create_async_engine(
        to_async_url(settings.database_url_for(country)),
        echo=settings.debug,
        pool_pre_ping=True,
        pool_size=settings.database_pool_size,
        max_overflow=10,
        pool_recycle=3600,
    )


@lru_cache
def get_session_factory(country: str) -> async_sessionmaker[AsyncSession]:
    """Get the session factory bound to a country's engine."""
    return async_sessionmaker(
        get_engine(country),
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def check_database_connection(country: str) -> bool:
    """Check if a country database connection is healthy."""
    try:
        async with get_engine(country).connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except (SQLAlchemyError, OSError):
        return False


async def dispose_engines() -> None:
    """Dispose every engine created so far."""
    if get_engine.cache_info().currsize == 0:
        return
    for country in SUPPORTED_COUNTRIES:
        await get_engine(country).dispose()
    get_session_factory.cache_clear()
    get_engine.cache_clear()
