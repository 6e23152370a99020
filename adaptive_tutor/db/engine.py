"""Database engine configuration."""

from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from adaptive_tutor.core.config import settings


def create_db_engine(url: str | None = None) -> AsyncEngine:
    """Create the async SQLAlchemy engine."""
    return create_async_engine(
        url or settings.DATABASE_URL,
        pool_pre_ping=True,  # Verify connections before using
        echo=settings.DATABASE_ECHO,
    )


@lru_cache(maxsize=1)
def get_engine() -> AsyncEngine:
    """Process-wide engine, created on first use."""
    return create_db_engine()
