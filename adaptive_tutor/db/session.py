"""Database session management."""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from adaptive_tutor.db.base import Base
from adaptive_tutor.db.engine import get_engine


def create_session_factory(engine: AsyncEngine | None = None) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine or get_engine(),
        autoflush=False,
        expire_on_commit=False,  # Prevent lazy loading issues
    )


async def create_all(engine: AsyncEngine | None = None) -> None:
    """Create every table registered on Base. For local runs and tests."""
    import adaptive_tutor.models  # noqa: F401

    async with (engine or get_engine()).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
