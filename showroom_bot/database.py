"""Async SQLAlchemy engine and session factory."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from showroom_bot.config import settings

_engine: Optional[AsyncEngine] = None


def get_engine(url: Optional[str] = None) -> AsyncEngine:
    """Get or create the engine (lazy init)."""
    global _engine
    if _engine is None:
        _engine = create_async_engine(url or settings.database_url, pool_pre_ping=True)
    return _engine


def get_session_factory(engine: Optional[AsyncEngine] = None) -> async_sessionmaker:
    return async_sessionmaker(engine or get_engine(), expire_on_commit=False)


async def create_tables(engine: Optional[AsyncEngine] = None) -> None:
    """Create all tables that do not exist yet."""
    from showroom_bot.models import Base

    async with (engine or get_engine()).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
