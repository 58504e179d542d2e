"""Async database engine lifecycle."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from bizzi.settings import BizziSettings, get_settings
from bizzi.storage.models import Base

# Module-level singleton (created on first call to get_engine)
_engine: AsyncEngine | None = None


def get_engine(settings: BizziSettings | None = None) -> AsyncEngine:
    global _engine
    if _engine is None:
        s = settings or get_settings()
        kwargs: dict = {"echo": s.debug}
        if not s.database_url.startswith("sqlite"):
            kwargs.update(pool_pre_ping=True, pool_recycle=1800)
        _engine = create_async_engine(s.database_url, **kwargs)
    return _engine


async def create_all_tables(engine: AsyncEngine | None = None) -> None:
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None
