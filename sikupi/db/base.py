"""Declarative base plus engine and session factory construction.

No engine is cached at module level. The app lifespan owns the engine and
keeps it, with its session factory, on ``app.state``.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from sikupi.core.config import get_settings


class Base(DeclarativeBase):
    pass


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(url: str | None = None) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Connect to the orders database and create any missing tables.

    Returns the engine and a session factory bound to it. The caller
    disposes the engine with close_db().
    """
    settings = get_settings()
    engine = create_async_engine(url or settings.database_url, echo=settings.debug, pool_pre_ping=True)

    # Models register themselves on Base.metadata at import time
    import sikupi.db.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    return engine, create_session_factory(engine)


async def close_db(engine: AsyncEngine) -> None:
    await engine.dispose()
