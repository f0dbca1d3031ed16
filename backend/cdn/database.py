"""Database engine for file records.

One engine per process, built from DATABASE_URL (asyncpg in production,
aiosqlite in tests). Routes get a session through ``get_db``; the reaper
opens its own sessions from ``async_session``.
"""
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from cdn.config import settings


def build_engine(url: str) -> AsyncEngine:
    """Create the engine; pool sizing only applies to server databases."""
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=False)
    return create_async_engine(
        url,
        echo=False,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
    )


engine = build_engine(settings.DATABASE_URL)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db():
    """Per-request session, closed when the response is done."""
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()
