"""
Async engine and session factory.

Pool sizing comes from settings; SQLite URLs (tests, local tooling) skip the
pool arguments they do not accept.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from ticket_engine.core.config import get_settings


def create_engine(url: str | None = None, **kwargs) -> AsyncEngine:
    settings = get_settings()
    url = url or settings.DATABASE_URL

    if url.startswith("sqlite"):
        return create_async_engine(url, **kwargs)

    return create_async_engine(
        url,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
        **kwargs,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
