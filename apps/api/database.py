from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from apps.api.config import settings

# Pooled async engine shared by request handlers and background jobs
engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=True,
)

# expire_on_commit=False keeps ORM objects readable after commit, which the
# generation runner relies on between its many small commits.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base for every table (see models/base.py for shared columns)."""
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One session per request; also used outside requests as

        async for db in get_db():
            ...
            break
    """
    session = async_session_factory()
    try:
        yield session
    finally:
        await session.close()
