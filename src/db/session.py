"""Async SQLAlchemy session factory."""
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from core.config import get_settings
from services.bookmark_cache import discard_invalidations, fire_invalidations
from services.exceptions import BookmarkPartialMutationError


settings = get_settings()

engine = create_async_engine(
    settings.database_url,
    echo=False,
    pool_pre_ping=True,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def get_session_factory() -> async_sessionmaker:
    """Return the session factory for scripts and background tasks."""
    return async_session_factory


async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """
    Yield an async database session.

    Uses unit-of-work pattern: services use flush() for refreshing objects,
    commit happens once here at request end. If anything fails, all changes are
    rolled back, with one exception: a partial mutation (row written, counters
    not) keeps the row change, so it is committed before the error propagates.

    Cache invalidations queued by the mutation pipeline fire only after a
    commit and are dropped on rollback.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except BookmarkPartialMutationError:
            await session.commit()
            await fire_invalidations(session)
            raise
        except Exception:
            discard_invalidations(session)
            await session.rollback()
            raise
        await fire_invalidations(session)
