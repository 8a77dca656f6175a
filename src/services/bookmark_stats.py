"""Aggregate bookmark statistics computed from the rows themselves."""
import logging

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models.bookmark import Bookmark
from schemas.bookmark import BookmarkStats
from services.bookmark_delta import collection_key, read_state_key

logger = logging.getLogger(__name__)


def default_bookmark_stats() -> BookmarkStats:
    """All-zero stats, used for empty lists and when the stats query fails."""
    return BookmarkStats()


async def compute_bookmark_stats(db: AsyncSession, user_id: int) -> BookmarkStats:
    """
    Compute a user's stats with GROUP BY queries over their bookmarks.

    Raises SQLAlchemyError on failure; most callers want fetch_bookmark_stats.
    """
    stats = BookmarkStats()

    result = await db.execute(
        select(Bookmark.read_state, func.count())
        .where(Bookmark.user_id == user_id)
        .group_by(Bookmark.read_state),
    )
    for state, count in result.all():
        key = read_state_key(state)
        stats.read_states[key] = stats.read_states.get(key, 0) + count
    stats.total = sum(stats.read_states.values())
    stats.unread = stats.read_states.get("unread", 0)

    result = await db.execute(
        select(Bookmark.category, func.count())
        .where(Bookmark.user_id == user_id, Bookmark.category.is_not(None))
        .group_by(Bookmark.category),
    )
    stats.categories = {category: count for category, count in result.all()}

    result = await db.execute(
        select(Bookmark.collection_id, func.count())
        .where(Bookmark.user_id == user_id)
        .group_by(Bookmark.collection_id),
    )
    stats.collections = {
        collection_key(collection_id): count for collection_id, count in result.all()
    }
    return stats


async def fetch_bookmark_stats(db: AsyncSession, user_id: int) -> BookmarkStats:
    """
    Fetch a user's stats, degrading to all-zero stats on failure.

    The queries run in a savepoint so a failure here leaves the surrounding
    transaction usable for the list response.
    """
    try:
        async with db.begin_nested():
            return await compute_bookmark_stats(db, user_id)
    except SQLAlchemyError as e:
        logger.warning("bookmark_stats_fallback: user_id=%s error=%s", user_id, e)
        return default_bookmark_stats()
