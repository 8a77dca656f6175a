"""
Persisted per-user bookmark counters.

A user's counters are bucket rows in ``bookmark_counters``. A stats delta is
applied as one multi-row ``INSERT ... ON CONFLICT DO UPDATE`` that adds each
signed change to its bucket, so concurrent mutations for the same user never
lose an update: the database does the read-modify-write, not this process.
"""
import logging
from typing import Any

from sqlalchemy import case, delete, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models.base import utc_now
from models.bookmark_counter import BookmarkCounter, CounterBucket
from schemas.bookmark import BookmarkStats, BookmarkStatsDelta
from services.exceptions import BookmarkDependencyError

logger = logging.getLogger(__name__)

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}

# Advisory lock namespace ("bm") for per-user counter locks on PostgreSQL
COUNTER_LOCK_NAMESPACE = 0x626D

_MAP_BUCKETS = (
    (CounterBucket.CATEGORY, "categories"),
    (CounterBucket.READ_STATE, "read_states"),
    (CounterBucket.COLLECTION, "collections"),
)


def counter_rows(
    user_id: int,
    counts: BookmarkStats | BookmarkStatsDelta,
    skip_zero: bool = True,
) -> list[dict[str, Any]]:
    """Flatten stats (or a delta) into bucket rows."""
    scalars = ((CounterBucket.TOTAL, counts.total), (CounterBucket.UNREAD, counts.unread))
    rows = [
        {"user_id": user_id, "bucket": bucket.value, "bucket_key": "", "value": value}
        for bucket, value in scalars
    ]
    for bucket, attr in _MAP_BUCKETS:
        rows.extend(
            {"user_id": user_id, "bucket": bucket.value, "bucket_key": key, "value": value}
            for key, value in getattr(counts, attr).items()
        )
    if skip_zero:
        rows = [row for row in rows if row["value"]]
    return rows


def _insert_for(db: AsyncSession) -> Any:
    dialect = db.get_bind().dialect.name
    try:
        return _INSERT_BY_DIALECT[dialect]
    except KeyError:
        raise BookmarkDependencyError(
            f"Counter upsert is not supported on {dialect}",
        ) from None


async def lock_bookmark_counters(
    db: AsyncSession,
    user_id: int,
    exclusive: bool = False,
) -> None:
    """
    Take the per-user counter lock until the transaction ends.

    Delta writers share the lock; a full rewrite takes it exclusively, so no
    delta lands between the rewrite reading the rows and replacing the
    counters. Only PostgreSQL needs it: SQLite serializes writers itself.
    """
    if db.get_bind().dialect.name != "postgresql":
        return
    lock = func.pg_advisory_xact_lock if exclusive else func.pg_advisory_xact_lock_shared
    await db.execute(select(lock(COUNTER_LOCK_NAMESPACE, user_id)))


async def apply_bookmark_counter_delta(
    db: AsyncSession,
    user_id: int,
    delta: BookmarkStatsDelta,
) -> None:
    """
    Atomically add a delta to a user's persisted counters.

    Missing buckets are created; every bucket is floored at zero. All-zero
    deltas are skipped. The write runs in a savepoint so that a failure leaves
    the caller's row mutation intact.

    Raises:
        BookmarkDependencyError: If the counter write fails.
    """
    rows = counter_rows(user_id, delta)
    if not rows:
        return

    insert = _insert_for(db)
    stmt = insert(BookmarkCounter).values(rows)
    current = case((BookmarkCounter.value < 0, 0), else_=BookmarkCounter.value)
    updated = current + stmt.excluded.value
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "bucket", "bucket_key"],
        set_={
            "value": case((updated < 0, 0), else_=updated),
            "updated_at": utc_now(),
        },
    )

    try:
        async with db.begin_nested():
            await lock_bookmark_counters(db, user_id)
            await db.execute(stmt)
    except SQLAlchemyError as e:
        logger.error(
            "bookmark_counter_apply_failed: user_id=%s buckets=%s error=%s",
            user_id,
            len(rows),
            e,
        )
        raise BookmarkDependencyError("Failed to update bookmark counters") from e


async def get_bookmark_counters(db: AsyncSession, user_id: int) -> BookmarkStats:
    """Read a user's persisted counters as stats (absent buckets are zero)."""
    result = await db.execute(
        select(BookmarkCounter.bucket, BookmarkCounter.bucket_key, BookmarkCounter.value)
        .where(BookmarkCounter.user_id == user_id, BookmarkCounter.value > 0),
    )
    stats = BookmarkStats()
    maps = {bucket.value: attr for bucket, attr in _MAP_BUCKETS}
    for bucket, key, value in result.all():
        if bucket == CounterBucket.TOTAL:
            stats.total = value
        elif bucket == CounterBucket.UNREAD:
            stats.unread = value
        elif bucket in maps:
            getattr(stats, maps[bucket])[key] = value
    stats.unread = min(stats.unread, stats.total)
    return stats


async def replace_bookmark_counters(
    db: AsyncSession,
    user_id: int,
    stats: BookmarkStats,
) -> None:
    """Overwrite a user's counters with freshly computed stats."""
    await db.execute(delete(BookmarkCounter).where(BookmarkCounter.user_id == user_id))
    rows = counter_rows(user_id, stats)
    if rows:
        await db.execute(_insert_for(db)(BookmarkCounter).values(rows))
