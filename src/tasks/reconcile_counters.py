"""
Bookmark counter reconciliation task.

Counters are maintained by deltas. When a counter write fails after its row
mutation succeeded, the counters drift; this task is the repair path. Designed
to run as a cron job (e.g., hourly).

Usage:
    python -m tasks.reconcile_counters

For each user, the task:
1. Recomputes stats from the bookmark rows
2. Compares them with the persisted counters
3. Rewrites the counters of users whose record has drifted
"""
import asyncio
import logging
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.session import async_session_factory
from models.user import User
from services.bookmark_counters import (
    get_bookmark_counters,
    lock_bookmark_counters,
    replace_bookmark_counters,
)
from services.bookmark_stats import compute_bookmark_stats

logger = logging.getLogger(__name__)


@dataclass
class ReconcileStats:
    """Statistics from a reconciliation run."""

    users_checked: int = 0
    users_repaired: int = 0
    repaired_user_ids: list[int] = field(default_factory=list)

    def to_dict(self) -> dict[str, int]:
        """Convert to simple dict for logging/return."""
        return {
            "users_checked": self.users_checked,
            "users_repaired": self.users_repaired,
        }


async def reconcile_user_counters(
    db: AsyncSession,
    user_id: int,
    dry_run: bool = False,
) -> bool:
    """
    Repair one user's counters if they differ from the rows.

    Holds the user's counter lock exclusively from the read of the rows to
    the rewrite, so concurrent deltas wait instead of being overwritten.

    Returns:
        True if the counters had drifted.
    """
    if not dry_run:
        await lock_bookmark_counters(db, user_id, exclusive=True)
    actual = await compute_bookmark_stats(db, user_id)
    persisted = await get_bookmark_counters(db, user_id)
    if actual == persisted:
        return False

    logger.warning(
        "bookmark_counter_drift: user_id=%s persisted=%s actual=%s",
        user_id,
        persisted.model_dump(),
        actual.model_dump(),
    )
    if not dry_run:
        await replace_bookmark_counters(db, user_id, actual)
    return True


async def run_reconcile(
    db: AsyncSession | None = None,
    dry_run: bool = False,
) -> ReconcileStats:
    """
    Reconcile the counters of every user.

    Args:
        db: Database session. If None, creates one from async_session_factory.
        dry_run: Only report drift, do not rewrite counters.

    Returns:
        ReconcileStats for the run.
    """
    logger.info("Starting bookmark counter reconciliation (dry_run=%s)", dry_run)

    async def _run(session: AsyncSession) -> ReconcileStats:
        stats = ReconcileStats()
        user_ids = (await session.execute(select(User.id).order_by(User.id))).scalars().all()
        for user_id in user_ids:
            stats.users_checked += 1
            if await reconcile_user_counters(session, user_id, dry_run=dry_run):
                stats.users_repaired += 1
                stats.repaired_user_ids.append(user_id)
            # Releases the user's counter lock
            await session.commit()
        return stats

    if db is not None:
        stats = await _run(db)
    else:
        async with async_session_factory() as session:
            stats = await _run(session)

    logger.info("Reconciliation complete: %s", stats.to_dict())
    return stats


def main() -> None:
    """Entry point for running reconciliation as a script."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(run_reconcile())


if __name__ == "__main__":
    main()
