"""BookmarkCounter model for denormalized per-user bookmark statistics."""
from enum import StrEnum

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, TimestampMixin


class CounterBucket(StrEnum):
    """Kinds of counter buckets kept per user."""

    TOTAL = "total"
    UNREAD = "unread"
    CATEGORY = "category"
    READ_STATE = "read_state"
    COLLECTION = "collection"


class BookmarkCounter(Base, TimestampMixin):
    """
    One bucket of a user's bookmark statistics.

    A user's counters record is the set of rows sharing a user_id:
    ("total", "") and ("unread", "") hold the scalar counts, and
    ("category" | "read_state" | "collection", key) hold the map entries.
    Keeping buckets as rows lets a whole delta be applied as a single
    INSERT ... ON CONFLICT DO UPDATE statement.
    """

    __tablename__ = "bookmark_counters"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "bucket", "bucket_key", name="uq_bookmark_counter_bucket",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
    )
    bucket: Mapped[str] = mapped_column(String(20), nullable=False)
    bucket_key: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
