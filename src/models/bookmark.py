"""Bookmark model for storing a user's saved posts."""
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, JSONType, TimestampMixin

if TYPE_CHECKING:
    from models.bookmark_collection import BookmarkCollection
    from models.user import User


class ReadState(StrEnum):
    """Reading progress of a saved post."""

    UNREAD = "unread"
    IN_PROGRESS = "in_progress"
    READ = "read"


class Bookmark(Base, TimestampMixin):
    """Bookmark model - one saved post per (user, post) pair."""

    __tablename__ = "bookmarks"
    __table_args__ = (
        UniqueConstraint("user_id", "post_id", name="uq_bookmark_user_post"),
        # Keyset pagination indexes: (user, sort column, id)
        Index("ix_bookmarks_user_created_id", "user_id", "created_at", "id"),
        Index("ix_bookmarks_user_read_state", "user_id", "read_state"),
        Index("ix_bookmarks_user_category", "user_id", "category"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
    )
    post_id: Mapped[str] = mapped_column(String(255), nullable=False)
    edition_code: Mapped[str | None] = mapped_column(String(32), nullable=True)
    collection_id: Mapped[str | None] = mapped_column(
        ForeignKey("bookmark_collections.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False, default="Untitled Post")
    slug: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    excerpt: Mapped[str] = mapped_column(Text, nullable=False, default="")
    featured_image: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    category: Mapped[str | None] = mapped_column(String(255), nullable=True)
    tags: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    read_state: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ReadState.UNREAD.value,
        server_default=ReadState.UNREAD.value,
    )
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    user: Mapped["User"] = relationship(back_populates="bookmarks")
    collection: Mapped["BookmarkCollection | None"] = relationship(back_populates="bookmarks")
