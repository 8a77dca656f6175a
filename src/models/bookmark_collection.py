"""BookmarkCollection model for grouping a user's bookmarks."""
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import Boolean, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from models.bookmark import Bookmark
    from models.user import User


class BookmarkCollection(Base, TimestampMixin):
    """
    BookmarkCollection model - a named group of bookmarks owned by one user.

    Default collections are created lazily, one per (user, edition). The slug
    is the edition code (or "general" when there is no edition), and the
    unique (user_id, slug) constraint is what makes find-or-create idempotent
    under concurrent first bookmarks.
    """

    __tablename__ = "bookmark_collections"
    __table_args__ = (
        UniqueConstraint("user_id", "slug", name="uq_bookmark_collection_user_slug"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    edition_code: Mapped[str | None] = mapped_column(String(32), nullable=True)

    user: Mapped["User"] = relationship(back_populates="collections")
    bookmarks: Mapped[list["Bookmark"]] = relationship(back_populates="collection")
