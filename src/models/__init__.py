"""SQLAlchemy models."""
from models.base import Base, TimestampMixin
from models.bookmark_collection import BookmarkCollection  # Must be before bookmark (FK target)
from models.bookmark import Bookmark, ReadState
from models.bookmark_counter import BookmarkCounter, CounterBucket
from models.user import User

__all__ = [
    "Base",
    "Bookmark",
    "BookmarkCollection",
    "BookmarkCounter",
    "CounterBucket",
    "ReadState",
    "TimestampMixin",
    "User",
]
