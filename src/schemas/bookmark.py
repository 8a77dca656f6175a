"""Pydantic schemas for bookmark endpoints."""
from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from core.config import get_settings
from models.bookmark import ReadState

READ_STATES: tuple[str, ...] = tuple(state.value for state in ReadState)

# Stats key used for bookmarks that have no collection
UNASSIGNED_COLLECTION_KEY = "unassigned"


def sanitize_edition_code(value: Any) -> str | None:
    """
    Normalize an edition code.

    Blank strings and the literal "null" mean "no edition"; anything else is
    trimmed and lowercased.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError("Edition code must be a string")
    trimmed = value.strip().lower()
    if not trimmed or trimmed == "null":
        return None
    return trimmed


def sanitize_collection_id(value: Any) -> str | None:
    """Normalize a collection id; blank strings and "null" mean no collection."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError("Collection id must be a string")
    trimmed = value.strip()
    if not trimmed or trimmed.lower() == "null":
        return None
    return trimmed


def sanitize_read_state(value: Any) -> str | None:
    """
    Normalize a read state ("In-Progress" -> "in_progress").

    Raises:
        ValueError: If the value is not a known read state.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError("Read state must be a string")
    normalized = value.strip().lower().replace("-", "_")
    if normalized not in READ_STATES:
        raise ValueError(
            f"Invalid read state: '{value}'. Use one of: {', '.join(READ_STATES)}.",
        )
    return normalized


def sanitize_category(value: Any) -> str | None:
    """Trim a category; blank means uncategorized."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError("Category must be a string")
    trimmed = value.strip()
    return trimmed or None


def sanitize_string_list(value: Any) -> list[str] | None:
    """Trim list entries and drop blanks; an empty result is stored as None."""
    if value is None:
        return None
    if not isinstance(value, list):
        raise ValueError("Tags must be a list of strings")
    cleaned = [item.strip() for item in value if isinstance(item, str) and item.strip()]
    return cleaned or None


def validate_title_length(title: str | None) -> str | None:
    """Validate that title doesn't exceed maximum length."""
    settings = get_settings()
    if title is not None and len(title) > settings.max_title_length:
        raise ValueError(
            f"Title exceeds maximum length of {settings.max_title_length:,} characters "
            f"(got {len(title):,} characters).",
        )
    return title


def validate_note_length(note: str | None) -> str | None:
    """Validate that note doesn't exceed maximum length."""
    settings = get_settings()
    if note is not None and len(note) > settings.max_note_length:
        raise ValueError(
            f"Note exceeds maximum length of {settings.max_note_length:,} characters "
            f"(got {len(note):,} characters).",
        )
    return note


class _BookmarkFields(BaseModel):
    """Writable bookmark fields shared by create and update payloads."""

    model_config = ConfigDict(populate_by_name=True)

    title: str | None = None
    slug: str | None = None
    excerpt: str | None = None
    featured_image: dict[str, Any] | None = Field(
        default=None,
        validation_alias=AliasChoices("featured_image", "featuredImage"),
    )
    category: str | None = None
    tags: list[str] | None = None
    read_state: str | None = Field(
        default=None,
        validation_alias=AliasChoices("read_state", "readState", "status"),
    )
    note: str | None = Field(
        default=None,
        validation_alias=AliasChoices("note", "notes"),
    )
    edition_code: str | None = Field(
        default=None,
        validation_alias=AliasChoices("edition_code", "editionCode", "country"),
    )
    collection_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("collection_id", "collectionId"),
    )

    @field_validator("edition_code", mode="before")
    @classmethod
    def normalize_edition_code(cls, v: Any) -> str | None:
        """Normalize edition code."""
        return sanitize_edition_code(v)

    @field_validator("collection_id", mode="before")
    @classmethod
    def normalize_collection_id(cls, v: Any) -> str | None:
        """Normalize collection id."""
        return sanitize_collection_id(v)

    @field_validator("read_state", mode="before")
    @classmethod
    def normalize_read_state(cls, v: Any) -> str | None:
        """Normalize and validate read state."""
        return sanitize_read_state(v)

    @field_validator("category", mode="before")
    @classmethod
    def normalize_category(cls, v: Any) -> str | None:
        """Normalize category."""
        return sanitize_category(v)

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v: Any) -> list[str] | None:
        """Normalize tags."""
        return sanitize_string_list(v)

    @field_validator("title")
    @classmethod
    def check_title_length(cls, v: str | None) -> str | None:
        """Validate title length."""
        return validate_title_length(v)

    @field_validator("note")
    @classmethod
    def check_note_length(cls, v: str | None) -> str | None:
        """Validate note length."""
        return validate_note_length(v)


class BookmarkCreate(_BookmarkFields):
    """Schema for saving a post to the bookmarks list."""

    post_id: str = Field(validation_alias=AliasChoices("post_id", "postId", "wp_post_id"))


class BookmarkUpdate(_BookmarkFields):
    """
    Schema for updating an existing bookmark.

    Only fields present in the payload are applied (``model_dump(exclude_unset=True)``);
    an explicit null clears the field.
    """


class BookmarkResponse(BaseModel):
    """Schema for a bookmark row returned by list and mutation endpoints."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    post_id: str
    edition_code: str | None
    collection_id: str | None
    title: str
    slug: str
    excerpt: str
    featured_image: dict[str, Any] | None
    category: str | None
    tags: list[str] | None
    read_state: str
    note: str | None
    created_at: datetime
    updated_at: datetime


class BookmarkStats(BaseModel):
    """
    Aggregate statistics for one user's bookmarks.

    Map values are always positive; an absent key means zero.
    """

    total: int = 0
    unread: int = 0
    categories: dict[str, int] = Field(default_factory=dict)
    read_states: dict[str, int] = Field(default_factory=dict)
    collections: dict[str, int] = Field(default_factory=dict)


class BookmarkStatsDelta(BaseModel):
    """Signed change to BookmarkStats caused by one mutation. Zero entries are omitted."""

    total: int = 0
    unread: int = 0
    categories: dict[str, int] = Field(default_factory=dict)
    read_states: dict[str, int] = Field(default_factory=dict)
    collections: dict[str, int] = Field(default_factory=dict)

    @property
    def is_zero(self) -> bool:
        """True when applying this delta would change nothing."""
        return not (
            self.total or self.unread or self.categories or self.read_states or self.collections
        )


class BookmarkPagination(BaseModel):
    """Keyset pagination metadata."""

    limit: int
    has_more: bool
    next_cursor: str | None = None


class BookmarkListResponse(BaseModel):
    """Schema for a page of bookmarks; stats are only included on first pages."""

    bookmarks: list[BookmarkResponse]
    stats: BookmarkStats | None = None
    pagination: BookmarkPagination


class BookmarkMutationResponse(BaseModel):
    """Rows touched by a mutation plus the stats delta the client should apply."""

    added: list[BookmarkResponse] = Field(default_factory=list)
    updated: list[BookmarkResponse] = Field(default_factory=list)
    removed: list[BookmarkResponse] = Field(default_factory=list)
    stats_delta: BookmarkStatsDelta = Field(default_factory=BookmarkStatsDelta)


class BulkRemoveRequest(BaseModel):
    """Schema for removing several bookmarks at once."""

    model_config = ConfigDict(populate_by_name=True)

    post_ids: list[str] = Field(validation_alias=AliasChoices("post_ids", "postIds"))


class BookmarkExportItem(BaseModel):
    """A single exported bookmark."""

    model_config = ConfigDict(from_attributes=True)

    post_id: str
    title: str
    slug: str
    excerpt: str
    category: str | None
    tags: list[str] | None
    read_state: str
    note: str | None
    edition_code: str | None
    created_at: datetime


class BookmarkExport(BaseModel):
    """Full export of a user's bookmarks."""

    exported_at: datetime
    total_bookmarks: int
    bookmarks: list[BookmarkExportItem]
