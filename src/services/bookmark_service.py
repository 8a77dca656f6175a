"""
Service layer for the bookmark list: paginated reads and the mutation pipeline.

Every mutation follows the same steps: validate, mutate the row, compute the
stats delta from the before/after state, queue one cache invalidation on the
session, then apply the delta to the persisted counters. The queued
invalidation fires only after the transaction commits (see
db.session.get_async_session). The row change and the counter write are
separate steps: if the counter write fails after the row was written, the row
change stands, is committed, and BookmarkPartialMutationError is raised.
"""
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from models.base import utc_now
from models.bookmark import Bookmark, ReadState
from schemas.bookmark import (
    BookmarkCreate,
    BookmarkExport,
    BookmarkExportItem,
    BookmarkListResponse,
    BookmarkMutationResponse,
    BookmarkResponse,
    BookmarkStatsDelta,
    BookmarkUpdate,
)
from services.bookmark_cache import (
    BookmarkCacheInvalidation,
    BookmarkListCache,
    InvalidationHook,
    defer_invalidation,
)
from services.bookmark_counters import apply_bookmark_counter_delta
from services.bookmark_cursor import derive_pagination
from services.bookmark_delta import combine_stats_deltas, compute_stats_delta
from services.bookmark_query import BookmarkListParams, build_bookmark_query
from services.bookmark_stats import default_bookmark_stats, fetch_bookmark_stats
from services.collection_service import ensure_bookmark_collection_assignment
from services.exceptions import (
    BookmarkConflictError,
    BookmarkDependencyError,
    BookmarkNotFoundError,
    BookmarkPartialMutationError,
    BookmarkValidationError,
)

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled Post"

# Replacement values when an update clears a non-nullable field
_CLEARED_FIELD_DEFAULTS: dict[str, Any] = {
    "title": DEFAULT_TITLE,
    "slug": "",
    "excerpt": "",
    "read_state": ReadState.UNREAD.value,
}


@dataclass(frozen=True)
class BookmarkSnapshot:
    """The counted attributes of a bookmark, captured before it changes."""

    read_state: str
    category: str | None
    collection_id: str | None

    @classmethod
    def of(cls, bookmark: Bookmark) -> "BookmarkSnapshot":
        """Capture a bookmark's counted attributes."""
        return cls(
            read_state=bookmark.read_state,
            category=bookmark.category,
            collection_id=bookmark.collection_id,
        )


async def get_bookmark(db: AsyncSession, user_id: int, post_id: str) -> Bookmark | None:
    """Get a bookmark by post ID, scoped to user."""
    result = await db.execute(
        select(Bookmark).where(
            Bookmark.user_id == user_id,
            Bookmark.post_id == post_id,
        ),
    )
    return result.scalar_one_or_none()


async def _apply_counters(
    db: AsyncSession,
    user_id: int,
    delta: BookmarkStatsDelta,
    action: str,
) -> None:
    """Apply a delta after a row mutation; a failure here is a partial success."""
    if delta.is_zero:
        return
    try:
        await apply_bookmark_counter_delta(db, user_id, delta)
    except BookmarkDependencyError as e:
        logger.error(
            "bookmark_counters_drifted: user_id=%s action=%s delta=%s",
            user_id,
            action,
            delta.model_dump(),
        )
        raise BookmarkPartialMutationError(
            f"Bookmark {action}, but bookmark statistics could not be updated",
            user_id=user_id,
        ) from e


def _queue_invalidation(
    db: AsyncSession,
    invalidate: InvalidationHook | None,
    user_id: int,
    editions: Iterable[str | None],
    collections: Iterable[str | None],
) -> None:
    # Fires after commit, including the commit that keeps a partial mutation
    defer_invalidation(
        db,
        invalidate,
        BookmarkCacheInvalidation.build(user_id, editions=editions, collections=collections),
    )


async def list_bookmarks(
    db: AsyncSession,
    user_id: int,
    params: BookmarkListParams,
    cache: BookmarkListCache | None = None,
) -> BookmarkListResponse:
    """
    Get one page of a user's bookmarks.

    Stats are included on first pages (and whenever ``include_stats`` is set);
    an empty first page gets all-zero stats without a stats query.

    Raises:
        BookmarkDependencyError: If the page query fails.
    """
    version = 0
    if cache is not None:
        version = await cache.version(user_id)
        cached = await cache.get(user_id, params, version)
        if cached is not None:
            return cached

    try:
        result = await db.execute(build_bookmark_query(user_id, params))
        rows = list(result.scalars().all())
    except SQLAlchemyError as e:
        raise BookmarkDependencyError("Failed to load bookmarks") from e

    items, pagination = derive_pagination(rows, params.limit, params.sort_by, params.sort_order)

    stats = None
    if params.include_stats:
        stats = await fetch_bookmark_stats(db, user_id)
    elif params.is_first_page:
        stats = await fetch_bookmark_stats(db, user_id) if rows else default_bookmark_stats()

    response = BookmarkListResponse(
        bookmarks=[BookmarkResponse.model_validate(item) for item in items],
        stats=stats,
        pagination=pagination,
    )
    if cache is not None:
        await cache.set(user_id, params, version, response)
    return response


async def add_bookmark(
    db: AsyncSession,
    user_id: int,
    data: BookmarkCreate,
    invalidate: InvalidationHook | None = None,
    edition_hints: Iterable[str | None] = (),
) -> BookmarkMutationResponse:
    """
    Save a post to the user's bookmarks.

    Adding a post that is already saved is rejected rather than upserted.

    Note: Does not commit. Caller (session generator) handles commit at request end.

    Raises:
        BookmarkValidationError: If post_id is blank.
        BookmarkConflictError: If the post is already bookmarked.
        BookmarkDependencyError: If the store fails.
        BookmarkPartialMutationError: If the bookmark was saved but counters were not.
    """
    post_id = data.post_id.strip()
    if not post_id:
        raise BookmarkValidationError("Post ID is required")

    if await get_bookmark(db, user_id, post_id) is not None:
        raise BookmarkConflictError(post_id)

    collection_id = await ensure_bookmark_collection_assignment(
        db, user_id, data.collection_id, data.edition_code,
    )
    now = utc_now()
    bookmark = Bookmark(
        user_id=user_id,
        post_id=post_id,
        edition_code=data.edition_code,
        collection_id=collection_id,
        title=data.title or DEFAULT_TITLE,
        slug=data.slug or "",
        excerpt=data.excerpt or "",
        featured_image=data.featured_image,
        category=data.category,
        tags=data.tags,
        read_state=data.read_state or ReadState.UNREAD.value,
        note=data.note,
        created_at=now,
        updated_at=now,
    )
    try:
        async with db.begin_nested():
            db.add(bookmark)
            await db.flush()
    except IntegrityError as e:
        # Lost a race against a concurrent add of the same post
        if await get_bookmark(db, user_id, post_id) is not None:
            raise BookmarkConflictError(post_id) from e
        raise BookmarkDependencyError("Failed to save bookmark") from e
    except SQLAlchemyError as e:
        raise BookmarkDependencyError("Failed to save bookmark") from e

    added = BookmarkResponse.model_validate(bookmark)
    delta = compute_stats_delta(next=bookmark)
    _queue_invalidation(
        db,
        invalidate,
        user_id,
        editions=[bookmark.edition_code, *edition_hints],
        collections=[bookmark.collection_id],
    )
    await _apply_counters(db, user_id, delta, "saved")
    logger.info("bookmark_added: user_id=%s post_id=%s", user_id, post_id)
    return BookmarkMutationResponse(added=[added], stats_delta=delta)


def _diff_updates(bookmark: Bookmark, updates: dict[str, Any]) -> dict[str, Any]:
    """Keep only the updates that would change the stored row."""
    changes = {}
    for field, value in updates.items():
        if value is None:
            value = _CLEARED_FIELD_DEFAULTS.get(field)
        if getattr(bookmark, field) != value:
            changes[field] = value
    return changes


async def update_bookmark(
    db: AsyncSession,
    user_id: int,
    post_id: str,
    data: BookmarkUpdate,
    invalidate: InvalidationHook | None = None,
    edition_hints: Iterable[str | None] = (),
) -> BookmarkMutationResponse:
    """
    Update a saved bookmark.

    Only fields present in the payload are considered, and a payload that
    would not change anything is rejected.

    Note: Does not commit. Caller (session generator) handles commit at request end.

    Raises:
        BookmarkValidationError: If post_id is blank or nothing would change.
        BookmarkNotFoundError: If the bookmark does not exist.
        BookmarkDependencyError: If the store fails.
        BookmarkPartialMutationError: If the bookmark was updated but counters were not.
    """
    post_id = post_id.strip()
    if not post_id:
        raise BookmarkValidationError("Post ID is required")

    bookmark = await get_bookmark(db, user_id, post_id)
    if bookmark is None:
        raise BookmarkNotFoundError(post_id)

    changes = _diff_updates(bookmark, data.model_dump(exclude_unset=True))
    if "collection_id" in changes:
        resolved = await ensure_bookmark_collection_assignment(
            db,
            user_id,
            changes["collection_id"],
            changes.get("edition_code", bookmark.edition_code),
        )
        if resolved == bookmark.collection_id:
            del changes["collection_id"]
        else:
            changes["collection_id"] = resolved

    if not changes:
        raise BookmarkValidationError("No bookmark updates provided")

    previous = BookmarkSnapshot.of(bookmark)
    previous_edition = bookmark.edition_code
    for field, value in changes.items():
        setattr(bookmark, field, value)
    bookmark.updated_at = utc_now()
    try:
        await db.flush()
    except SQLAlchemyError as e:
        raise BookmarkDependencyError("Failed to update bookmark") from e

    updated = BookmarkResponse.model_validate(bookmark)
    delta = compute_stats_delta(previous=previous, next=bookmark)
    _queue_invalidation(
        db,
        invalidate,
        user_id,
        editions=[previous_edition, bookmark.edition_code, *edition_hints],
        collections=[previous.collection_id, bookmark.collection_id],
    )
    await _apply_counters(db, user_id, delta, "updated")
    logger.info(
        "bookmark_updated: user_id=%s post_id=%s fields=%s",
        user_id,
        post_id,
        sorted(changes),
    )
    return BookmarkMutationResponse(updated=[updated], stats_delta=delta)


async def mark_read(
    db: AsyncSession,
    user_id: int,
    post_id: str,
    invalidate: InvalidationHook | None = None,
    edition_hints: Iterable[str | None] = (),
) -> BookmarkMutationResponse:
    """Mark a bookmark as read."""
    return await update_bookmark(
        db, user_id, post_id, BookmarkUpdate(read_state=ReadState.READ.value),
        invalidate=invalidate, edition_hints=edition_hints,
    )


async def mark_unread(
    db: AsyncSession,
    user_id: int,
    post_id: str,
    invalidate: InvalidationHook | None = None,
    edition_hints: Iterable[str | None] = (),
) -> BookmarkMutationResponse:
    """Mark a bookmark as unread."""
    return await update_bookmark(
        db, user_id, post_id, BookmarkUpdate(read_state=ReadState.UNREAD.value),
        invalidate=invalidate, edition_hints=edition_hints,
    )


async def _remove(
    db: AsyncSession,
    user_id: int,
    post_ids: list[str],
    invalidate: InvalidationHook | None,
    edition_hints: Iterable[str | None],
) -> BookmarkMutationResponse:
    """Delete rows by post ID and fold their deltas into one counter write."""
    if len(post_ids) == 1:
        match = Bookmark.post_id == post_ids[0]
    else:
        match = Bookmark.post_id.in_(post_ids)

    try:
        result = await db.execute(select(Bookmark).where(Bookmark.user_id == user_id, match))
        rows = list(result.scalars().all())
        if not rows:
            return BookmarkMutationResponse()
        snapshots = {row.id: BookmarkResponse.model_validate(row) for row in rows}
        # Only rows this statement actually deleted are counted
        deleted = await db.execute(
            delete(Bookmark)
            .where(Bookmark.user_id == user_id, Bookmark.id.in_([row.id for row in rows]))
            .returning(Bookmark.id),
        )
        deleted_ids = set(deleted.scalars().all())
    except SQLAlchemyError as e:
        raise BookmarkDependencyError("Failed to remove bookmarks") from e

    removed = [snapshot for row_id, snapshot in snapshots.items() if row_id in deleted_ids]
    delta = combine_stats_deltas(compute_stats_delta(previous=row) for row in removed)
    _queue_invalidation(
        db,
        invalidate,
        user_id,
        editions=[*(row.edition_code for row in removed), *edition_hints],
        collections=[row.collection_id for row in removed],
    )
    await _apply_counters(db, user_id, delta, "removed")
    logger.info("bookmarks_removed: user_id=%s count=%s", user_id, len(removed))
    return BookmarkMutationResponse(removed=removed, stats_delta=delta)


async def remove_bookmark(
    db: AsyncSession,
    user_id: int,
    post_id: str,
    invalidate: InvalidationHook | None = None,
    edition_hints: Iterable[str | None] = (),
) -> BookmarkMutationResponse:
    """
    Remove one bookmark.

    Raises:
        BookmarkValidationError: If post_id is blank.
        BookmarkNotFoundError: If the bookmark does not exist.
        BookmarkDependencyError: If the store fails.
        BookmarkPartialMutationError: If the bookmark was removed but counters were not.
    """
    post_id = post_id.strip()
    if not post_id:
        raise BookmarkValidationError("Post ID is required")
    response = await _remove(db, user_id, [post_id], invalidate, edition_hints)
    if not response.removed:
        raise BookmarkNotFoundError(post_id)
    return response


async def bulk_remove_bookmarks(
    db: AsyncSession,
    user_id: int,
    post_ids: Iterable[str],
    invalidate: InvalidationHook | None = None,
    edition_hints: Iterable[str | None] = (),
) -> BookmarkMutationResponse:
    """
    Remove several bookmarks in one statement.

    IDs are trimmed, blanks dropped and duplicates collapsed. IDs that are not
    bookmarked are ignored; only removed rows are reported.

    Raises:
        BookmarkValidationError: If no IDs remain, or too many are given.
        BookmarkDependencyError: If the store fails.
        BookmarkPartialMutationError: If rows were removed but counters were not.
    """
    cleaned = list(dict.fromkeys(p.strip() for p in post_ids if p and p.strip()))
    if not cleaned:
        raise BookmarkValidationError("No bookmark IDs provided")
    max_bulk = get_settings().bookmark_max_bulk_remove
    if len(cleaned) > max_bulk:
        raise BookmarkValidationError(f"Cannot remove more than {max_bulk} bookmarks at once")
    return await _remove(db, user_id, cleaned, invalidate, edition_hints)


async def export_bookmarks(db: AsyncSession, user_id: int) -> BookmarkExport:
    """Export all of a user's bookmarks, newest first."""
    result = await db.execute(
        select(Bookmark)
        .where(Bookmark.user_id == user_id)
        .order_by(Bookmark.created_at.desc(), Bookmark.id.desc()),
    )
    rows = list(result.scalars().all())
    return BookmarkExport(
        exported_at=utc_now(),
        total_bookmarks=len(rows),
        bookmarks=[BookmarkExportItem.model_validate(row) for row in rows],
    )
