"""Bookmark list and mutation endpoints."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import (
    get_async_session,
    get_bookmark_list_cache,
    get_current_user,
    get_invalidation_hook,
)
from models.user import User
from schemas.bookmark import (
    BookmarkCreate,
    BookmarkExport,
    BookmarkListResponse,
    BookmarkMutationResponse,
    BookmarkStats,
    BookmarkUpdate,
    BulkRemoveRequest,
    sanitize_edition_code,
)
from services import bookmark_service
from services.bookmark_cache import BookmarkListCache, InvalidationHook
from services.bookmark_counters import get_bookmark_counters
from services.bookmark_query import BookmarkListParams

router = APIRouter(prefix="/bookmarks", tags=["bookmarks"])


def get_edition_hints(
    edition_hint: list[str] = Query(
        default=[],
        description="Extra editions whose cached lists should be invalidated",
    ),
) -> list[str | None]:
    """Normalized edition hints from repeated ``edition_hint`` query params."""
    return [sanitize_edition_code(hint) for hint in edition_hint]


@router.get("/", response_model=BookmarkListResponse)
async def list_bookmarks(
    limit: int | None = Query(default=None, ge=1, description="Page size (clamped to the maximum)"),  # noqa: E501
    q: str | None = Query(default=None, description="Search title, excerpt, note, post id, edition, and collection"),  # noqa: E501
    category: str | None = Query(default=None, description="Category, or 'all'"),
    read_state: str | None = Query(default=None, description="unread (includes in progress), in_progress, read, null, or all"),  # noqa: E501
    edition_code: str | None = Query(default=None, description="Edition code, 'null' for none, or 'all'"),  # noqa: E501
    collection_id: str | None = Query(default=None, description="Collection id, 'null' for none, or 'all'"),  # noqa: E501
    post_id: str | None = Query(default=None, description="Exact post id"),
    sort_by: str | None = Query(default=None, description="Sort column (default created_at)"),
    sort_order: str | None = Query(default=None, description="asc or desc (default desc)"),
    cursor: str | None = Query(default=None, description="next_cursor from the previous page"),
    include_stats: bool = Query(default=False, description="Recompute stats even on cursor pages"),  # noqa: E501
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    cache: BookmarkListCache | None = Depends(get_bookmark_list_cache),
) -> BookmarkListResponse:
    """
    List the current user's bookmarks, one keyset page at a time.

    Stats are returned on the first page only (or when ``include_stats`` is
    set). A cursor issued for a different sort is ignored and the first page
    is returned.
    """
    params = BookmarkListParams.from_raw(
        limit=limit,
        q=q,
        category=category,
        read_state=read_state,
        edition_code=edition_code,
        collection_id=collection_id,
        post_id=post_id,
        sort_by=sort_by,
        sort_order=sort_order,
        cursor=cursor,
        include_stats=include_stats,
    )
    return await bookmark_service.list_bookmarks(db, current_user.id, params, cache=cache)


@router.get("/stats", response_model=BookmarkStats)
async def get_bookmark_stats(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkStats:
    """Get the current user's persisted bookmark counters."""
    return await get_bookmark_counters(db, current_user.id)


@router.get("/export", response_model=BookmarkExport)
async def export_bookmarks(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkExport:
    """Export all of the current user's bookmarks."""
    return await bookmark_service.export_bookmarks(db, current_user.id)


@router.post("/", response_model=BookmarkMutationResponse, status_code=201)
async def add_bookmark(
    data: BookmarkCreate,
    edition_hints: list[str | None] = Depends(get_edition_hints),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    invalidate: InvalidationHook | None = Depends(get_invalidation_hook),
) -> BookmarkMutationResponse:
    """Save a post to the current user's bookmarks."""
    return await bookmark_service.add_bookmark(
        db, current_user.id, data, invalidate=invalidate, edition_hints=edition_hints,
    )


@router.post("/bulk-remove", response_model=BookmarkMutationResponse)
async def bulk_remove_bookmarks(
    data: BulkRemoveRequest,
    edition_hints: list[str | None] = Depends(get_edition_hints),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    invalidate: InvalidationHook | None = Depends(get_invalidation_hook),
) -> BookmarkMutationResponse:
    """Remove several bookmarks at once."""
    return await bookmark_service.bulk_remove_bookmarks(
        db, current_user.id, data.post_ids, invalidate=invalidate, edition_hints=edition_hints,
    )


@router.patch("/{post_id}", response_model=BookmarkMutationResponse)
async def update_bookmark(
    post_id: str,
    data: BookmarkUpdate,
    edition_hints: list[str | None] = Depends(get_edition_hints),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    invalidate: InvalidationHook | None = Depends(get_invalidation_hook),
) -> BookmarkMutationResponse:
    """Update a bookmark. A payload that changes nothing is rejected with 400."""
    return await bookmark_service.update_bookmark(
        db, current_user.id, post_id, data, invalidate=invalidate, edition_hints=edition_hints,
    )


@router.post("/{post_id}/read", response_model=BookmarkMutationResponse)
async def mark_bookmark_read(
    post_id: str,
    edition_hints: list[str | None] = Depends(get_edition_hints),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    invalidate: InvalidationHook | None = Depends(get_invalidation_hook),
) -> BookmarkMutationResponse:
    """Mark a bookmark as read."""
    return await bookmark_service.mark_read(
        db, current_user.id, post_id, invalidate=invalidate, edition_hints=edition_hints,
    )


@router.post("/{post_id}/unread", response_model=BookmarkMutationResponse)
async def mark_bookmark_unread(
    post_id: str,
    edition_hints: list[str | None] = Depends(get_edition_hints),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    invalidate: InvalidationHook | None = Depends(get_invalidation_hook),
) -> BookmarkMutationResponse:
    """Mark a bookmark as unread."""
    return await bookmark_service.mark_unread(
        db, current_user.id, post_id, invalidate=invalidate, edition_hints=edition_hints,
    )


@router.delete("/{post_id}", response_model=BookmarkMutationResponse)
async def remove_bookmark(
    post_id: str,
    edition_hints: list[str | None] = Depends(get_edition_hints),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    invalidate: InvalidationHook | None = Depends(get_invalidation_hook),
) -> BookmarkMutationResponse:
    """Remove a bookmark."""
    return await bookmark_service.remove_bookmark(
        db, current_user.id, post_id, invalidate=invalidate, edition_hints=edition_hints,
    )
