"""
Client-side bookmark list state and the reducer that keeps it current.

List responses replace the state (or extend it, for cursor pages). Mutation
responses are merged in place: rows are removed, replaced, or prepended by
post_id, and the reported stats delta is added to the cached stats. Stats are
only ever replaced wholesale by a list response, never by a mutation.
"""
from dataclasses import dataclass, field, replace

from schemas.bookmark import (
    BookmarkListResponse,
    BookmarkMutationResponse,
    BookmarkPagination,
    BookmarkResponse,
    BookmarkStats,
)
from services.bookmark_delta import apply_stats_delta


@dataclass(frozen=True)
class BookmarksState:
    """What a client holds for one user's bookmark list."""

    bookmarks: tuple[BookmarkResponse, ...] = ()
    stats: BookmarkStats | None = None
    pagination: BookmarkPagination | None = None
    post_ids: frozenset[str] = field(default_factory=frozenset)

    @property
    def has_more(self) -> bool:
        """True when another page can be loaded."""
        return self.pagination is not None and self.pagination.has_more

    @property
    def next_cursor(self) -> str | None:
        """Cursor for the next page, if any."""
        return self.pagination.next_cursor if self.pagination else None


def _with_rows(state: BookmarksState, rows: list[BookmarkResponse]) -> BookmarksState:
    return replace(state, bookmarks=tuple(rows), post_ids=frozenset(r.post_id for r in rows))


def apply_list_payload(
    state: BookmarksState,
    payload: BookmarkListResponse,
    append: bool = False,
) -> BookmarksState:
    """
    Merge a list response into the state.

    A first page (``append=False``) replaces the list. A cursor page
    (``append=True``) extends it, skipping post_ids already present. Stats are
    replaced only when the response carries them.
    """
    if append:
        rows = list(state.bookmarks)
        seen = set(state.post_ids)
        for row in payload.bookmarks:
            if row.post_id not in seen:
                rows.append(row)
                seen.add(row.post_id)
    else:
        rows = list({row.post_id: row for row in payload.bookmarks}.values())

    state = _with_rows(state, rows)
    return replace(
        state,
        stats=payload.stats if payload.stats is not None else state.stats,
        pagination=payload.pagination,
    )


def apply_mutation(state: BookmarksState, payload: BookmarkMutationResponse) -> BookmarksState:
    """
    Merge a mutation response into the state.

    Removed rows are dropped, updated rows are replaced in place, and added
    rows are prepended (or replaced in place if already listed). The stats
    delta is added element-wise; if no stats have been loaded yet they stay
    unloaded.
    """
    removed = {row.post_id for row in payload.removed}
    changed = {row.post_id: row for row in (*payload.updated, *payload.added)}

    rows = [
        changed.pop(row.post_id, row)
        for row in state.bookmarks
        if row.post_id not in removed
    ]
    # Updates for rows outside the loaded window are not inserted
    new_rows = [changed.pop(row.post_id) for row in payload.added if row.post_id in changed]
    rows = new_rows + rows

    stats = state.stats
    if stats is not None:
        stats = apply_stats_delta(stats, payload.stats_delta)
    return replace(_with_rows(state, rows), stats=stats)
