"""
Keyset query construction for the bookmark list.

Filters are expressed as SQLAlchemy predicates with bound parameters. The
edition, collection, and read-state filters are tri-state: unfiltered, "is
null", or "equals value". The read-state filter additionally understands the
compound "unread" alias (anything not yet finished).
"""
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import Select, and_, func, or_, select
from sqlalchemy.sql.elements import ColumnElement

from core.config import get_settings
from models.bookmark import Bookmark, ReadState
from schemas.bookmark import READ_STATES
from services.bookmark_cursor import (
    NULLABLE_SORT_COLUMNS,
    Cursor,
    SortOrder,
    decode_cursor,
    resolve_sort_column,
    resolve_sort_order,
)
from services.utils import escape_ilike

# Filter values that mean "do not filter" / "filter on IS NULL"
ALL_SENTINEL = "all"
NULL_SENTINELS = frozenset({"null", "none"})


@dataclass(frozen=True)
class Unfiltered:
    """No constraint on the column."""


@dataclass(frozen=True)
class EqualsNull:
    """Column IS NULL."""


@dataclass(frozen=True)
class EqualsValue:
    """Column = value."""

    value: str


@dataclass(frozen=True)
class NotFinished:
    """Read state is unread, in progress, or unset."""


TriStateFilter = Unfiltered | EqualsNull | EqualsValue
ReadStateFilter = TriStateFilter | NotFinished


def parse_tri_state(raw: str | None, lowercase: bool = False) -> TriStateFilter:
    """
    Parse a raw query value into a tri-state filter.

    Missing, blank, and "all" are unfiltered; "null"/"none" filter on IS NULL.
    """
    if raw is None:
        return Unfiltered()
    value = raw.strip()
    if not value or value.lower() == ALL_SENTINEL:
        return Unfiltered()
    if value.lower() in NULL_SENTINELS:
        return EqualsNull()
    return EqualsValue(value.lower() if lowercase else value)


def parse_read_state_filter(raw: str | None) -> ReadStateFilter:
    """
    Parse a raw read-state filter.

    "unread" is the compound alias covering unread, in progress, and unset rows.
    Unknown states are ignored.
    """
    parsed = parse_tri_state(raw, lowercase=True)
    if not isinstance(parsed, EqualsValue):
        return parsed
    state = parsed.value.replace("-", "_")
    if state == ReadState.UNREAD:
        return NotFinished()
    if state in READ_STATES:
        return EqualsValue(state)
    return Unfiltered()


@dataclass
class BookmarkListParams:
    """Validated inputs for one bookmark list request."""

    limit: int = 20
    search: str | None = None
    category: str | None = None
    post_id: str | None = None
    read_state: ReadStateFilter = field(default_factory=Unfiltered)
    edition: TriStateFilter = field(default_factory=Unfiltered)
    collection: TriStateFilter = field(default_factory=Unfiltered)
    sort_by: str = "created_at"
    sort_order: SortOrder = "desc"
    cursor: Cursor | None = None
    include_stats: bool = False

    @classmethod
    def from_raw(
        cls,
        limit: int | None = None,
        q: str | None = None,
        category: str | None = None,
        read_state: str | None = None,
        edition_code: str | None = None,
        collection_id: str | None = None,
        post_id: str | None = None,
        sort_by: str | None = None,
        sort_order: str | None = None,
        cursor: str | None = None,
        include_stats: bool = False,
    ) -> "BookmarkListParams":
        """
        Build params from raw request values.

        Never raises: bad sorts fall back to the default, an undecodable cursor
        is dropped, and the limit is clamped to [1, max page size].
        """
        settings = get_settings()
        if limit is None:
            limit = settings.bookmark_default_page_size
        limit = max(1, min(limit, settings.bookmark_max_page_size))

        search = q.strip() if q else None
        category = category.strip() if category else None
        if category and category.lower() == ALL_SENTINEL:
            category = None
        post_id = post_id.strip() if post_id else None

        return cls(
            limit=limit,
            search=search or None,
            category=category or None,
            post_id=post_id or None,
            read_state=parse_read_state_filter(read_state),
            edition=parse_tri_state(edition_code, lowercase=True),
            collection=parse_tri_state(collection_id),
            sort_by=resolve_sort_column(sort_by),
            sort_order=resolve_sort_order(sort_order),
            cursor=decode_cursor(cursor),
            include_stats=include_stats,
        )

    @property
    def is_first_page(self) -> bool:
        """True when no cursor applies to this request's sort."""
        return self.active_cursor is None

    @property
    def active_cursor(self) -> Cursor | None:
        """The cursor, if it was issued for the same sort as this request."""
        if self.cursor is None:
            return None
        if self.cursor.sort_by != self.sort_by or self.cursor.sort_order != self.sort_order:
            return None
        if not _cursor_value_fits(self.cursor):
            return None
        return self.cursor


def _cursor_value_fits(cursor: Cursor) -> bool:
    """Reject cursor values whose type cannot be compared to the sort column."""
    if cursor.sort_by == "created_at":
        return isinstance(cursor.value, datetime)
    return isinstance(cursor.value, str)


def sort_expression(sort_by: str) -> ColumnElement:
    """SQL expression a whitelisted sort column is ordered by."""
    column = getattr(Bookmark, resolve_sort_column(sort_by))
    if sort_by in NULLABLE_SORT_COLUMNS:
        return func.coalesce(column, "")
    return column


def _tri_state_clause(column: ColumnElement, value: TriStateFilter) -> ColumnElement | None:
    match value:
        case EqualsNull():
            return column.is_(None)
        case EqualsValue(value=v):
            return column == v
        case _:
            return None


def _read_state_clause(value: ReadStateFilter) -> ColumnElement | None:
    if isinstance(value, NotFinished):
        return or_(
            Bookmark.read_state.in_([ReadState.UNREAD.value, ReadState.IN_PROGRESS.value]),
            Bookmark.read_state.is_(None),
        )
    return _tri_state_clause(Bookmark.read_state, value)


def _search_clause(search: str) -> ColumnElement:
    pattern = f"%{escape_ilike(search)}%"
    return or_(
        Bookmark.title.ilike(pattern, escape="\\"),
        Bookmark.excerpt.ilike(pattern, escape="\\"),
        Bookmark.note.ilike(pattern, escape="\\"),
        Bookmark.post_id.ilike(pattern, escape="\\"),
        Bookmark.edition_code.ilike(pattern, escape="\\"),
        Bookmark.collection_id.ilike(pattern, escape="\\"),
    )


def keyset_clause(cursor: Cursor) -> ColumnElement:
    """
    Rows strictly after the cursor position.

    Ascending: ``col > v OR (col = v AND id > last_id)``; descending flips both
    comparators.
    """
    column = sort_expression(cursor.sort_by)
    if cursor.sort_order == "asc":
        return or_(
            column > cursor.value,
            and_(column == cursor.value, Bookmark.id > cursor.id),
        )
    return or_(
        column < cursor.value,
        and_(column == cursor.value, Bookmark.id < cursor.id),
    )


def build_filter_clauses(user_id: int, params: BookmarkListParams) -> list[ColumnElement]:
    """All WHERE clauses except the keyset predicate, AND-ed by the caller."""
    clauses: list[ColumnElement] = [Bookmark.user_id == user_id]
    if params.search:
        clauses.append(_search_clause(params.search))
    if params.category:
        clauses.append(Bookmark.category == params.category)
    if params.post_id:
        clauses.append(Bookmark.post_id == params.post_id)
    for clause in (
        _tri_state_clause(Bookmark.edition_code, params.edition),
        _tri_state_clause(Bookmark.collection_id, params.collection),
        _read_state_clause(params.read_state),
    ):
        if clause is not None:
            clauses.append(clause)
    return clauses


def build_bookmark_query(user_id: int, params: BookmarkListParams) -> Select:
    """
    Build the page query: filters, keyset predicate, ordering, LIMIT limit + 1.

    The extra row lets the caller tell whether another page exists without a
    COUNT query.
    """
    query = select(Bookmark).where(*build_filter_clauses(user_id, params))

    cursor = params.active_cursor
    if cursor is not None:
        query = query.where(keyset_clause(cursor))

    column = sort_expression(params.sort_by)
    if params.sort_order == "asc":
        query = query.order_by(column.asc(), Bookmark.id.asc())
    else:
        query = query.order_by(column.desc(), Bookmark.id.desc())

    return query.limit(params.limit + 1)
