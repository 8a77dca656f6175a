"""
Opaque keyset-pagination cursors for the bookmark list.

A cursor captures the sort of the page that produced it plus the sort value
and id of that page's last row. On the wire it is versioned JSON encoded as
URL-safe base64. Decoding is fail-open: anything malformed, stale, or from an
unknown version decodes to None and the caller serves a first page instead.
"""
import base64
import binascii
import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, TypeVar

from schemas.bookmark import BookmarkPagination

logger = logging.getLogger(__name__)

CURSOR_VERSION = 1

SortOrder = Literal["asc", "desc"]
SortValue = str | int | float | datetime | None

# Whitelist of sortable bookmark columns
SORTABLE_COLUMNS: tuple[str, ...] = (
    "created_at",
    "title",
    "read_state",
    "post_id",
    "edition_code",
    "collection_id",
)
DEFAULT_SORT_COLUMN = "created_at"

# Nullable sort columns are ordered as COALESCE(column, '')
NULLABLE_SORT_COLUMNS: frozenset[str] = frozenset({"edition_code", "collection_id"})

_MISSING = object()

T = TypeVar("T")


@dataclass(frozen=True)
class Cursor:
    """Position after the last row of a page, for one particular sort."""

    sort_by: str
    sort_order: SortOrder
    value: SortValue
    id: int


def resolve_sort_column(value: str | None) -> str:
    """Return value if it is a whitelisted sort column, else the default."""
    if value in SORTABLE_COLUMNS:
        return value
    return DEFAULT_SORT_COLUMN


def resolve_sort_order(value: str | None) -> SortOrder:
    """Anything other than "asc" sorts descending."""
    return "asc" if value == "asc" else "desc"


def encode_cursor(cursor: Cursor) -> str | None:
    """
    Serialize a cursor to an opaque token.

    Returns None instead of raising when the value cannot be serialized.
    """
    payload: dict[str, Any] = {
        "v": CURSOR_VERSION,
        "sort_by": cursor.sort_by,
        "sort_order": cursor.sort_order,
        "value": cursor.value,
        "id": cursor.id,
    }
    if isinstance(cursor.value, datetime):
        payload["value"] = cursor.value.isoformat()
        payload["value_type"] = "datetime"
    try:
        raw = json.dumps(payload, separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError) as e:
        logger.debug("bookmark_cursor_encode_failed: %s", e)
        return None
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii")


def decode_cursor(token: str | None) -> Cursor | None:
    """Parse a cursor token, returning None for anything that is not a valid cursor."""
    if not token or not isinstance(token, str):
        return None
    try:
        raw = base64.urlsafe_b64decode(token.encode("ascii"))
        payload = json.loads(raw)
    except (binascii.Error, UnicodeError, ValueError):
        return None

    if not isinstance(payload, dict) or payload.get("v") != CURSOR_VERSION:
        return None

    sort_by = payload.get("sort_by")
    sort_order = payload.get("sort_order")
    row_id = payload.get("id")
    value = payload.get("value")
    if sort_by not in SORTABLE_COLUMNS or sort_order not in ("asc", "desc"):
        return None
    if not isinstance(row_id, int) or isinstance(row_id, bool):
        return None

    if payload.get("value_type") == "datetime":
        if not isinstance(value, str):
            return None
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return None
    elif value is not None and (
        isinstance(value, bool) or not isinstance(value, str | int | float)
    ):
        return None

    return Cursor(sort_by=sort_by, sort_order=sort_order, value=value, id=row_id)


def _sort_value(row: object, sort_by: str) -> object:
    """Read the sort value of a row the way the query orders it."""
    value = getattr(row, sort_by, _MISSING)
    if value is None and sort_by in NULLABLE_SORT_COLUMNS:
        return ""
    return value


def derive_pagination(
    rows: Sequence[T],
    limit: int,
    sort_by: str,
    sort_order: SortOrder,
) -> tuple[list[T], BookmarkPagination]:
    """
    Turn a ``limit + 1`` fetch into a page plus pagination metadata.

    ``has_more`` comes from the raw row count. The next cursor points after the
    last retained row; it is None when there are no more rows, or when that
    row lacks the sort value or id.
    """
    has_more = len(rows) > limit
    items = list(rows[:limit])
    next_cursor = None

    if has_more and items:
        last = items[-1]
        value = _sort_value(last, sort_by)
        row_id = getattr(last, "id", None)
        if value is not _MISSING and value is not None and isinstance(row_id, int):
            next_cursor = encode_cursor(
                Cursor(sort_by=sort_by, sort_order=sort_order, value=value, id=row_id),
            )

    return items, BookmarkPagination(limit=limit, has_more=has_more, next_cursor=next_cursor)
