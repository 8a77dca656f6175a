"""
Stats delta computation for bookmark mutations.

Pure functions: given the state of a bookmark before and/or after a mutation,
compute the signed change to each aggregate bucket without touching the store.
"""
from collections.abc import Iterable
from typing import Protocol

from models.bookmark import ReadState
from schemas.bookmark import UNASSIGNED_COLLECTION_KEY, BookmarkStats, BookmarkStatsDelta


class CountableBookmark(Protocol):
    """The bookmark attributes that feed aggregate statistics."""

    read_state: str
    category: str | None
    collection_id: str | None


def collection_key(collection_id: str | None) -> str:
    """Stats key for a collection id, with the sentinel for unassigned rows."""
    return collection_id or UNASSIGNED_COLLECTION_KEY


def read_state_key(read_state: str | None) -> str:
    """Stats key for a read state; rows without one count as unread."""
    return read_state or ReadState.UNREAD.value


def _merge(counts: dict[str, int], key: str | None, amount: int) -> None:
    """Add amount to counts[key], dropping the key when it nets to zero."""
    if key is None or not amount:
        return
    value = counts.get(key, 0) + amount
    if value:
        counts[key] = value
    else:
        counts.pop(key, None)


def _accumulate(delta: BookmarkStatsDelta, row: CountableBookmark, sign: int) -> None:
    """Fold a whole row into the delta with the given sign (+1 add, -1 remove)."""
    state = read_state_key(row.read_state)
    delta.total += sign
    if state == ReadState.UNREAD:
        delta.unread += sign
    _merge(delta.categories, row.category, sign)
    _merge(delta.read_states, state, sign)
    _merge(delta.collections, collection_key(row.collection_id), sign)


def compute_stats_delta(
    previous: CountableBookmark | None = None,
    next: CountableBookmark | None = None,  # noqa: A002
) -> BookmarkStatsDelta:
    """
    Compute the stats delta for one mutation.

    - Add (``next`` only): every bucket of the new row is incremented.
    - Remove (``previous`` only): every bucket of the old row is decremented.
    - Update (both): only the watched fields that changed (category, read
      state, collection) move one unit from the old bucket to the new one;
      ``total`` is always 0. An update touching none of them yields an
      all-zero delta.
    """
    delta = BookmarkStatsDelta()

    if previous is not None and next is not None:
        if previous.category != next.category:
            _merge(delta.categories, previous.category, -1)
            _merge(delta.categories, next.category, 1)

        old_state = read_state_key(previous.read_state)
        new_state = read_state_key(next.read_state)
        if old_state != new_state:
            _merge(delta.read_states, old_state, -1)
            _merge(delta.read_states, new_state, 1)
            delta.unread += int(new_state == ReadState.UNREAD) - int(old_state == ReadState.UNREAD)

        old_collection = collection_key(previous.collection_id)
        new_collection = collection_key(next.collection_id)
        if old_collection != new_collection:
            _merge(delta.collections, old_collection, -1)
            _merge(delta.collections, new_collection, 1)
        return delta

    if previous is not None:
        _accumulate(delta, previous, -1)
    if next is not None:
        _accumulate(delta, next, 1)
    return delta


def combine_stats_deltas(deltas: Iterable[BookmarkStatsDelta]) -> BookmarkStatsDelta:
    """Element-wise sum of deltas, used to fold a bulk removal into one counter write."""
    combined = BookmarkStatsDelta()
    for delta in deltas:
        combined.total += delta.total
        combined.unread += delta.unread
        for key, value in delta.categories.items():
            _merge(combined.categories, key, value)
        for key, value in delta.read_states.items():
            _merge(combined.read_states, key, value)
        for key, value in delta.collections.items():
            _merge(combined.collections, key, value)
    return combined


def apply_stats_delta(stats: BookmarkStats, delta: BookmarkStatsDelta) -> BookmarkStats:
    """
    Return new stats with the delta added element-wise.

    Counts are floored at zero and zeroed map entries are removed, so the
    result keeps the "absent key means zero" shape.
    """
    def merged(counts: dict[str, int], changes: dict[str, int]) -> dict[str, int]:
        result = dict(counts)
        for key, change in changes.items():
            value = max(0, result.get(key, 0) + change)
            if value:
                result[key] = value
            else:
                result.pop(key, None)
        return result

    total = max(0, stats.total + delta.total)
    return BookmarkStats(
        total=total,
        unread=min(total, max(0, stats.unread + delta.unread)),
        categories=merged(stats.categories, delta.categories),
        read_states=merged(stats.read_states, delta.read_states),
        collections=merged(stats.collections, delta.collections),
    )
