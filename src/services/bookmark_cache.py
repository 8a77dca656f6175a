"""
Bookmark list caching and mutation-driven invalidation.

Cold first pages (no applicable cursor, no search) are cached in Redis per user. Entries
are namespaced by a per-user version number: invalidating a user bumps the
version, which orphans every cached page at once. Orphaned entries expire via
their TTL.
"""
import hashlib
import json
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from pydantic import ValidationError

from schemas.bookmark import UNASSIGNED_COLLECTION_KEY, BookmarkListResponse
from services.bookmark_query import BookmarkListParams

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from core.redis import RedisClient

logger = logging.getLogger(__name__)

# Bump when BookmarkListResponse changes shape so stale entries are never read
CACHE_SCHEMA_VERSION = 1


@dataclass(frozen=True)
class BookmarkCacheInvalidation:
    """
    Invalidation signal fired once per bookmark mutation.

    ``editions`` and ``collections`` name the slices of the user's list the
    mutation touched; a None edition means "no edition".
    """

    user_id: int
    editions: tuple[str | None, ...] = field(default_factory=tuple)
    collections: tuple[str | None, ...] = field(default_factory=tuple)

    @classmethod
    def build(
        cls,
        user_id: int,
        editions: Iterable[str | None] = (),
        collections: Iterable[str | None] = (),
    ) -> "BookmarkCacheInvalidation":
        """Build a signal with de-duplicated scopes, preserving first-seen order."""
        return cls(
            user_id=user_id,
            editions=tuple(dict.fromkeys(editions)),
            collections=tuple(dict.fromkeys(collections)),
        )

    def tags(self) -> list[str]:
        """Cache tags covered by this signal."""
        base = f"bookmarks:{self.user_id}"
        tags = [base]
        tags.extend(f"{base}:edition:{edition or 'none'}" for edition in self.editions)
        tags.extend(
            f"{base}:collection:{collection or UNASSIGNED_COLLECTION_KEY}"
            for collection in self.collections
        )
        return tags


InvalidationHook = Callable[[BookmarkCacheInvalidation], Awaitable[None]]


class BookmarkListCache:
    """Redis cache of cold first pages of each user's bookmark list."""

    def __init__(self, redis_client: "RedisClient | None", ttl: int = 60) -> None:
        self._redis = redis_client
        self._ttl = ttl

    @property
    def enabled(self) -> bool:
        """True when entries can actually be stored."""
        return self._redis is not None and self._redis.is_connected and self._ttl > 0

    @staticmethod
    def is_cacheable(params: BookmarkListParams) -> bool:
        """
        Only cold first pages are cached: no applicable cursor and no search.

        A cursor that is undecodable or was issued for another sort is ignored
        when listing, so such a request is a first page and is cacheable.
        """
        return params.is_first_page and not params.search

    def _version_key(self, user_id: int) -> str:
        return f"bookmarks:v{CACHE_SCHEMA_VERSION}:{user_id}:version"

    def _page_key(self, user_id: int, version: int, params: BookmarkListParams) -> str:
        signature = json.dumps(
            [
                params.limit,
                params.category,
                params.post_id,
                repr(params.read_state),
                repr(params.edition),
                repr(params.collection),
                params.sort_by,
                params.sort_order,
                params.include_stats,
            ],
        )
        digest = hashlib.sha256(signature.encode("utf-8")).hexdigest()[:32]
        return f"bookmarks:v{CACHE_SCHEMA_VERSION}:{user_id}:{version}:list:{digest}"

    async def version(self, user_id: int) -> int:
        """Current cache generation for a user (0 if never invalidated)."""
        if not self.enabled:
            return 0
        raw = await self._redis.get(self._version_key(user_id))
        try:
            return int(raw) if raw is not None else 0
        except ValueError:
            return 0

    async def get(
        self,
        user_id: int,
        params: BookmarkListParams,
        version: int,
    ) -> BookmarkListResponse | None:
        """Return the cached page, or None on miss, on disabled cache, or on a bad entry."""
        if not self.enabled or not self.is_cacheable(params):
            return None
        data = await self._redis.get(self._page_key(user_id, version, params))
        if data is None:
            logger.debug("bookmark_list_cache_miss user_id=%s", user_id)
            return None
        try:
            response = BookmarkListResponse.model_validate_json(data)
        except ValidationError:
            logger.warning("bookmark_list_cache_corrupt user_id=%s", user_id)
            return None
        logger.debug("bookmark_list_cache_hit user_id=%s", user_id)
        return response

    async def set(
        self,
        user_id: int,
        params: BookmarkListParams,
        version: int,
        response: BookmarkListResponse,
    ) -> None:
        """
        Cache a page under the version read before the page was queried.

        A mutation landing in between bumps the version, so the stale page is
        written under a key nobody reads.
        """
        if not self.enabled or not self.is_cacheable(params):
            return
        await self._redis.setex(
            self._page_key(user_id, version, params),
            self._ttl,
            response.model_dump_json(),
        )

    async def invalidate(self, event: BookmarkCacheInvalidation) -> None:
        """Drop every cached page for the event's user."""
        if not self.enabled:
            return
        await self._redis.incr(self._version_key(event.user_id))
        logger.debug(
            "bookmark_list_cache_invalidate user_id=%s tags=%s",
            event.user_id,
            event.tags(),
        )


# Session.info key holding invalidations that wait for the transaction to commit
_PENDING_INVALIDATIONS = "bookmark_cache_pending_invalidations"


def defer_invalidation(
    db: "AsyncSession",
    hook: InvalidationHook | None,
    event: BookmarkCacheInvalidation,
) -> None:
    """
    Queue an invalidation on the session instead of firing it now.

    A page read before the mutation commits must not land under the bumped
    version, so the session owner fires the queue only after commit and
    discards it on rollback.
    """
    if hook is None:
        return
    db.info.setdefault(_PENDING_INVALIDATIONS, []).append((hook, event))


def discard_invalidations(db: "AsyncSession") -> None:
    """Drop queued invalidations of a transaction that was rolled back."""
    db.info.pop(_PENDING_INVALIDATIONS, None)


async def fire_invalidations(db: "AsyncSession") -> None:
    """Fire queued invalidations. Call only after the session has committed."""
    for hook, event in db.info.pop(_PENDING_INVALIDATIONS, []):
        await hook(event)
