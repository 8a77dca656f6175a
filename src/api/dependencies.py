"""FastAPI dependencies for injection."""
from fastapi import Request

from core.auth import get_current_user
from core.config import get_settings
from db.session import get_async_session
from services.bookmark_cache import BookmarkListCache, InvalidationHook


def get_bookmark_list_cache(request: Request) -> BookmarkListCache | None:
    """The list cache created at startup, or None when the app runs without one."""
    return getattr(request.app.state, "bookmark_list_cache", None)


def get_invalidation_hook(request: Request) -> InvalidationHook | None:
    """Cache invalidation hook passed to the mutation pipeline."""
    cache = get_bookmark_list_cache(request)
    if cache is None:
        return None
    return cache.invalidate


__all__ = [
    "get_async_session",
    "get_bookmark_list_cache",
    "get_current_user",
    "get_invalidation_hook",
    "get_settings",
]
