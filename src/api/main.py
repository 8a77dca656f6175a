"""FastAPI application entry point."""
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routers import bookmarks, collections, health
from core.config import get_settings
from core.redis import RedisClient, set_redis_client
from services.bookmark_cache import BookmarkListCache
from services.exceptions import BookmarkPartialMutationError, BookmarkServiceError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifespan - startup and shutdown."""
    app_settings = get_settings()

    # Startup: Connect to Redis
    redis_client = RedisClient(
        url=app_settings.redis_url,
        enabled=app_settings.redis_enabled,
        pool_size=app_settings.redis_pool_size,
    )
    await redis_client.connect()
    set_redis_client(redis_client)

    # Startup: Bookmark list cache, handed to routes by reference via app.state
    app.state.bookmark_list_cache = BookmarkListCache(
        redis_client,
        ttl=app_settings.bookmark_list_cache_ttl,
    )

    yield

    # Shutdown: Drop the cache and close Redis
    app.state.bookmark_list_cache = None
    await redis_client.close()
    set_redis_client(None)


app_settings = get_settings()

app = FastAPI(
    title="Bookmarks API",
    description="Saved posts with keyset pagination and live aggregate statistics.",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(BookmarkServiceError)
async def bookmark_service_exception_handler(
    _request: Request, exc: BookmarkServiceError,
) -> JSONResponse:
    """Render service errors as ``{"detail": message}`` with their status code."""
    if isinstance(exc, BookmarkPartialMutationError):
        logger.error(
            "bookmark_partial_mutation: user_id=%s cause=%r",
            exc.user_id,
            exc.__cause__,
        )
    elif exc.status_code >= 500:
        logger.error("bookmark_service_error: %s cause=%r", exc.message, exc.__cause__)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(bookmarks.router)
app.include_router(collections.router)
