"""Service layer for bookmark collections."""
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models.bookmark_collection import BookmarkCollection
from services.exceptions import BookmarkDependencyError

logger = logging.getLogger(__name__)

GENERAL_COLLECTION_SLUG = "general"
GENERAL_COLLECTION_NAME = "Saved Articles"
GENERAL_COLLECTION_DESCRIPTION = "Articles saved outside a specific edition"


def default_collection_slug(edition_code: str | None) -> str:
    """Slug of the default collection for an edition ("general" when there is none)."""
    code = (edition_code or "").strip().lower()
    return code or GENERAL_COLLECTION_SLUG


def _new_default_collection(user_id: int, edition_code: str | None) -> BookmarkCollection:
    slug = default_collection_slug(edition_code)
    if slug == GENERAL_COLLECTION_SLUG:
        return BookmarkCollection(
            user_id=user_id,
            name=GENERAL_COLLECTION_NAME,
            slug=slug,
            description=GENERAL_COLLECTION_DESCRIPTION,
            is_default=True,
            edition_code=None,
        )
    return BookmarkCollection(
        user_id=user_id,
        name=f"{slug.upper()} Edition",
        slug=slug,
        description=f"Articles saved from the {slug.upper()} edition",
        is_default=False,
        edition_code=slug,
    )


async def _get_collection_id_by_slug(db: AsyncSession, user_id: int, slug: str) -> str | None:
    return await db.scalar(
        select(BookmarkCollection.id).where(
            BookmarkCollection.user_id == user_id,
            BookmarkCollection.slug == slug,
        ),
    )


async def _verify_collection_id(db: AsyncSession, user_id: int, collection_id: str) -> bool:
    found = await db.scalar(
        select(BookmarkCollection.id).where(
            BookmarkCollection.id == collection_id,
            BookmarkCollection.user_id == user_id,
        ),
    )
    return found is not None


async def ensure_bookmark_collection_assignment(
    db: AsyncSession,
    user_id: int,
    collection_id: str | None,
    edition_code: str | None,
) -> str:
    """
    Resolve the collection a bookmark belongs to.

    A collection id owned by the user is returned unchanged. Otherwise the
    default collection for (user, edition) is looked up, and created if this
    is the user's first bookmark for that edition.

    Concurrent first bookmarks race on the unique (user_id, slug) constraint;
    the loser's insert fails inside a savepoint and it re-selects the winner's
    row, so no duplicate default collection is ever created.

    Note: Uses flush(), not commit. Session generator handles commit at request end.

    Raises:
        BookmarkDependencyError: If the store fails while resolving.
    """
    try:
        if collection_id:
            if await _verify_collection_id(db, user_id, collection_id):
                return collection_id
            logger.info(
                "bookmark_collection_unknown: user_id=%s collection_id=%s, using default",
                user_id,
                collection_id,
            )

        slug = default_collection_slug(edition_code)
        existing_id = await _get_collection_id_by_slug(db, user_id, slug)
        if existing_id is not None:
            return existing_id

        collection = _new_default_collection(user_id, edition_code)
        try:
            async with db.begin_nested():
                db.add(collection)
                await db.flush()
        except IntegrityError:
            # Another request created it between our select and insert
            existing_id = await _get_collection_id_by_slug(db, user_id, slug)
            if existing_id is None:
                raise
            return existing_id

        logger.info("bookmark_collection_created: user_id=%s slug=%s", user_id, slug)
        return collection.id
    except SQLAlchemyError as e:
        raise BookmarkDependencyError("Failed to resolve bookmark collection") from e


async def list_collections(db: AsyncSession, user_id: int) -> list[BookmarkCollection]:
    """Get a user's collections, defaults first, then by name."""
    result = await db.execute(
        select(BookmarkCollection)
        .where(BookmarkCollection.user_id == user_id)
        .order_by(BookmarkCollection.is_default.desc(), BookmarkCollection.name.asc()),
    )
    return list(result.scalars().all())
