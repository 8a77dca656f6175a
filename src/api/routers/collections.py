"""Bookmark collection endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_current_user
from models.user import User
from schemas.collection import CollectionResponse
from services import collection_service

router = APIRouter(prefix="/collections", tags=["collections"])


@router.get("/", response_model=list[CollectionResponse])
async def list_collections(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> list[CollectionResponse]:
    """List the current user's bookmark collections, defaults first."""
    collections = await collection_service.list_collections(db, current_user.id)
    return [CollectionResponse.model_validate(c) for c in collections]
