"""Pydantic schemas for bookmark collection endpoints."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class CollectionResponse(BaseModel):
    """Schema for a bookmark collection."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str
    description: str | None
    is_default: bool
    edition_code: str | None
    created_at: datetime
