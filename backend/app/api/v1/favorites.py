"""Favorite API endpoints."""

from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.cache import CacheClient
from app.dependencies.auth import get_cache, require_user
from app.models.base import get_db
from app.models.user import User
from app.schemas.common import MessageResponse
from app.schemas.favorite import (
    FavoriteCreate,
    FavoriteDetail,
    FavoriteInsights,
    FavoriteList,
    FavoritePriority,
    FavoriteStatus,
    FavoriteType,
    FavoriteUpdate,
    FavoriteWithProperty,
    TagRequest,
)
from app.services import favorite_service

router = APIRouter(prefix="/favorites", tags=["favorites"])


@router.get("", response_model=FavoriteList)
async def list_favorites(
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: CacheClient = Depends(get_cache),
    page: int = Query(1),
    limit: int | None = Query(None),
    sort_by: str | None = Query(None),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    favorite_type: FavoriteType | None = Query(None),
    priority: FavoritePriority | None = Query(None),
    tags: str | None = Query(None, description="Comma-separated; matches any"),
    has_reminder: bool = Query(False),
):
    filters = {
        "favorite_type": favorite_type,
        "priority": priority,
        "tags": tags,
        "has_reminder": has_reminder,
    }
    return await favorite_service.list_favorites(db, cache, user, filters, page, limit, sort_by, sort_order)


@router.get("/insights", response_model=FavoriteInsights)
async def favorite_insights(
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: CacheClient = Depends(get_cache),
):
    return await favorite_service.favorite_insights(db, cache, user)


@router.get("/status/{property_id}", response_model=FavoriteStatus)
async def favorite_status(
    property_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    return await favorite_service.favorite_status(db, user, property_id)


@router.post("/{property_id}", response_model=FavoriteWithProperty, status_code=201)
async def add_favorite(
    property_id: str,
    payload: FavoriteCreate | None = None,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: CacheClient = Depends(get_cache),
):
    """Favorite an active property, snapshotting its current price."""
    data = (payload or FavoriteCreate()).model_dump()
    favorite = await favorite_service.add_favorite(db, cache, user, property_id, data)
    return favorite_service.serialize(favorite)


@router.delete("/{property_id}", response_model=MessageResponse)
async def remove_favorite(
    property_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: CacheClient = Depends(get_cache),
):
    await favorite_service.remove_favorite(db, cache, user, property_id)
    return MessageResponse(message="Property removed from favorites")


@router.get("/{favorite_id}", response_model=FavoriteDetail)
async def get_favorite(
    favorite_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    return await favorite_service.get_favorite(db, user, favorite_id)


@router.patch("/{favorite_id}", response_model=FavoriteWithProperty)
async def update_favorite(
    favorite_id: str,
    payload: FavoriteUpdate,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: CacheClient = Depends(get_cache),
):
    """Update allowlisted favorite fields; anything else rejects the whole patch."""
    favorite = await favorite_service.update_favorite(
        db, cache, user, favorite_id, payload.model_dump(exclude_unset=True)
    )
    return favorite_service.serialize(favorite)


@router.post("/{favorite_id}/tags", response_model=FavoriteWithProperty)
async def add_tag(
    favorite_id: str,
    payload: TagRequest,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: CacheClient = Depends(get_cache),
):
    favorite = await favorite_service.add_tag(db, cache, user, favorite_id, payload.tag)
    return favorite_service.serialize(favorite)


@router.delete("/{favorite_id}/tags", response_model=FavoriteWithProperty)
async def remove_tag(
    favorite_id: str,
    tag: str = Query(..., min_length=1),
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: CacheClient = Depends(get_cache),
):
    favorite = await favorite_service.remove_tag(db, cache, user, favorite_id, tag)
    return favorite_service.serialize(favorite)
