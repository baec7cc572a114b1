"""Property API endpoints."""

from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.cache import CacheClient
from app.dependencies.auth import get_cache, require_user
from app.models.base import get_db
from app.models.user import User
from app.schemas.property import (
    FurnishedType,
    ListedBy,
    ListingType,
    PropertyCreate,
    PropertyList,
    PropertyRead,
    PropertySearch,
    PropertyStats,
    PropertyUpdate,
    PropertyWithOwner,
)
from app.services import property_service

router = APIRouter(prefix="/properties", tags=["properties"])


@router.get("", response_model=PropertyList)
async def list_properties(
    db: AsyncSession = Depends(get_db),
    cache: CacheClient = Depends(get_cache),
    page: int = Query(1, description="Page number (floors at 1)"),
    limit: int | None = Query(None, description="Page size (clamped to the configured maximum)"),
    sort_by: str | None = Query(None, description="price, rating, area, views, created_at, ..."),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    search: str | None = Query(None, min_length=2, description="Free-text search"),
    property_type: str | None = Query(None, description="Case-insensitive property type"),
    listing_type: ListingType | None = Query(None),
    min_price: float | None = Query(None, ge=0),
    max_price: float | None = Query(None, ge=0),
    state: str | None = Query(None),
    city: str | None = Query(None),
    min_area: float | None = Query(None, ge=0),
    max_area: float | None = Query(None, ge=0),
    bedrooms: int | None = Query(None, ge=0),
    bathrooms: int | None = Query(None, ge=0),
    furnished: FurnishedType | None = Query(None),
    listed_by: ListedBy | None = Query(None),
    amenities: str | None = Query(None, description="Comma-separated; matches any"),
    tags: str | None = Query(None, description="Comma-separated; matches any"),
    is_verified: bool | None = Query(None),
    is_featured: bool | None = Query(None),
    min_rating: float | None = Query(None, ge=0, le=5),
    available_from: date | None = Query(None),
    available_to: date | None = Query(None),
):
    """List active properties with filters, read through the short cache tier."""
    filters = {
        "search": search,
        "property_type": property_type,
        "listing_type": listing_type,
        "min_price": min_price,
        "max_price": max_price,
        "state": state,
        "city": city,
        "min_area": min_area,
        "max_area": max_area,
        "bedrooms": bedrooms,
        "bathrooms": bathrooms,
        "furnished": furnished,
        "listed_by": listed_by,
        "amenities": amenities,
        "tags": tags,
        "is_verified": is_verified,
        "is_featured": is_featured,
        "min_rating": min_rating,
        "available_from": available_from,
        "available_to": available_to,
    }
    return await property_service.list_properties(db, cache, filters, page, limit, sort_by, sort_order)


@router.get("/featured")
async def featured_properties(
    db: AsyncSession = Depends(get_db),
    cache: CacheClient = Depends(get_cache),
    limit: int = Query(6, ge=1, le=50),
):
    return await property_service.featured_properties(db, cache, limit)


@router.get("/stats", response_model=PropertyStats)
async def property_stats(
    db: AsyncSession = Depends(get_db),
    cache: CacheClient = Depends(get_cache),
):
    """Aggregate listing statistics, read through the long cache tier."""
    return await property_service.property_stats(db, cache)


@router.post("/search", response_model=PropertyList)
async def search_properties(
    payload: PropertySearch,
    db: AsyncSession = Depends(get_db),
    cache: CacheClient = Depends(get_cache),
):
    """Free-text search ranked by relevance, caller sort as tie-break."""
    return await property_service.search_properties(db, cache, payload.model_dump())


@router.get("/mine")
async def my_properties(
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    status: Literal["all", "active", "inactive"] = Query("all"),
    page: int = Query(1),
    limit: int | None = Query(None),
):
    return await property_service.my_properties(db, user, status, page, limit)


@router.get("/{property_id}", response_model=PropertyWithOwner)
async def get_property(
    property_id: str,
    db: AsyncSession = Depends(get_db),
    cache: CacheClient = Depends(get_cache),
):
    """Get a single active property by UUID or PROP code."""
    return await property_service.get_property(db, cache, property_id)


@router.post("", response_model=PropertyRead, status_code=201)
async def create_property(
    payload: PropertyCreate,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: CacheClient = Depends(get_cache),
):
    return await property_service.create_property(db, cache, user, payload.model_dump())


@router.patch("/{property_id}", response_model=PropertyRead)
async def update_property(
    property_id: str,
    payload: PropertyUpdate,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: CacheClient = Depends(get_cache),
):
    """Owner-only partial update of listing attributes."""
    return await property_service.update_property(
        db, cache, user, property_id, payload.model_dump(exclude_unset=True)
    )


@router.delete("/{property_id}", response_model=PropertyRead)
async def delete_property(
    property_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: CacheClient = Depends(get_cache),
):
    """Soft delete: the listing disappears from public reads."""
    return await property_service.soft_delete_property(db, cache, user, property_id)
