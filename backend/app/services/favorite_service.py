"""Favorite service — bookmarks with price snapshots, tags, insights."""

import logging
from collections import Counter
from datetime import timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app import cache as cache_kinds
from app.cache import CacheClient, CacheTier
from app.exceptions import ConflictError, InvalidInputError, NotFoundError
from app.models.base import as_utc, utcnow
from app.models.favorite import Favorite
from app.models.property import Property
from app.models.user import User
from app.schemas.favorite import FavoriteDetail, FavoriteWithProperty
from app.services import query_builder as qb
from app.services.identifiers import parse_property_ref, parse_uuid
from app.services.lifecycle import FAVORITE_UPDATE_FIELDS, check_allowed_fields
from app.services.property_service import load_property
from app.services.stats_service import adjust_user_stats

logger = logging.getLogger(__name__)

SORT_FIELDS = {
    "created_at": Favorite.created_at,
    "updated_at": Favorite.updated_at,
    "priority": Favorite.priority,
    "favorite_type": Favorite.favorite_type,
    "view_count": Favorite.view_count,
    "reminder_date": Favorite.reminder_date,
}

# Fields that may be cleared with an explicit null
NULLABLE_FIELDS = frozenset({"notes", "reminder_date"})

REMINDER_WINDOW_DAYS = 7


def normalize_tags(tags: list[str] | None) -> list[str]:
    seen: list[str] = []
    for tag in tags or []:
        tag = tag.strip().lower()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def serialize(favorite: Favorite) -> dict:
    payload = FavoriteWithProperty.model_validate(favorite).model_dump(mode="json")
    if favorite.property is None or not favorite.property.is_active:
        payload["property"] = None
    return payload


def serialize_detail(favorite: Favorite) -> dict:
    payload = FavoriteDetail.model_validate(favorite).model_dump(mode="json")
    prop = favorite.property
    if prop is None or not prop.is_active:
        payload["property"] = None
        return payload
    change = prop.price - favorite.price_when_added
    payload["current_price"] = prop.price
    payload["price_change"] = change
    payload["price_change_percent"] = (
        round(change / favorite.price_when_added * 100, 2) if favorite.price_when_added else None
    )
    return payload


async def _load_favorite(db: AsyncSession, user: User, favorite_id: str | UUID) -> Favorite:
    result = await db.execute(
        select(Favorite)
        .options(selectinload(Favorite.property))
        .where(Favorite.id == parse_uuid(favorite_id, "favorite id"), Favorite.user_id == user.id)
    )
    favorite = result.scalar_one_or_none()
    if not favorite:
        raise NotFoundError("Favorite not found")
    return favorite


async def _resolve_property_id(db: AsyncSession, ref: str) -> UUID:
    """Property id for a UUID or PROP code, whether or not the listing is still active."""
    parsed = parse_property_ref(ref)
    if isinstance(parsed, UUID):
        return parsed
    found = await db.execute(select(Property.id).where(Property.property_code == parsed))
    property_id = found.scalar_one_or_none()
    if property_id is None:
        raise NotFoundError("Property not found")
    return property_id


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


async def add_favorite(db: AsyncSession, cache: CacheClient, user: User, property_ref: str, data: dict) -> Favorite:
    user_id = user.id
    prop = await load_property(db, property_ref)

    existing = await db.execute(
        select(Favorite.id).where(Favorite.user_id == user_id, Favorite.property_id == prop.id)
    )
    if existing.scalar_one_or_none():
        raise ConflictError("Property is already in your favorites", code="ALREADY_FAVORITED")

    favorite = Favorite(
        user_id=user_id,
        property_id=prop.id,
        property=prop,
        notes=(data.get("notes") or "").strip() or None,
        tags=normalize_tags(data.get("tags")),
        favorite_type=data.get("favorite_type", "interested"),
        priority=data.get("priority", "medium"),
        reminder_date=data.get("reminder_date"),
        is_notification_enabled=data.get("is_notification_enabled", True),
        added_from_page=data.get("added_from_page", "other"),
        price_when_added=prop.price,
    )
    db.add(favorite)
    try:
        await db.flush()
    except IntegrityError:
        # Concurrent duplicate caught by uq_favorites_user_property
        await db.rollback()
        raise ConflictError("Property is already in your favorites", code="ALREADY_FAVORITED")
    await db.commit()

    logger.info("User %s favorited property %s", user_id, prop.id)
    await adjust_user_stats(db, user_id, favorite_count=1)
    await cache.invalidate(cache_kinds.FAVORITES)
    return favorite


async def remove_favorite(db: AsyncSession, cache: CacheClient, user: User, property_ref: str) -> None:
    user_id = user.id
    property_id = await _resolve_property_id(db, property_ref)

    result = await db.execute(
        delete(Favorite).where(Favorite.user_id == user_id, Favorite.property_id == property_id)
    )
    if not result.rowcount:
        await db.rollback()
        raise NotFoundError("Favorite not found")
    await db.commit()

    logger.info("User %s removed favorite for property %s", user_id, property_id)
    await adjust_user_stats(db, user_id, favorite_count=-1)
    await cache.invalidate(cache_kinds.FAVORITES)


async def update_favorite(
    db: AsyncSession,
    cache: CacheClient,
    user: User,
    favorite_id: str,
    updates: dict,
) -> Favorite:
    check_allowed_fields(updates, FAVORITE_UPDATE_FIELDS)
    cleared = sorted(field for field, value in updates.items() if value is None and field not in NULLABLE_FIELDS)
    if cleared:
        raise InvalidInputError(f"Fields cannot be null: {', '.join(cleared)}", code="INVALID_UPDATES")

    favorite = await _load_favorite(db, user, favorite_id)
    for field, value in updates.items():
        if field == "tags":
            value = normalize_tags(value)
        elif field == "notes" and value is not None:
            value = value.strip() or None
        setattr(favorite, field, value)
    await db.commit()

    await cache.invalidate(cache_kinds.FAVORITES)
    return favorite


async def add_tag(db: AsyncSession, cache: CacheClient, user: User, favorite_id: str, tag: str) -> Favorite:
    favorite = await _load_favorite(db, user, favorite_id)
    tag = tag.strip().lower()
    if not tag:
        raise InvalidInputError("Tag cannot be empty")
    if tag not in (favorite.tags or []):
        # Reassign so the JSON column is flagged dirty
        favorite.tags = [*(favorite.tags or []), tag]
        await db.commit()
        await cache.invalidate(cache_kinds.FAVORITES)
    return favorite


async def remove_tag(db: AsyncSession, cache: CacheClient, user: User, favorite_id: str, tag: str) -> Favorite:
    favorite = await _load_favorite(db, user, favorite_id)
    tag = tag.strip().lower()
    if tag not in (favorite.tags or []):
        raise NotFoundError("Tag not found on favorite")
    favorite.tags = [existing for existing in favorite.tags if existing != tag]
    await db.commit()
    await cache.invalidate(cache_kinds.FAVORITES)
    return favorite


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_favorite(db: AsyncSession, user: User, favorite_id: str) -> dict:
    """Favorite detail with price drift. Each read bumps the view counter, so it is not cached."""
    favorite = await _load_favorite(db, user, favorite_id)
    favorite.view_count = (favorite.view_count or 0) + 1
    favorite.last_viewed_at = utcnow()
    await db.commit()
    return serialize_detail(favorite)


async def favorite_status(db: AsyncSession, user: User, property_ref: str) -> dict:
    property_id = await _resolve_property_id(db, property_ref)
    result = await db.execute(
        select(Favorite).where(Favorite.user_id == user.id, Favorite.property_id == property_id)
    )
    favorite = result.scalar_one_or_none()
    if not favorite:
        return {"is_favorited": False}
    return {
        "is_favorited": True,
        "favorite_id": favorite.id,
        "favorite_type": favorite.favorite_type,
        "priority": favorite.priority,
    }


async def list_favorites(
    db: AsyncSession,
    cache: CacheClient,
    user: User,
    filters: dict[str, Any],
    page: int | None = None,
    limit: int | None = None,
    sort_by: str | None = None,
    sort_order: str | None = None,
) -> dict:
    request = qb.paginate(page, limit)
    filters = {name: value for name, value in filters.items() if value not in (None, "", False)}
    key = cache.list_key(
        cache_kinds.FAVORITES,
        {
            "user": str(user.id),
            "filters": filters,
            "sort": [sort_by, sort_order],
            "page": request.page,
            "limit": request.limit,
        },
    )

    cached = await cache.get(key)
    if cached is not None:
        return cached

    query = select(Favorite).options(selectinload(Favorite.property)).where(Favorite.user_id == user.id)
    if filters.get("favorite_type"):
        query = query.where(Favorite.favorite_type == filters["favorite_type"])
    if filters.get("priority"):
        query = query.where(Favorite.priority == filters["priority"])
    if filters.get("has_reminder"):
        query = query.where(Favorite.reminder_date.isnot(None))
    query = qb.apply_any_of(query, Favorite.tags, qb.csv_values(filters.get("tags")))
    query = query.order_by(*qb.resolve_sort(sort_by, sort_order, SORT_FIELDS, Favorite.created_at), Favorite.id)

    rows, total = await qb.fetch_page(db, query, request)
    payload = {
        "favorites": [serialize(favorite) for favorite in rows],
        "pagination": qb.page_info(request, total),
    }
    await cache.set(key, payload, CacheTier.SHORT)
    return payload


async def favorite_insights(db: AsyncSession, cache: CacheClient, user: User) -> dict:
    key = cache.key(cache_kinds.FAVORITES, "insights", user.id)
    cached = await cache.get(key)
    if cached is not None:
        return cached

    base = Favorite.user_id == user.id
    total = (await db.execute(select(func.count(Favorite.id)).where(base))).scalar() or 0

    type_rows = await db.execute(
        select(Favorite.favorite_type, func.count(Favorite.id)).where(base).group_by(Favorite.favorite_type)
    )
    priority_rows = await db.execute(
        select(Favorite.priority, func.count(Favorite.id)).where(base).group_by(Favorite.priority)
    )

    recent_rows = await db.execute(
        select(Favorite)
        .options(selectinload(Favorite.property))
        .where(base)
        .order_by(Favorite.created_at.desc())
        .limit(5)
    )

    tag_counts: Counter = Counter()
    for tags in (await db.execute(select(Favorite.tags).where(base))).scalars():
        tag_counts.update(tags or [])

    now = utcnow()
    window_end = now + timedelta(days=REMINDER_WINDOW_DAYS)
    reminder_rows = await db.execute(
        select(Favorite)
        .options(selectinload(Favorite.property))
        .where(base, Favorite.reminder_date.isnot(None))
        .order_by(Favorite.reminder_date.asc())
    )
    upcoming = [
        favorite
        for favorite in reminder_rows.scalars().all()
        if now <= as_utc(favorite.reminder_date) <= window_end
    ][:5]

    payload = {
        "total_favorites": total,
        "by_type": {name: count for name, count in type_rows.all()},
        "by_priority": {name: count for name, count in priority_rows.all()},
        "recent": [serialize(favorite) for favorite in recent_rows.scalars().all()],
        "popular_tags": dict(tag_counts.most_common(10)),
        "upcoming_reminders": [serialize(favorite) for favorite in upcoming],
    }
    await cache.set(key, payload, CacheTier.SHORT)
    return payload
