"""Property service — listing CRUD, filtered and cached reads, aggregate stats."""

import logging
import random
from typing import Any
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app import cache as cache_kinds
from app.cache import CacheClient, CacheTier, digest
from app.exceptions import ConflictError, ForbiddenError, InvalidInputError, NotFoundError
from app.models.property import Property
from app.models.user import User
from app.schemas.property import PropertyRead, PropertyStats, PropertyWithOwner
from app.services import query_builder as qb
from app.services.identifiers import parse_property_ref
from app.services.lifecycle import PROPERTY_UPDATE_FIELDS, check_allowed_fields
from app.services.stats_service import adjust_user_stats

logger = logging.getLogger(__name__)

MAX_CODE_ATTEMPTS = 20
FEATURED_MAX = 50

SORT_FIELDS = {
    "price": Property.price,
    "rating": (Property.rating, Property.review_count),
    "area": Property.area_sqft,
    "bedrooms": Property.bedrooms,
    "views": Property.views,
    "title": Property.title,
    "available_from": Property.available_from,
    "created_at": Property.created_at,
    "updated_at": Property.updated_at,
}

SEARCH_COLUMNS = (Property.title, Property.description, Property.city, Property.state, Property.area)

# Columns that may be cleared with an explicit null
NULLABLE_FIELDS = frozenset({"description", "area", "pincode", "address", "latitude", "longitude"})


def serialize(prop: Property) -> dict:
    return PropertyRead.model_validate(prop).model_dump(mode="json")


def serialize_with_owner(prop: Property) -> dict:
    payload = PropertyWithOwner.model_validate(prop).model_dump(mode="json")
    # Deactivated owners are not exposed through their listings
    if prop.owner is None or not prop.owner.is_active:
        payload["owner"] = None
    return payload


def random_property_code() -> str:
    return f"PROP{random.randint(1000, 9999)}"


async def generate_property_code(db: AsyncSession) -> str:
    for _ in range(MAX_CODE_ATTEMPTS):
        code = random_property_code()
        taken = await db.execute(select(Property.id).where(Property.property_code == code))
        if taken.scalar_one_or_none() is None:
            return code
    raise ConflictError("Could not allocate a property code", code="PROPERTY_CODE_EXHAUSTED")


def _ref_clause(ref: UUID | str):
    if isinstance(ref, UUID):
        return Property.id == ref
    return Property.property_code == ref


async def load_property(db: AsyncSession, ref: str | UUID, with_owner: bool = False) -> Property:
    """Fetch an active property by UUID or PROP code."""
    parsed = parse_property_ref(ref) if not isinstance(ref, UUID) else ref
    query = select(Property).where(_ref_clause(parsed), Property.is_active == True)
    if with_owner:
        query = query.options(selectinload(Property.owner))
    prop = (await db.execute(query)).scalar_one_or_none()
    if not prop:
        raise NotFoundError("Property not found")
    return prop


def _ensure_owner(prop: Property, actor: User) -> None:
    # Ownership is the creator, never the role
    if not prop.is_owned_by(actor.id):
        raise ForbiddenError("You can only modify your own properties")


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


async def create_property(db: AsyncSession, cache: CacheClient, owner: User, data: dict) -> Property:
    owner_id = owner.id
    for attempt in range(MAX_CODE_ATTEMPTS):
        prop = Property(
            **data,
            property_code=await generate_property_code(db),
            created_by=owner_id,
        )
        db.add(prop)
        try:
            await db.flush()
            break
        except IntegrityError:
            # Another writer claimed the same code between the check and the insert
            await db.rollback()
            logger.warning("Property code collision on attempt %d, retrying", attempt + 1)
    else:
        raise ConflictError("Could not allocate a property code", code="PROPERTY_CODE_EXHAUSTED")
    await db.commit()

    logger.info("Created property %s (%s) for user %s", prop.property_code, prop.id, owner_id)
    await adjust_user_stats(db, owner_id, properties_listed=1)
    await cache.invalidate(cache_kinds.PROPERTIES)
    return prop


async def update_property(
    db: AsyncSession,
    cache: CacheClient,
    actor: User,
    ref: str,
    updates: dict,
) -> Property:
    check_allowed_fields(updates, PROPERTY_UPDATE_FIELDS)
    cleared = sorted(field for field, value in updates.items() if value is None and field not in NULLABLE_FIELDS)
    if cleared:
        raise InvalidInputError(f"Fields cannot be null: {', '.join(cleared)}", code="INVALID_UPDATES")

    prop = await load_property(db, ref)
    _ensure_owner(prop, actor)

    for field, value in updates.items():
        setattr(prop, field, value)
    prop.updated_by = actor.id
    await db.commit()

    logger.info("Updated property %s fields %s", prop.id, sorted(updates))
    await cache.invalidate(cache_kinds.PROPERTIES)
    return prop


async def soft_delete_property(db: AsyncSession, cache: CacheClient, actor: User, ref: str) -> Property:
    """Flip the active flag; favorites and recommendations stay until a hard delete."""
    prop = await load_property(db, ref)
    _ensure_owner(prop, actor)

    prop.is_active = False
    prop.updated_by = actor.id
    await db.commit()

    logger.info("Deactivated property %s", prop.id)
    await adjust_user_stats(db, prop.created_by, properties_listed=-1)
    await cache.invalidate(cache_kinds.PROPERTIES)
    return prop


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def _increment_views(db: AsyncSession, property_id: UUID) -> None:
    await db.execute(update(Property).where(Property.id == property_id).values(views=Property.views + 1))
    await db.commit()


async def get_property(db: AsyncSession, cache: CacheClient, ref: str) -> dict:
    """Single property detail, read through the medium tier. Every read counts a view."""
    parsed = parse_property_ref(ref)
    key = cache.detail_key(cache_kinds.PROPERTIES, parsed)

    cached = await cache.get(key)
    if cached is not None:
        await _increment_views(db, UUID(cached["id"]))
        return cached

    prop = await load_property(db, parsed, with_owner=True)
    await _increment_views(db, prop.id)
    await db.refresh(prop, ["views"])
    payload = serialize_with_owner(prop)
    await cache.set(key, payload, CacheTier.MEDIUM)
    return payload


def build_filters(query, filters: dict[str, Any]):
    """Apply the public listing filters to a Property select."""
    if filters.get("search"):
        query = query.where(qb.text_match(SEARCH_COLUMNS, filters["search"]))
    if filters.get("property_type"):
        query = query.where(qb.contains(Property.property_type, filters["property_type"]))
    if filters.get("listing_type"):
        query = query.where(Property.listing_type == filters["listing_type"])
    if filters.get("state"):
        query = query.where(qb.contains(Property.state, filters["state"]))
    if filters.get("city"):
        query = query.where(qb.contains(Property.city, filters["city"]))
    if filters.get("bedrooms") is not None:
        query = query.where(Property.bedrooms == filters["bedrooms"])
    if filters.get("bathrooms") is not None:
        query = query.where(Property.bathrooms == filters["bathrooms"])
    if filters.get("furnished"):
        query = query.where(Property.furnished == filters["furnished"])
    if filters.get("listed_by"):
        query = query.where(Property.listed_by == filters["listed_by"])
    if filters.get("is_verified"):
        query = query.where(Property.is_verified == True)
    if filters.get("is_featured"):
        query = query.where(Property.is_featured == True)

    query = qb.apply_range(query, Property.price, filters.get("min_price"), filters.get("max_price"))
    query = qb.apply_range(query, Property.area_sqft, filters.get("min_area"), filters.get("max_area"))
    query = qb.apply_range(query, Property.rating, filters.get("min_rating"))
    query = qb.apply_range(
        query, Property.available_from, filters.get("available_from"), filters.get("available_to")
    )
    query = qb.apply_any_of(query, Property.amenities, qb.csv_values(filters.get("amenities")))
    query = qb.apply_any_of(query, Property.tags, qb.csv_values(filters.get("tags")))
    return query


def build_order(filters: dict[str, Any], sort_by: str | None, sort_order: str | None) -> list:
    order = qb.resolve_sort(sort_by, sort_order, SORT_FIELDS, Property.created_at)
    if filters.get("search"):
        # Relevance first, caller sort as tie-break
        order.insert(0, qb.text_rank(SEARCH_COLUMNS, filters["search"]).desc())
    return order


async def list_properties(
    db: AsyncSession,
    cache: CacheClient,
    filters: dict[str, Any],
    page: int | None = None,
    limit: int | None = None,
    sort_by: str | None = None,
    sort_order: str | None = None,
    scope: str = "list",
) -> dict:
    request = qb.paginate(page, limit)
    filters = {name: value for name, value in filters.items() if value is not None and value != ""}
    key = cache.key(
        cache_kinds.PROPERTIES,
        scope,
        digest({"filters": filters, "sort": [sort_by, sort_order], "page": request.page, "limit": request.limit}),
    )

    cached = await cache.get(key)
    if cached is not None:
        return cached

    query = build_filters(select(Property).where(Property.is_active == True), filters)
    query = query.order_by(*build_order(filters, sort_by, sort_order), Property.id)
    rows, total = await qb.fetch_page(db, query, request)

    payload = {
        "properties": [serialize(prop) for prop in rows],
        "pagination": qb.page_info(request, total),
    }
    await cache.set(key, payload, CacheTier.SHORT)
    return payload


async def search_properties(db: AsyncSession, cache: CacheClient, search: dict) -> dict:
    """Free-text search ranked by relevance, reusing the listing filters."""
    filters = {
        "search": search["q"],
        "property_type": search.get("property_type"),
        "listing_type": search.get("listing_type"),
        "city": search.get("city"),
        "state": search.get("state"),
        "min_price": search.get("min_price"),
        "max_price": search.get("max_price"),
        "amenities": search.get("amenities"),
    }
    return await list_properties(
        db,
        cache,
        filters,
        page=search.get("page"),
        limit=search.get("limit"),
        sort_by=search.get("sort_by"),
        sort_order=search.get("sort_order"),
        scope="search",
    )


async def featured_properties(db: AsyncSession, cache: CacheClient, limit: int = 6) -> dict:
    limit = min(max(1, limit), FEATURED_MAX)
    key = cache.key(cache_kinds.PROPERTIES, "featured", limit)

    cached = await cache.get(key)
    if cached is not None:
        return cached

    result = await db.execute(
        select(Property)
        .where(Property.is_active == True, Property.is_featured == True)
        .order_by(Property.rating.desc(), Property.created_at.desc())
        .limit(limit)
    )
    payload = {"properties": [serialize(prop) for prop in result.scalars().all()]}
    await cache.set(key, payload, CacheTier.LONG)
    return payload


async def property_stats(db: AsyncSession, cache: CacheClient) -> dict:
    key = cache.key(cache_kinds.PROPERTIES, "stats")

    cached = await cache.get(key)
    if cached is not None:
        return cached

    total = (await db.execute(select(func.count(Property.id)))).scalar() or 0
    active_filter = Property.is_active == True
    active = (await db.execute(select(func.count(Property.id)).where(active_filter))).scalar() or 0
    verified = (
        await db.execute(select(func.count(Property.id)).where(active_filter, Property.is_verified == True))
    ).scalar() or 0
    featured = (
        await db.execute(select(func.count(Property.id)).where(active_filter, Property.is_featured == True))
    ).scalar() or 0

    type_result = await db.execute(
        select(Property.property_type, func.count(Property.id).label("count"))
        .where(active_filter)
        .group_by(Property.property_type)
        .order_by(func.count(Property.id).desc())
    )
    by_type = {row.property_type: row.count for row in type_result}

    city_result = await db.execute(
        select(Property.city, func.count(Property.id).label("count"))
        .where(active_filter)
        .group_by(Property.city)
        .order_by(func.count(Property.id).desc())
        .limit(10)
    )
    top_cities = {row.city: row.count for row in city_result}

    price_row = (
        await db.execute(
            select(func.avg(Property.price), func.min(Property.price), func.max(Property.price)).where(active_filter)
        )
    ).one()

    stats = PropertyStats(
        total_properties=total,
        active_properties=active,
        verified_properties=verified,
        featured_properties=featured,
        by_type=by_type,
        top_cities=top_cities,
        avg_price=round(float(price_row[0]), 2) if price_row[0] is not None else None,
        min_price=price_row[1],
        max_price=price_row[2],
    )
    payload = stats.model_dump(mode="json")
    await cache.set(key, payload, CacheTier.LONG)
    return payload


async def my_properties(
    db: AsyncSession,
    owner: User,
    status: str = "all",
    page: int | None = None,
    limit: int | None = None,
) -> dict:
    """Owner's own listings, including deactivated ones. Not cached."""
    request = qb.paginate(page, limit)
    query = select(Property).where(Property.created_by == owner.id)
    if status == "active":
        query = query.where(Property.is_active == True)
    elif status == "inactive":
        query = query.where(Property.is_active == False)
    query = query.order_by(Property.created_at.desc(), Property.id)
    rows, total = await qb.fetch_page(db, query, request)

    counts = await db.execute(
        select(Property.is_active, func.count(Property.id))
        .where(Property.created_by == owner.id)
        .group_by(Property.is_active)
    )
    by_state = {bool(is_active): count for is_active, count in counts.all()}

    return {
        "properties": [serialize(prop) for prop in rows],
        "pagination": qb.page_info(request, total),
        "summary": {"active": by_state.get(True, 0), "inactive": by_state.get(False, 0)},
    }
