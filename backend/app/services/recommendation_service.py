"""Recommendation service — peer-to-peer property suggestions and their lifecycle."""

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session, selectinload

from app import cache as cache_kinds
from app.cache import CacheClient, CacheTier
from app.exceptions import ConflictError, ForbiddenError, InvalidInputError, NotFoundError
from app.models.base import utcnow
from app.models.property import Property
from app.models.recommendation import Recommendation
from app.models.user import User
from app.schemas.recommendation import RecommendationDetail
from app.services import query_builder as qb
from app.services.identifiers import parse_uuid
from app.services.lifecycle import (
    apply_status,
    default_expiry,
    record_reminder,
    reminder_block_reason,
)
from app.services.property_service import load_property
from app.services.stats_service import adjust_user_stats

logger = logging.getLogger(__name__)

SORT_FIELDS = {
    "created_at": Recommendation.created_at,
    "updated_at": Recommendation.updated_at,
    "sent_at": Recommendation.sent_at,
    "priority": Recommendation.priority,
    "status": Recommendation.status,
    "match_score": Recommendation.match_score,
}

RESPONDED_STATUSES = ("interested", "not_interested", "contacted")

_RELATIONS = (
    selectinload(Recommendation.sender),
    selectinload(Recommendation.recipient),
    selectinload(Recommendation.property),
)


def serialize(recommendation: Recommendation) -> dict:
    payload = RecommendationDetail.model_validate(recommendation).model_dump(mode="json")
    for name in ("sender", "recipient"):
        user = getattr(recommendation, name)
        if user is None or not user.is_active:
            payload[name] = None
    if recommendation.property is None or not recommendation.property.is_active:
        payload["property"] = None
    return payload


def not_expired(now: datetime):
    return or_(Recommendation.expires_at.is_(None), Recommendation.expires_at > now)


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


async def send_recommendation(db: AsyncSession, cache: CacheClient, sender: User, data: dict) -> Recommendation:
    sender_id = sender.id
    recipient_email = data["recipient_email"].strip().lower()

    # Self-recommendation is rejected before anything else is looked at
    if recipient_email == sender.email:
        raise InvalidInputError("You cannot send recommendations to yourself", code="SELF_RECOMMENDATION")

    result = await db.execute(
        select(User).where(User.email == recipient_email, User.is_active == True, User.is_verified == True)
    )
    recipient = result.scalar_one_or_none()
    if not recipient:
        raise NotFoundError("Recipient not found or not available")
    if recipient.id == sender_id:
        raise InvalidInputError("You cannot send recommendations to yourself", code="SELF_RECOMMENDATION")
    if not recipient.wants_recommendations():
        raise ForbiddenError("This user has disabled property recommendations", code="RECOMMENDATIONS_DISABLED")

    prop = await load_property(db, data["property_id"])

    duplicate = await db.execute(
        select(Recommendation.id).where(
            Recommendation.sender_id == sender_id,
            Recommendation.recipient_id == recipient.id,
            Recommendation.property_id == prop.id,
            Recommendation.is_active == True,
        )
    )
    if duplicate.scalar_one_or_none():
        raise ConflictError("You have already recommended this property to this user", code="DUPLICATE_RECOMMENDATION")

    now = utcnow()
    recommendation = Recommendation(
        sender_id=sender_id,
        recipient_id=recipient.id,
        property_id=prop.id,
        sender=sender,
        recipient=recipient,
        property=prop,
        message=(data.get("message") or "").strip() or None,
        subject=(data.get("subject") or "").strip() or f"{sender.full_name} recommended a property for you",
        priority=data.get("priority", "medium"),
        category=data.get("category", "general"),
        sender_reason=(data.get("sender_reason") or "").strip() or None,
        match_score=data.get("match_score"),
        context={"location": {"city": prop.city, "state": prop.state}, "tags": list(prop.tags or [])},
        sent_at=now,
        expires_at=data.get("expires_at") or default_expiry(now),
    )
    db.add(recommendation)
    try:
        await db.flush()
    except IntegrityError:
        # Concurrent duplicate caught by uq_recommendations_active_triple
        await db.rollback()
        raise ConflictError("You have already recommended this property to this user", code="DUPLICATE_RECOMMENDATION")
    await db.commit()

    recipient_id = recipient.id
    logger.info("User %s recommended property %s to %s", sender_id, prop.id, recipient_id)
    await adjust_user_stats(db, sender_id, recommendations_sent=1)
    await adjust_user_stats(db, recipient_id, recommendations_received=1)
    await cache.invalidate(cache_kinds.RECOMMENDATIONS)
    return recommendation


async def _load(db: AsyncSession, recommendation_id: str | UUID, *clauses) -> Recommendation:
    result = await db.execute(
        select(Recommendation)
        .options(*_RELATIONS)
        .where(Recommendation.id == parse_uuid(recommendation_id, "recommendation id"), *clauses)
    )
    recommendation = result.scalar_one_or_none()
    if not recommendation:
        raise NotFoundError("Recommendation not found")
    return recommendation


async def update_status(
    db: AsyncSession,
    cache: CacheClient,
    recipient: User,
    recommendation_id: str,
    status: str,
    response: str | None = None,
) -> Recommendation:
    """Recipient-driven status change along the forward progression."""
    recommendation = await _load(db, recommendation_id, Recommendation.recipient_id == recipient.id)
    # Dismissed rows stay addressable so a late transition reports a rejected move, not a miss
    if not recommendation.is_active and recommendation.status != "dismissed":
        raise NotFoundError("Recommendation is no longer available")

    changed = apply_status(recommendation, status)
    if response and response.strip():
        recommendation.message = response.strip()
        changed = True
    if changed:
        await db.commit()
        logger.info("Recommendation %s moved to %s", recommendation.id, recommendation.status)
        await cache.invalidate(cache_kinds.RECOMMENDATIONS)
    return recommendation


async def send_reminder(db: AsyncSession, cache: CacheClient, sender: User, recommendation_id: str) -> dict:
    """Nudge the recipient of a pending recommendation. Ineligible is an outcome, not an error."""
    recommendation = await _load(db, recommendation_id, Recommendation.sender_id == sender.id)

    reason = reminder_block_reason(recommendation)
    if reason is None:
        record_reminder(recommendation)
        await db.commit()
        logger.info("Reminder %d sent for recommendation %s", recommendation.reminder_count, recommendation.id)
        await cache.invalidate(cache_kinds.RECOMMENDATIONS)

    return {
        "sent": reason is None,
        "reason": reason,
        "reminder_count": recommendation.reminder_count,
        "reminder_sent_at": recommendation.reminder_sent_at,
    }


def expire_recommendations(session: Session, now: datetime | None = None) -> int:
    """Deactivate active recommendations past their expiry. Caller owns the commit."""
    now = now or utcnow()
    result = session.execute(
        update(Recommendation)
        .where(Recommendation.is_active == True, Recommendation.expires_at.isnot(None), Recommendation.expires_at <= now)
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    expired = result.rowcount or 0
    if expired:
        logger.info("Expired %d recommendations", expired)
    return expired


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_recommendation(db: AsyncSession, cache: CacheClient, user: User, recommendation_id: str) -> dict:
    """Detail for the sender or recipient; the recipient's first read marks it viewed."""
    recommendation = await _load(
        db,
        recommendation_id,
        or_(Recommendation.sender_id == user.id, Recommendation.recipient_id == user.id),
        Recommendation.is_active == True,
    )

    is_recipient = recommendation.recipient_id == user.id
    if is_recipient and recommendation.status == "pending":
        apply_status(recommendation, "viewed")
        await db.commit()
        await cache.invalidate(cache_kinds.RECOMMENDATIONS)

    payload = serialize(recommendation)
    payload.update(
        is_recipient=is_recipient,
        is_sender=recommendation.sender_id == user.id,
        can_respond=is_recipient and recommendation.status in ("pending", "viewed"),
    )
    return payload


async def _status_counts(db: AsyncSession, *clauses) -> dict[str, int]:
    rows = await db.execute(
        select(Recommendation.status, func.count(Recommendation.id)).where(*clauses).group_by(Recommendation.status)
    )
    return {status: count for status, count in rows.all()}


async def list_received(
    db: AsyncSession,
    cache: CacheClient,
    user: User,
    filters: dict[str, Any],
    page: int | None = None,
    limit: int | None = None,
    sort_by: str | None = None,
    sort_order: str | None = None,
) -> dict:
    """Active, unexpired recommendations about listings that are still live."""
    return await _list(db, cache, user, "received", filters, page, limit, sort_by, sort_order)


async def list_sent(
    db: AsyncSession,
    cache: CacheClient,
    user: User,
    filters: dict[str, Any],
    page: int | None = None,
    limit: int | None = None,
    sort_by: str | None = None,
    sort_order: str | None = None,
) -> dict:
    return await _list(db, cache, user, "sent", filters, page, limit, sort_by, sort_order)


async def _list(db, cache, user, direction, filters, page, limit, sort_by, sort_order) -> dict:
    request = qb.paginate(page, limit)
    filters = {name: value for name, value in filters.items() if value}
    key = cache.list_key(
        cache_kinds.RECOMMENDATIONS,
        {
            "direction": direction,
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

    if direction == "received":
        scope = [
            Recommendation.recipient_id == user.id,
            Recommendation.is_active == True,
            not_expired(utcnow()),
        ]
    else:
        scope = [Recommendation.sender_id == user.id, Recommendation.is_active == True]

    query = (
        select(Recommendation)
        .join(Property, Property.id == Recommendation.property_id)
        .options(*_RELATIONS)
        .where(*scope, Property.is_active == True)
    )
    for name in ("status", "priority", "category"):
        if filters.get(name):
            query = query.where(getattr(Recommendation, name) == filters[name])
    query = query.order_by(
        *qb.resolve_sort(sort_by, sort_order, SORT_FIELDS, Recommendation.created_at),
        Recommendation.id,
    )

    rows, total = await qb.fetch_page(db, query, request)
    payload = {
        "recommendations": [serialize(recommendation) for recommendation in rows],
        "pagination": qb.page_info(request, total),
        "status_counts": await _status_counts(db, *scope),
    }
    await cache.set(key, payload, CacheTier.SHORT)
    return payload


async def analytics(db: AsyncSession, cache: CacheClient, user: User) -> dict:
    key = cache.key(cache_kinds.RECOMMENDATIONS, "analytics", user.id)
    cached = await cache.get(key)
    if cached is not None:
        return cached

    sent = await _status_counts(db, Recommendation.sender_id == user.id)
    received = await _status_counts(db, Recommendation.recipient_id == user.id, Recommendation.is_active == True)

    total_sent = sum(sent.values())
    responded = sum(count for status, count in sent.items() if status in RESPONDED_STATUSES)
    response_rate = round(responded / total_sent * 100, 1) if total_sent else 0.0

    involved = or_(Recommendation.sender_id == user.id, Recommendation.recipient_id == user.id)
    category_rows = await db.execute(
        select(Recommendation.category, func.count(Recommendation.id).label("count"))
        .where(involved, Recommendation.is_active == True)
        .group_by(Recommendation.category)
        .order_by(func.count(Recommendation.id).desc())
        .limit(5)
    )
    recent = await db.execute(
        select(Recommendation)
        .options(*_RELATIONS)
        .where(involved, Recommendation.is_active == True)
        .order_by(Recommendation.updated_at.desc())
        .limit(10)
    )

    payload = {
        "sent": {"total": total_sent, "by_status": sent},
        "received": {"total": sum(received.values()), "by_status": received},
        "response_rate": response_rate,
        "top_categories": {category: count for category, count in category_rows.all()},
        "recent_activity": [serialize(recommendation) for recommendation in recent.scalars().all()],
    }
    await cache.set(key, payload, CacheTier.SHORT)
    return payload
