"""User service — accounts, profile updates, deletion cascades and recipient lookup."""

import copy
import logging
from uuid import UUID

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app import cache as cache_kinds
from app.cache import CacheClient
from app.exceptions import (
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from app.models.base import utcnow
from app.models.favorite import Favorite
from app.models.property import Property
from app.models.recommendation import Recommendation
from app.models.user import User, default_preferences
from app.services.auth_service import hash_password, verify_password
from app.services.lifecycle import USER_UPDATE_FIELDS, check_allowed_fields
from app.services.stats_service import recompute_user_stats

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user(db: AsyncSession, user_id: UUID, active_only: bool = True) -> User:
    query = select(User).where(User.id == user_id)
    if active_only:
        query = query.where(User.is_active == True)
    user = (await db.execute(query)).scalar_one_or_none()
    if not user:
        raise NotFoundError("User not found")
    return user


async def register_user(db: AsyncSession, cache: CacheClient, data: dict) -> User:
    email = normalize_email(data["email"])
    existing = await db.execute(select(User.id).where(User.email == email))
    if existing.scalar_one_or_none():
        raise ConflictError("An account with this email already exists", code="EMAIL_TAKEN")

    user = User(
        email=email,
        hashed_password=hash_password(data["password"]),
        first_name=data["first_name"].strip(),
        last_name=data["last_name"].strip(),
        phone=data.get("phone"),
        preferences=default_preferences(),
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("An account with this email already exists", code="EMAIL_TAKEN")
    await db.commit()

    logger.info("Registered user %s", user.id)
    await cache.invalidate(cache_kinds.USERS)
    return user


async def authenticate(db: AsyncSession, email: str, password: str) -> User:
    result = await db.execute(select(User).where(User.email == normalize_email(email)))
    user = result.scalar_one_or_none()
    if not user or not verify_password(password, user.hashed_password):
        raise AuthenticationError("Invalid credentials")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated")

    user.last_login_at = utcnow()
    await db.commit()
    return user


def merge_preferences(current: dict | None, patch: dict) -> dict:
    """Deep-merge a partial preferences patch over the stored document."""
    merged = copy.deepcopy(current or default_preferences())
    for section, values in patch.items():
        if isinstance(values, dict):
            merged.setdefault(section, {}).update(
                {key: value for key, value in values.items() if value is not None}
            )
        elif values is not None:
            merged[section] = values
    return merged


async def update_profile(db: AsyncSession, cache: CacheClient, user: User, updates: dict) -> User:
    check_allowed_fields(updates, USER_UPDATE_FIELDS)

    for field, value in updates.items():
        if field == "preferences":
            if value is not None:
                user.preferences = merge_preferences(user.preferences, value)
        elif field in ("first_name", "last_name"):
            if value is None or not str(value).strip():
                raise InvalidInputError(f"{field} cannot be empty", code="INVALID_UPDATES")
            setattr(user, field, str(value).strip())
        else:
            setattr(user, field, value)

    await db.commit()
    await cache.invalidate(cache_kinds.USERS)
    return user


async def deactivate_user(db: AsyncSession, cache: CacheClient, user: User) -> User:
    """Soft delete: flips the active flag and leaves dependents in place."""
    user.is_active = False
    await db.commit()
    logger.info("Deactivated user %s", user.id)
    await cache.invalidate(cache_kinds.USERS)
    return user


async def delete_user(db: AsyncSession, cache: CacheClient, user_id: UUID) -> dict:
    """Hard delete a user and everything that references them.

    Removes the user's properties, favorites held by the user or pointing at
    those properties, and recommendations sent, received or about those
    properties. Counters of the other users touched are recounted afterwards.
    """
    user = await get_user(db, user_id, active_only=False)

    owned_ids = select(Property.id).where(Property.created_by == user.id)

    # Other users whose counters lose rows in the cascade
    affected: set[UUID] = set()
    fav_rows = await db.execute(
        select(Favorite.user_id).where(Favorite.property_id.in_(owned_ids), Favorite.user_id != user.id)
    )
    affected.update(fav_rows.scalars().all())
    rec_rows = await db.execute(
        select(Recommendation.sender_id, Recommendation.recipient_id).where(
            or_(
                Recommendation.sender_id == user.id,
                Recommendation.recipient_id == user.id,
                Recommendation.property_id.in_(owned_ids),
            )
        )
    )
    for sender_id, recipient_id in rec_rows.all():
        affected.update((sender_id, recipient_id))
    affected.discard(user.id)

    recommendations = await db.execute(
        delete(Recommendation).where(
            or_(
                Recommendation.sender_id == user.id,
                Recommendation.recipient_id == user.id,
                Recommendation.property_id.in_(owned_ids),
            )
        )
    )
    favorites = await db.execute(
        delete(Favorite).where(or_(Favorite.user_id == user.id, Favorite.property_id.in_(owned_ids)))
    )
    properties = await db.execute(delete(Property).where(Property.created_by == user.id))
    await db.delete(user)
    await db.commit()

    summary = {
        "properties": properties.rowcount or 0,
        "favorites": favorites.rowcount or 0,
        "recommendations": recommendations.rowcount or 0,
    }
    logger.info("Deleted user %s with dependents %s", user_id, summary)

    if affected:
        try:
            await db.run_sync(recompute_user_stats, affected)
            await db.commit()
        except Exception:
            await db.rollback()
            logger.exception("Counter recount after deleting user %s failed", user_id)

    await cache.invalidate(*cache_kinds.ALL_KINDS)
    return summary


async def find_recipient(db: AsyncSession, requester: User, email: str) -> dict:
    """Look up a user who can receive recommendations, honouring their privacy flags."""
    email = normalize_email(email)
    if not email:
        raise InvalidInputError("Email is required for user search", code="MISSING_EMAIL")
    if email == requester.email:
        raise InvalidInputError("You cannot send recommendations to yourself", code="SELF_RECOMMENDATION")

    result = await db.execute(
        select(User).where(User.email == email, User.is_active == True, User.is_verified == True)
    )
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundError("User not found or not available for recommendations")
    if not user.wants_recommendations():
        raise ForbiddenError("This user has disabled property recommendations", code="RECOMMENDATIONS_DISABLED")

    info = {
        "id": user.id,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "email": user.email,
        "can_receive_recommendations": True,
    }
    if user.shows_profile():
        info["avatar"] = user.avatar
        info["full_name"] = user.full_name
    return info
