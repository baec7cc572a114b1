"""User stats service — denormalized counter maintenance and reconciliation.

Counters on ``users`` are caches of cross-entity counts. Lifecycle hooks
adjust them with atomic SQL increments after the primary write has been
committed; a failed adjustment is logged and left for the reconciliation
job, never rolled back together with the primary write.
"""

import logging
from typing import Iterable
from uuid import UUID

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from app.models.favorite import Favorite
from app.models.property import Property
from app.models.recommendation import Recommendation
from app.models.user import User

logger = logging.getLogger(__name__)

COUNTER_FIELDS = ("properties_listed", "favorite_count", "recommendations_sent", "recommendations_received")


def _delta_expression(column, delta: int):
    # Decrements never take a counter below zero
    if delta >= 0:
        return column + delta
    return case((column + delta < 0, 0), else_=column + delta)


def counter_update(user_id: UUID, **deltas: int):
    unknown = set(deltas) - set(COUNTER_FIELDS)
    if unknown:
        raise ValueError(f"Unknown counters: {sorted(unknown)}")
    values = {
        field: _delta_expression(getattr(User, field), delta)
        for field, delta in deltas.items()
        if delta
    }
    return update(User).where(User.id == user_id).values(**values)


async def adjust_user_stats(db: AsyncSession, user_id: UUID, **deltas: int) -> bool:
    """Apply counter deltas on a separate connection. Best-effort: failures are logged only."""
    if not any(deltas.values()):
        return True
    try:
        stmt = counter_update(user_id, **deltas)
        async with db.bind.begin() as conn:
            await conn.execute(stmt)
        return True
    except Exception:
        logger.exception("Counter update failed for user %s (%s)", user_id, deltas)
        return False


def recompute_user_stats(session: Session, user_ids: Iterable[UUID] | None = None) -> int:
    """Recount every counter from source rows and overwrite the stored values.

    Synchronous so it can run inside Celery workers directly and inside
    request handlers via ``AsyncSession.run_sync``. Returns the number of
    users rewritten; the caller owns the commit.
    """
    properties_listed = (
        select(func.count(Property.id))
        .where(Property.created_by == User.id, Property.is_active == True)
        .scalar_subquery()
    )
    favorite_count = select(func.count(Favorite.id)).where(Favorite.user_id == User.id).scalar_subquery()
    recommendations_sent = (
        select(func.count(Recommendation.id)).where(Recommendation.sender_id == User.id).scalar_subquery()
    )
    recommendations_received = (
        select(func.count(Recommendation.id)).where(Recommendation.recipient_id == User.id).scalar_subquery()
    )

    stmt = update(User).values(
        properties_listed=properties_listed,
        favorite_count=favorite_count,
        recommendations_sent=recommendations_sent,
        recommendations_received=recommendations_received,
    )
    if user_ids is not None:
        user_ids = list(user_ids)
        if not user_ids:
            return 0
        stmt = stmt.where(User.id.in_(user_ids))

    result = session.execute(stmt.execution_options(synchronize_session=False))
    updated = result.rowcount or 0
    logger.info("Recomputed stats for %d users", updated)
    return updated
