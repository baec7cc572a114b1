"""Recommendation API endpoints."""

from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.cache import CacheClient
from app.dependencies.auth import get_cache, require_user
from app.models.base import get_db
from app.models.user import User
from app.schemas.recommendation import (
    RecommendationAnalytics,
    RecommendationCategory,
    RecommendationCreate,
    RecommendationDetail,
    RecommendationList,
    RecommendationPriority,
    RecommendationStatus,
    ReminderResult,
    StatusUpdate,
)
from app.services import recommendation_service

router = APIRouter(prefix="/recommendations", tags=["recommendations"])


class RecommendationView(RecommendationDetail):
    is_recipient: bool
    is_sender: bool
    can_respond: bool


class StatusChange(StatusUpdate):
    response: str | None = None


@router.post("", response_model=RecommendationDetail, status_code=201)
async def send_recommendation(
    payload: RecommendationCreate,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: CacheClient = Depends(get_cache),
):
    """Recommend an active property to another verified user."""
    recommendation = await recommendation_service.send_recommendation(db, cache, user, payload.model_dump())
    return recommendation_service.serialize(recommendation)


@router.get("/received", response_model=RecommendationList)
async def received_recommendations(
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: CacheClient = Depends(get_cache),
    page: int = Query(1),
    limit: int | None = Query(None),
    sort_by: str | None = Query(None),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    status: RecommendationStatus | None = Query(None),
    priority: RecommendationPriority | None = Query(None),
    category: RecommendationCategory | None = Query(None),
):
    filters = {"status": status, "priority": priority, "category": category}
    return await recommendation_service.list_received(db, cache, user, filters, page, limit, sort_by, sort_order)


@router.get("/sent", response_model=RecommendationList)
async def sent_recommendations(
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: CacheClient = Depends(get_cache),
    page: int = Query(1),
    limit: int | None = Query(None),
    sort_by: str | None = Query(None),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    status: RecommendationStatus | None = Query(None),
):
    return await recommendation_service.list_sent(
        db, cache, user, {"status": status}, page, limit, sort_by, sort_order
    )


@router.get("/analytics", response_model=RecommendationAnalytics)
async def recommendation_analytics(
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: CacheClient = Depends(get_cache),
):
    return await recommendation_service.analytics(db, cache, user)


@router.get("/{recommendation_id}", response_model=RecommendationView)
async def get_recommendation(
    recommendation_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: CacheClient = Depends(get_cache),
):
    """Detail for sender or recipient. The recipient's first read marks it viewed."""
    return await recommendation_service.get_recommendation(db, cache, user, recommendation_id)


@router.patch("/{recommendation_id}/status", response_model=RecommendationDetail)
async def update_status(
    recommendation_id: str,
    payload: StatusChange,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: CacheClient = Depends(get_cache),
):
    recommendation = await recommendation_service.update_status(
        db, cache, user, recommendation_id, payload.status, payload.response
    )
    return recommendation_service.serialize(recommendation)


@router.post("/{recommendation_id}/reminder", response_model=ReminderResult)
async def send_reminder(
    recommendation_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: CacheClient = Depends(get_cache),
):
    """Remind the recipient. An ineligible reminder returns sent=false with a reason."""
    return await recommendation_service.send_reminder(db, cache, user, recommendation_id)
