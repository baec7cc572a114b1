"""Pydantic schemas for Recommendation model."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.schemas.common import PageInfo
from app.schemas.property import PropertySummary
from app.schemas.user import UserSummary

RecommendationStatus = Literal["pending", "viewed", "interested", "not_interested", "contacted", "dismissed"]
RecommendationPriority = Literal["low", "medium", "high", "urgent"]
RecommendationCategory = Literal[
    "suggestion", "perfect_match", "similar_interest", "price_drop", "new_listing", "general"
]


class RecommendationCreate(BaseModel):
    recipient_email: EmailStr
    property_id: str
    message: str | None = Field(None, max_length=1000)
    subject: str | None = Field(None, max_length=200)
    priority: RecommendationPriority = "medium"
    category: RecommendationCategory = "general"
    sender_reason: str | None = Field(None, max_length=500)
    match_score: float | None = Field(None, ge=0, le=100)
    expires_at: datetime | None = None


class StatusUpdate(BaseModel):
    status: RecommendationStatus


class RecommendationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    sender_id: UUID
    recipient_id: UUID
    property_id: UUID
    message: str | None = None
    subject: str | None = None
    status: str
    priority: str
    category: str
    sent_at: datetime
    viewed_at: datetime | None = None
    responded_at: datetime | None = None
    contacted_at: datetime | None = None
    dismissed_at: datetime | None = None
    reminder_sent_at: datetime | None = None
    reminder_count: int
    sender_reason: str | None = None
    match_score: float | None = None
    context: dict[str, Any] = {}
    allow_follow_up: bool
    hide_from_sender: bool
    allow_reminders: bool
    preferred_contact_method: str
    is_active: bool
    expires_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class RecommendationDetail(RecommendationRead):
    sender: UserSummary | None = None
    recipient: UserSummary | None = None
    property: PropertySummary | None = None


class RecommendationList(BaseModel):
    recommendations: list[RecommendationDetail]
    pagination: PageInfo
    status_counts: dict[str, int] = {}


class ReminderResult(BaseModel):
    sent: bool
    reason: str | None = None
    reminder_count: int
    reminder_sent_at: datetime | None = None


class DirectionBreakdown(BaseModel):
    total: int
    by_status: dict[str, int]


class RecommendationAnalytics(BaseModel):
    sent: DirectionBreakdown
    received: DirectionBreakdown
    response_rate: float
    top_categories: dict[str, int]
    recent_activity: list[RecommendationDetail]
