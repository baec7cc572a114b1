"""Pydantic schemas for Favorite model."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.common import PageInfo
from app.schemas.property import PropertySummary

FavoriteType = Literal["interested", "watchlist", "shortlisted", "considering"]
FavoritePriority = Literal["low", "medium", "high"]


class FavoriteCreate(BaseModel):
    notes: str | None = Field(None, max_length=500)
    tags: list[str] = []
    favorite_type: FavoriteType = "interested"
    priority: FavoritePriority = "medium"
    reminder_date: datetime | None = None
    is_notification_enabled: bool = True
    added_from_page: str = Field("other", max_length=50)


class FavoriteUpdate(BaseModel):
    """Favorite patch. Unknown fields are kept so the allowlist can reject them wholesale."""

    model_config = ConfigDict(extra="allow")

    notes: str | None = Field(None, max_length=500)
    tags: list[str] | None = None
    favorite_type: FavoriteType | None = None
    priority: FavoritePriority | None = None
    reminder_date: datetime | None = None
    is_notification_enabled: bool | None = None


class TagRequest(BaseModel):
    tag: str = Field(min_length=1, max_length=30)


class FavoriteRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    property_id: UUID
    notes: str | None = None
    tags: list[str] = []
    favorite_type: str
    priority: str
    reminder_date: datetime | None = None
    is_notification_enabled: bool
    price_when_added: float
    added_from_page: str | None = None
    view_count: int
    last_viewed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class FavoriteWithProperty(FavoriteRead):
    property: PropertySummary | None = None


class FavoriteDetail(FavoriteWithProperty):
    """Favorite with price drift against the snapshot taken when it was added."""

    current_price: float | None = None
    price_change: float | None = None
    price_change_percent: float | None = None


class FavoriteList(BaseModel):
    favorites: list[FavoriteWithProperty]
    pagination: PageInfo


class FavoriteStatus(BaseModel):
    is_favorited: bool
    favorite_id: UUID | None = None
    favorite_type: str | None = None
    priority: str | None = None


class FavoriteInsights(BaseModel):
    total_favorites: int
    by_type: dict[str, int]
    by_priority: dict[str, int]
    recent: list[FavoriteWithProperty]
    popular_tags: dict[str, int]
    upcoming_reminders: list[FavoriteWithProperty]
