"""Pydantic schemas for User model."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class NotificationPreferences(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: bool | None = None
    push: bool | None = None
    recommendations: bool | None = None
    favorites: bool | None = None


class PrivacyPreferences(BaseModel):
    model_config = ConfigDict(extra="forbid")

    show_profile: bool | None = None
    show_contact_info: bool | None = None


class PreferencesUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    notifications: NotificationPreferences | None = None
    privacy: PrivacyPreferences | None = None


class UserRegister(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    phone: str | None = Field(None, max_length=20)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserUpdate(BaseModel):
    """Profile patch. Unknown fields are kept so the allowlist can reject them wholesale."""

    model_config = ConfigDict(extra="allow")

    first_name: str | None = Field(None, min_length=1, max_length=50)
    last_name: str | None = Field(None, min_length=1, max_length=50)
    phone: str | None = Field(None, max_length=20)
    avatar: str | None = Field(None, max_length=500)
    preferences: PreferencesUpdate | None = None


class UserStats(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    properties_listed: int = 0
    favorite_count: int = 0
    recommendations_sent: int = 0
    recommendations_received: int = 0


class UserRead(BaseModel):
    """Full account view for the owner."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    first_name: str
    last_name: str
    full_name: str
    phone: str | None = None
    avatar: str | None = None
    role: str
    is_verified: bool
    is_active: bool
    last_login_at: datetime | None = None
    preferences: dict
    properties_listed: int
    favorite_count: int
    recommendations_sent: int
    recommendations_received: int
    created_at: datetime
    updated_at: datetime


class UserSummary(BaseModel):
    """Public identity embedded in other resources."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    first_name: str
    last_name: str
    email: str
    is_verified: bool = False


class RecipientLookup(BaseModel):
    id: UUID
    first_name: str
    last_name: str
    email: str
    avatar: str | None = None
    full_name: str | None = None
    can_receive_recommendations: bool = True


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserRead
