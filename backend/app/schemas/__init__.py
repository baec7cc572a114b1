"""Pydantic schemas package."""

from app.schemas.common import ErrorResponse, MessageResponse, PageInfo
from app.schemas.user import (
    PreferencesUpdate,
    RecipientLookup,
    TokenResponse,
    UserLogin,
    UserRead,
    UserRegister,
    UserStats,
    UserSummary,
    UserUpdate,
)
from app.schemas.property import (
    PropertyCreate,
    PropertyList,
    PropertyRead,
    PropertySearch,
    PropertyStats,
    PropertySummary,
    PropertyUpdate,
    PropertyWithOwner,
)
from app.schemas.favorite import (
    FavoriteCreate,
    FavoriteDetail,
    FavoriteInsights,
    FavoriteList,
    FavoriteRead,
    FavoriteStatus,
    FavoriteUpdate,
    FavoriteWithProperty,
    TagRequest,
)
from app.schemas.recommendation import (
    RecommendationAnalytics,
    RecommendationCreate,
    RecommendationDetail,
    RecommendationList,
    RecommendationRead,
    ReminderResult,
    StatusUpdate,
)

__all__ = [
    # Common
    "ErrorResponse",
    "MessageResponse",
    "PageInfo",
    # User
    "PreferencesUpdate",
    "RecipientLookup",
    "TokenResponse",
    "UserLogin",
    "UserRead",
    "UserRegister",
    "UserStats",
    "UserSummary",
    "UserUpdate",
    # Property
    "PropertyCreate",
    "PropertyList",
    "PropertyRead",
    "PropertySearch",
    "PropertyStats",
    "PropertySummary",
    "PropertyUpdate",
    "PropertyWithOwner",
    # Favorite
    "FavoriteCreate",
    "FavoriteDetail",
    "FavoriteInsights",
    "FavoriteList",
    "FavoriteRead",
    "FavoriteStatus",
    "FavoriteUpdate",
    "FavoriteWithProperty",
    "TagRequest",
    # Recommendation
    "RecommendationAnalytics",
    "RecommendationCreate",
    "RecommendationDetail",
    "RecommendationList",
    "RecommendationRead",
    "ReminderResult",
    "StatusUpdate",
]
