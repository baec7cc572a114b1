"""Pydantic schemas for Property model."""

from datetime import date, datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.common import PageInfo
from app.schemas.user import UserSummary

PropertyType = Literal["Apartment", "House", "Bungalow", "Villa", "Penthouse", "Studio", "Duplex", "Townhouse"]
FurnishedType = Literal["Furnished", "Semi-Furnished", "Unfurnished"]
ListedBy = Literal["Owner", "Dealer", "Builder"]
ListingType = Literal["rent", "sale"]
PriceType = Literal["total", "per_sqft", "monthly", "yearly"]


def _lowered(values: list[str] | None) -> list[str] | None:
    if values is None:
        return None
    return [value.strip().lower() for value in values if value and value.strip()]


class PropertyBase(BaseModel):
    """Listing attributes shared by create and read."""

    title: str = Field(min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)
    property_type: PropertyType
    listing_type: ListingType
    price: float = Field(gt=0)
    price_type: PriceType = "total"
    state: str = Field(min_length=1, max_length=100)
    city: str = Field(min_length=1, max_length=100)
    area: str | None = Field(None, max_length=100)
    pincode: str | None = Field(None, pattern=r"^\d{6}$")
    address: str | None = Field(None, max_length=500)
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    area_sqft: float = Field(gt=0)
    bedrooms: int = Field(ge=0, le=20)
    bathrooms: int = Field(ge=0, le=20)
    balconies: int = Field(0, ge=0)
    parking: int = Field(0, ge=0)
    amenities: list[str] = []
    tags: list[str] = []
    images: list[str] = []
    furnished: FurnishedType
    available_from: date
    listed_by: ListedBy
    color_theme: str = Field("#3B82F6", pattern=r"^#[0-9A-Fa-f]{6}$")
    rating: float = Field(0, ge=0, le=5)
    review_count: int = Field(0, ge=0)
    is_verified: bool = False
    is_featured: bool = False


class PropertyCreate(PropertyBase):
    @field_validator("amenities", "tags")
    @classmethod
    def normalize_lists(cls, values: list[str]) -> list[str]:
        return _lowered(values)


class PropertyUpdate(BaseModel):
    """Partial listing patch; unknown fields are kept for the allowlist check."""

    model_config = ConfigDict(extra="allow")

    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)
    property_type: PropertyType | None = None
    listing_type: ListingType | None = None
    price: float | None = Field(None, gt=0)
    price_type: PriceType | None = None
    state: str | None = None
    city: str | None = None
    area: str | None = None
    pincode: str | None = Field(None, pattern=r"^\d{6}$")
    address: str | None = None
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    area_sqft: float | None = Field(None, gt=0)
    bedrooms: int | None = Field(None, ge=0, le=20)
    bathrooms: int | None = Field(None, ge=0, le=20)
    balconies: int | None = Field(None, ge=0)
    parking: int | None = Field(None, ge=0)
    amenities: list[str] | None = None
    tags: list[str] | None = None
    images: list[str] | None = None
    furnished: FurnishedType | None = None
    available_from: date | None = None
    listed_by: ListedBy | None = None
    color_theme: str | None = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    rating: float | None = Field(None, ge=0, le=5)
    review_count: int | None = Field(None, ge=0)
    is_verified: bool | None = None
    is_featured: bool | None = None

    @field_validator("amenities", "tags")
    @classmethod
    def normalize_lists(cls, values: list[str] | None) -> list[str] | None:
        return _lowered(values)


class PropertyRead(PropertyBase):
    """Full property output."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    property_code: str
    views: int
    is_active: bool
    created_by: UUID
    updated_by: UUID | None = None
    price_per_sqft: int
    location_display: str
    created_at: datetime
    updated_at: datetime


class PropertyWithOwner(PropertyRead):
    owner: UserSummary | None = None


class PropertySummary(BaseModel):
    """Minimal property info embedded in favorites and recommendations."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    property_code: str
    title: str
    property_type: str
    listing_type: str
    price: float
    city: str
    state: str
    rating: float
    images: list[str] = []
    is_active: bool


class PropertyList(BaseModel):
    properties: list[PropertyRead]
    pagination: PageInfo


class PropertySearch(BaseModel):
    """Free-text search with optional structured filters."""

    q: str = Field(min_length=1, max_length=200)
    property_type: PropertyType | None = None
    listing_type: ListingType | None = None
    city: str | None = None
    state: str | None = None
    min_price: float | None = Field(None, ge=0)
    max_price: float | None = Field(None, ge=0)
    amenities: list[str] | None = None
    sort_by: str | None = None
    sort_order: Literal["asc", "desc"] = "desc"
    page: int = 1
    limit: int | None = None


class PropertyStats(BaseModel):
    total_properties: int
    active_properties: int
    verified_properties: int
    featured_properties: int
    by_type: dict[str, int]
    top_cities: dict[str, int]
    avg_price: float | None = None
    min_price: float | None = None
    max_price: float | None = None
