"""Property model — listings owned by a single user."""

from sqlalchemy import (
    Column,
    String,
    Float,
    Boolean,
    Date,
    Text,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Uuid,
)
from sqlalchemy.orm import relationship

from app.models.base import Base, TimestampMixin, UUIDMixin

PROPERTY_TYPES = ("Apartment", "House", "Bungalow", "Villa", "Penthouse", "Studio", "Duplex", "Townhouse")
FURNISHED_TYPES = ("Furnished", "Semi-Furnished", "Unfurnished")
LISTED_BY_TYPES = ("Owner", "Dealer", "Builder")
LISTING_TYPES = ("rent", "sale")
PRICE_TYPES = ("total", "per_sqft", "monthly", "yearly")


class Property(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "properties"

    # Human-facing business identifier, e.g. PROP4821
    property_code = Column(String(16), unique=True, nullable=False, index=True)

    # Core
    title = Column(String(200), nullable=False, index=True)
    description = Column(Text)
    property_type = Column(String(20), nullable=False, index=True)
    listing_type = Column(String(10), nullable=False, index=True)  # rent, sale
    price = Column(Float, nullable=False, index=True)
    price_type = Column(String(20), default="total", nullable=False)

    # Location
    state = Column(String(100), nullable=False, index=True)
    city = Column(String(100), nullable=False, index=True)
    area = Column(String(100))
    pincode = Column(String(6))
    address = Column(String(500))
    latitude = Column(Float)
    longitude = Column(Float)

    # Size and layout
    area_sqft = Column(Float, nullable=False, index=True)
    bedrooms = Column(Integer, nullable=False, index=True)
    bathrooms = Column(Integer, nullable=False, index=True)
    balconies = Column(Integer, default=0)
    parking = Column(Integer, default=0)

    # Multi-value attributes (lower-cased)
    amenities = Column(JSON, default=list, nullable=False)
    tags = Column(JSON, default=list, nullable=False)
    images = Column(JSON, default=list, nullable=False)

    furnished = Column(String(20), nullable=False, index=True)
    available_from = Column(Date, nullable=False, index=True)
    listed_by = Column(String(10), nullable=False, index=True)
    color_theme = Column(String(7), default="#3B82F6")

    # Engagement / moderation
    rating = Column(Float, default=0, nullable=False, index=True)
    review_count = Column(Integer, default=0, nullable=False)
    views = Column(Integer, default=0, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False, index=True)
    is_featured = Column(Boolean, default=False, nullable=False, index=True)

    # Soft delete flips is_active
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    # Ownership (created_by is immutable after creation)
    created_by = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    updated_by = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))

    # Relationships
    owner = relationship("User", back_populates="properties", foreign_keys=[created_by])

    __table_args__ = (
        Index("idx_property_city_state", "city", "state"),
        Index("idx_property_type_listing", "property_type", "listing_type"),
        Index("idx_property_price_area", "price", "area_sqft"),
        Index("idx_property_beds_baths", "bedrooms", "bathrooms"),
        Index("idx_property_rating", "rating", "review_count"),
        Index("idx_property_active_created", "is_active", "created_at"),
    )

    def is_owned_by(self, user_id) -> bool:
        return str(self.created_by) == str(user_id)

    @property
    def price_per_sqft(self) -> int:
        if self.area_sqft and self.area_sqft > 0:
            return round(self.price / self.area_sqft)
        return 0

    @property
    def location_display(self) -> str:
        return ", ".join(part for part in (self.area, self.city, self.state) if part)
