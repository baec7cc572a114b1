"""Favorite model — user bookmarks of properties with a price snapshot."""

from sqlalchemy import Column, String, Text, Float, Boolean, DateTime, Integer, JSON, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from app.models.base import Base, TimestampMixin, UUIDMixin

FAVORITE_TYPES = ("interested", "watchlist", "shortlisted", "considering")
FAVORITE_PRIORITIES = ("low", "medium", "high")


class Favorite(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "favorites"

    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    property_id = Column(Uuid(as_uuid=True), ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True)

    notes = Column(Text)
    tags = Column(JSON, default=list, nullable=False)
    favorite_type = Column(String(20), default="interested", nullable=False)
    priority = Column(String(10), default="medium", nullable=False)
    reminder_date = Column(DateTime(timezone=True))
    is_notification_enabled = Column(Boolean, default=True, nullable=False)

    # Snapshot taken at favoriting time, used to detect price drift
    price_when_added = Column(Float, nullable=False)
    added_from_page = Column(String(50), default="other")
    view_count = Column(Integer, default=0, nullable=False)
    last_viewed_at = Column(DateTime(timezone=True))

    # Relationships
    user = relationship("User", back_populates="favorites")
    property = relationship("Property")

    __table_args__ = (
        UniqueConstraint("user_id", "property_id", name="uq_favorites_user_property"),
    )
