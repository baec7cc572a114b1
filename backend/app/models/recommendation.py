"""Recommendation model — a directed user-to-user suggestion about a property."""

from sqlalchemy import (
    Column,
    String,
    Text,
    Float,
    Boolean,
    DateTime,
    Integer,
    JSON,
    ForeignKey,
    Index,
    Uuid,
    text,
)
from sqlalchemy.orm import relationship

from app.models.base import Base, TimestampMixin, UUIDMixin, utcnow

RECOMMENDATION_STATUSES = ("pending", "viewed", "interested", "not_interested", "contacted", "dismissed")
RECOMMENDATION_PRIORITIES = ("low", "medium", "high", "urgent")
RECOMMENDATION_CATEGORIES = ("suggestion", "perfect_match", "similar_interest", "price_drop", "new_listing", "general")
CONTACT_METHODS = ("email", "in_app", "phone")


class Recommendation(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "recommendations"

    sender_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    recipient_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    property_id = Column(Uuid(as_uuid=True), ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True)

    message = Column(Text)
    subject = Column(String(200))
    status = Column(String(20), default="pending", nullable=False, index=True)
    priority = Column(String(10), default="medium", nullable=False, index=True)
    category = Column(String(20), default="general", nullable=False, index=True)

    # Interaction tracking
    sent_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    viewed_at = Column(DateTime(timezone=True))
    responded_at = Column(DateTime(timezone=True))
    contacted_at = Column(DateTime(timezone=True))
    dismissed_at = Column(DateTime(timezone=True))
    reminder_sent_at = Column(DateTime(timezone=True))
    reminder_count = Column(Integer, default=0, nullable=False)

    # Metadata
    sender_reason = Column(String(500))
    match_score = Column(Float)
    context = Column(JSON, default=dict, nullable=False)  # location snapshot, tags

    # Communication settings
    allow_follow_up = Column(Boolean, default=True, nullable=False)
    hide_from_sender = Column(Boolean, default=False, nullable=False)
    allow_reminders = Column(Boolean, default=True, nullable=False)
    preferred_contact_method = Column(String(10), default="in_app", nullable=False)

    is_active = Column(Boolean, default=True, nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), index=True)

    # Relationships
    sender = relationship("User", foreign_keys=[sender_id])
    recipient = relationship("User", foreign_keys=[recipient_id])
    property = relationship("Property")

    __table_args__ = (
        Index("idx_recommendations_recipient_status", "recipient_id", "status"),
        Index("idx_recommendations_sender_created", "sender_id", "created_at"),
        Index("idx_recommendations_property_recipient", "property_id", "recipient_id"),
        # One active recommendation per (sender, recipient, property)
        Index(
            "uq_recommendations_active_triple",
            "sender_id",
            "recipient_id",
            "property_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )
