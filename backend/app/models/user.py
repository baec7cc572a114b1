"""User model — accounts, preferences and denormalized activity counters."""

from sqlalchemy import Column, String, Boolean, DateTime, Integer, JSON, Index
from sqlalchemy.orm import relationship

from app.models.base import Base, TimestampMixin, UUIDMixin


def default_preferences() -> dict:
    return {
        "notifications": {
            "email": True,
            "push": True,
            "recommendations": True,
            "favorites": True,
        },
        "privacy": {
            "show_profile": True,
            "show_contact_info": False,
        },
    }


class User(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "users"

    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    phone = Column(String(20))
    avatar = Column(String(500))
    role = Column(String(10), default="user", nullable=False)  # user, admin
    is_verified = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    last_login_at = Column(DateTime(timezone=True))

    preferences = Column(JSON, default=default_preferences, nullable=False)

    # Denormalized counts, adjusted after each write and overwritten by reconciliation
    properties_listed = Column(Integer, default=0, nullable=False)
    favorite_count = Column(Integer, default=0, nullable=False)
    recommendations_sent = Column(Integer, default=0, nullable=False)
    recommendations_received = Column(Integer, default=0, nullable=False)

    # Relationships
    properties = relationship(
        "Property",
        back_populates="owner",
        foreign_keys="Property.created_by",
        passive_deletes=True,
    )
    favorites = relationship("Favorite", back_populates="user", passive_deletes=True)

    __table_args__ = (
        Index("idx_users_name", "first_name", "last_name"),
        Index("idx_users_role", "role"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def wants_recommendations(self) -> bool:
        notifications = (self.preferences or {}).get("notifications", {})
        return bool(notifications.get("recommendations", True))

    def shows_profile(self) -> bool:
        privacy = (self.preferences or {}).get("privacy", {})
        return bool(privacy.get("show_profile", True))
