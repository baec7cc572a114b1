"""Initial schema — users, properties, favorites, recommendations.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # Users
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False, index=True),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(50), nullable=False),
        sa.Column("last_name", sa.String(50), nullable=False),
        sa.Column("phone", sa.String(20)),
        sa.Column("avatar", sa.String(500)),
        sa.Column("role", sa.String(10), nullable=False, server_default="user"),
        sa.Column("is_verified", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("true"), index=True),
        sa.Column("last_login_at", sa.DateTime(timezone=True)),
        sa.Column("preferences", postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("properties_listed", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("favorite_count", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("recommendations_sent", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("recommendations_received", sa.Integer, nullable=False, server_default=sa.text("0")),
        *_timestamps(),
    )
    op.create_index("idx_users_name", "users", ["first_name", "last_name"])
    op.create_index("idx_users_role", "users", ["role"])

    # Properties
    op.create_table(
        "properties",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("property_code", sa.String(16), unique=True, nullable=False, index=True),
        sa.Column("title", sa.String(200), nullable=False, index=True),
        sa.Column("description", sa.Text),
        sa.Column("property_type", sa.String(20), nullable=False, index=True),
        sa.Column("listing_type", sa.String(10), nullable=False, index=True),
        sa.Column("price", sa.Float, nullable=False, index=True),
        sa.Column("price_type", sa.String(20), nullable=False, server_default="total"),
        sa.Column("state", sa.String(100), nullable=False, index=True),
        sa.Column("city", sa.String(100), nullable=False, index=True),
        sa.Column("area", sa.String(100)),
        sa.Column("pincode", sa.String(6)),
        sa.Column("address", sa.String(500)),
        sa.Column("latitude", sa.Float),
        sa.Column("longitude", sa.Float),
        sa.Column("area_sqft", sa.Float, nullable=False, index=True),
        sa.Column("bedrooms", sa.Integer, nullable=False, index=True),
        sa.Column("bathrooms", sa.Integer, nullable=False, index=True),
        sa.Column("balconies", sa.Integer, server_default=sa.text("0")),
        sa.Column("parking", sa.Integer, server_default=sa.text("0")),
        sa.Column("amenities", postgresql.JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("tags", postgresql.JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("images", postgresql.JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("furnished", sa.String(20), nullable=False, index=True),
        sa.Column("available_from", sa.Date, nullable=False, index=True),
        sa.Column("listed_by", sa.String(10), nullable=False, index=True),
        sa.Column("color_theme", sa.String(7), server_default="#3B82F6"),
        sa.Column("rating", sa.Float, nullable=False, server_default=sa.text("0"), index=True),
        sa.Column("review_count", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("views", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("is_verified", sa.Boolean, nullable=False, server_default=sa.text("false"), index=True),
        sa.Column("is_featured", sa.Boolean, nullable=False, server_default=sa.text("false"), index=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("true"), index=True),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("updated_by", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL")),
        *_timestamps(),
    )
    op.create_index("idx_property_city_state", "properties", ["city", "state"])
    op.create_index("idx_property_type_listing", "properties", ["property_type", "listing_type"])
    op.create_index("idx_property_price_area", "properties", ["price", "area_sqft"])
    op.create_index("idx_property_beds_baths", "properties", ["bedrooms", "bathrooms"])
    op.create_index("idx_property_rating", "properties", ["rating", "review_count"])
    op.create_index("idx_property_active_created", "properties", ["is_active", "created_at"])
    # Free-text search over the listing's descriptive columns
    op.execute(
        "CREATE INDEX idx_property_search ON properties USING gin ("
        "to_tsvector('english', concat_ws(' ', title, description, city, state, area)))"
    )
    op.execute("CREATE INDEX idx_property_amenities ON properties USING gin (amenities)")
    op.execute("CREATE INDEX idx_property_tags ON properties USING gin (tags)")

    # Favorites
    op.create_table(
        "favorites",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("property_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("notes", sa.Text),
        sa.Column("tags", postgresql.JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("favorite_type", sa.String(20), nullable=False, server_default="interested"),
        sa.Column("priority", sa.String(10), nullable=False, server_default="medium"),
        sa.Column("reminder_date", sa.DateTime(timezone=True)),
        sa.Column("is_notification_enabled", sa.Boolean, nullable=False, server_default=sa.text("true")),
        sa.Column("price_when_added", sa.Float, nullable=False),
        sa.Column("added_from_page", sa.String(50), server_default="other"),
        sa.Column("view_count", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("last_viewed_at", sa.DateTime(timezone=True)),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "property_id", name="uq_favorites_user_property"),
    )

    # Recommendations
    op.create_table(
        "recommendations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("sender_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("recipient_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("property_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("message", sa.Text),
        sa.Column("subject", sa.String(200)),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending", index=True),
        sa.Column("priority", sa.String(10), nullable=False, server_default="medium", index=True),
        sa.Column("category", sa.String(20), nullable=False, server_default="general", index=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("viewed_at", sa.DateTime(timezone=True)),
        sa.Column("responded_at", sa.DateTime(timezone=True)),
        sa.Column("contacted_at", sa.DateTime(timezone=True)),
        sa.Column("dismissed_at", sa.DateTime(timezone=True)),
        sa.Column("reminder_sent_at", sa.DateTime(timezone=True)),
        sa.Column("reminder_count", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("sender_reason", sa.String(500)),
        sa.Column("match_score", sa.Float),
        sa.Column("context", postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("allow_follow_up", sa.Boolean, nullable=False, server_default=sa.text("true")),
        sa.Column("hide_from_sender", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("allow_reminders", sa.Boolean, nullable=False, server_default=sa.text("true")),
        sa.Column("preferred_contact_method", sa.String(10), nullable=False, server_default="in_app"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("true"), index=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), index=True),
        *_timestamps(),
    )
    op.create_index("idx_recommendations_recipient_status", "recommendations", ["recipient_id", "status"])
    op.create_index("idx_recommendations_sender_created", "recommendations", ["sender_id", "created_at"])
    op.create_index("idx_recommendations_property_recipient", "recommendations", ["property_id", "recipient_id"])
    # One active recommendation per (sender, recipient, property); dismissed or expired rows may repeat
    op.create_index(
        "uq_recommendations_active_triple",
        "recommendations",
        ["sender_id", "recipient_id", "property_id"],
        unique=True,
        postgresql_where=sa.text("is_active"),
    )


def downgrade() -> None:
    op.drop_table("recommendations")
    op.drop_table("favorites")
    op.execute("DROP INDEX IF EXISTS idx_property_tags")
    op.execute("DROP INDEX IF EXISTS idx_property_amenities")
    op.execute("DROP INDEX IF EXISTS idx_property_search")
    op.drop_table("properties")
    op.drop_table("users")
