"""Entity lifecycle rules — recommendation status progression, reminder eligibility, update allowlists."""

from datetime import datetime, timedelta

from app.config import get_settings
from app.exceptions import InvalidInputError
from app.models.base import as_utc, utcnow

# Profile fields a user may change about themselves
USER_UPDATE_FIELDS = frozenset({"first_name", "last_name", "phone", "avatar", "preferences"})

FAVORITE_UPDATE_FIELDS = frozenset(
    {"notes", "tags", "favorite_type", "priority", "reminder_date", "is_notification_enabled"}
)

# Listing attributes only; identity, ownership, counters and the active flag are never patchable
PROPERTY_UPDATE_FIELDS = frozenset(
    {
        "title", "description", "property_type", "listing_type", "price", "price_type",
        "state", "city", "area", "pincode", "address", "latitude", "longitude",
        "area_sqft", "bedrooms", "bathrooms", "balconies", "parking",
        "amenities", "tags", "images", "furnished", "available_from", "listed_by",
        "color_theme", "rating", "review_count", "is_verified", "is_featured",
    }
)

# status -> statuses reachable from it
TRANSITIONS = {
    "pending": {"viewed", "interested", "not_interested", "contacted", "dismissed"},
    "viewed": {"interested", "not_interested", "contacted", "dismissed"},
    "interested": {"contacted"},
    "not_interested": set(),
    "contacted": set(),
    "dismissed": set(),
}

# status -> timestamp columns stamped on first arrival; a response implies a view
STATUS_TIMESTAMPS = {
    "viewed": ("viewed_at",),
    "interested": ("viewed_at", "responded_at"),
    "not_interested": ("viewed_at", "responded_at"),
    "contacted": ("viewed_at", "responded_at", "contacted_at"),
    "dismissed": ("dismissed_at",),
}


def check_allowed_fields(updates: dict, allowed: frozenset) -> None:
    """Reject the whole patch if any field is outside the allowlist."""
    if not updates:
        raise InvalidInputError("No fields to update", code="INVALID_UPDATES")
    disallowed = sorted(set(updates) - allowed)
    if disallowed:
        raise InvalidInputError(
            f"Fields not allowed in update: {', '.join(disallowed)}",
            code="INVALID_UPDATES",
        )


def apply_status(recommendation, new_status: str, now: datetime | None = None) -> bool:
    """Move a recommendation to ``new_status``.

    Returns True when anything changed. Re-applying the current status and
    marking an already-progressed recommendation as viewed are no-ops;
    every other backwards or sideways move raises InvalidInputError.
    """
    current = recommendation.status
    if new_status == current:
        return False
    if new_status == "viewed" and current != "pending":
        if current == "dismissed":
            raise InvalidInputError(
                "Recommendation has been dismissed",
                code="INVALID_STATUS_TRANSITION",
            )
        return False
    if new_status not in TRANSITIONS.get(current, set()):
        raise InvalidInputError(
            f"Cannot change status from {current} to {new_status}",
            code="INVALID_STATUS_TRANSITION",
        )

    now = now or utcnow()
    recommendation.status = new_status
    # Interaction timestamps are stamped once, on first occurrence
    for column in STATUS_TIMESTAMPS.get(new_status, ()):
        if getattr(recommendation, column) is None:
            setattr(recommendation, column, now)
    if new_status == "dismissed":
        recommendation.is_active = False
    return True


def default_expiry(now: datetime | None = None) -> datetime:
    return (now or utcnow()) + timedelta(days=get_settings().recommendation_expiry_days)


def is_expired(recommendation, now: datetime | None = None) -> bool:
    expires_at = as_utc(recommendation.expires_at)
    return expires_at is not None and expires_at <= (now or utcnow())


def reminder_block_reason(recommendation, now: datetime | None = None) -> str | None:
    """Return why a reminder cannot be sent, or None when it can."""
    settings = get_settings()
    now = now or utcnow()
    if not recommendation.allow_reminders:
        return "REMINDERS_DISABLED"
    if recommendation.status != "pending":
        return "NOT_PENDING"
    if not recommendation.is_active or is_expired(recommendation, now):
        return "EXPIRED"
    if (recommendation.reminder_count or 0) >= settings.reminder_max_count:
        return "REMINDER_LIMIT_REACHED"
    last_sent = as_utc(recommendation.reminder_sent_at)
    if last_sent is not None and now - last_sent < timedelta(days=settings.reminder_cooldown_days):
        return "REMINDER_COOLDOWN"
    return None


def can_send_reminder(recommendation, now: datetime | None = None) -> bool:
    return reminder_block_reason(recommendation, now) is None


def record_reminder(recommendation, now: datetime | None = None) -> None:
    recommendation.reminder_sent_at = now or utcnow()
    recommendation.reminder_count = (recommendation.reminder_count or 0) + 1
