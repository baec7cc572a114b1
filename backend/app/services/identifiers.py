"""Identifier parsing for caller-supplied ids."""

import re
from uuid import UUID

from app.exceptions import InvalidInputError

PROPERTY_CODE_RE = re.compile(r"^PROP\d{4}$")


def parse_uuid(value: str | UUID, label: str = "id") -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (ValueError, AttributeError, TypeError):
        raise InvalidInputError(f"Invalid {label} format", code="INVALID_ID")


def parse_property_ref(value: str) -> UUID | str:
    """A property is addressed by storage UUID or by its PROP business code."""
    value = str(value).strip()
    if PROPERTY_CODE_RE.match(value.upper()):
        return value.upper()
    return parse_uuid(value, "property id")
