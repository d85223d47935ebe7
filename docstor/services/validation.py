"""Validation helpers shared by all services."""

import uuid

from docstor.exceptions import ValidationError


def validate_id(value: "uuid.UUID | str", field: str = "id") -> uuid.UUID:
    """
    Validate an identifier and return it as a UUID.

    Args:
        value: UUID instance or its string form
        field: Field name reported in the error

    Raises:
        ValidationError: If value is missing or not a UUID
    """
    if isinstance(value, uuid.UUID):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required and must be a UUID", field)
    try:
        return uuid.UUID(value.strip())
    except ValueError as e:
        raise ValidationError(f"{field} must be a valid UUID", field) from e


def validate_optional_id(value: "uuid.UUID | str | None", field: str) -> uuid.UUID | None:
    """Like validate_id, but None and empty strings pass through as None."""
    if value is None or value == "":
        return None
    return validate_id(value, field)
