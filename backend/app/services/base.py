"""Input checks shared by the services."""

from app.core.exceptions import ValidationError


def require_text(value: str | None, field: str) -> str:
    """
    Reject missing or whitespace-only input.

    Raises:
        ValidationError: If ``value`` is None, empty or only whitespace.
    """
    if not value or not value.strip():
        raise ValidationError(f"{field} is required", field=field)
    return value
