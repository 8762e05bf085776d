"""Shared helpers for the MongoDB repositories."""

from datetime import UTC, datetime

from pymongo.errors import DuplicateKeyError

from app.core.exceptions import ConflictError


def utcnow() -> datetime:
    return datetime.now(UTC)


def conflict_from_duplicate(error: DuplicateKeyError, entity: str) -> ConflictError:
    """Translate a unique-index violation into a ConflictError naming the indexed fields."""
    key_pattern = (error.details or {}).get("keyPattern", {})
    fields = sorted(key_pattern)
    return ConflictError(f"{entity} already exists", fields=fields)
