"""
Error taxonomy for the bucket gateway.

Every failure the services raise is one of the classes below. Each class carries
a stable ``kind`` tag and the HTTP status it maps to, so the transport boundary
dispatches on the class and never inspects message text.
"""

from typing import Any

from fastapi import status


class GatewayError(Exception):
    """Base exception for all gateway errors."""

    kind = "internal"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.kind, "message": self.message, "details": self.details}


class ValidationError(GatewayError):
    """Raised when input is malformed or missing. Always caller-fixable."""

    kind = "validation"
    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedError(GatewayError):
    """Raised when a bucket key, token or credential does not resolve."""

    kind = "unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED


class NotFoundError(GatewayError):
    """Raised when a referenced user, bucket or file does not exist."""

    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(GatewayError):
    """Raised on uniqueness violations and on state violations such as deleting a non-empty bucket."""

    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT


class StorageError(GatewayError):
    """Raised when the object store fails."""

    kind = "storage"
    status_code = status.HTTP_502_BAD_GATEWAY


class ConsistencyError(GatewayError):
    """Raised when a counter update failed after its record mutation succeeded."""

    kind = "consistency"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


__all__ = [
    "ConflictError",
    "ConsistencyError",
    "GatewayError",
    "NotFoundError",
    "StorageError",
    "UnauthorizedError",
    "ValidationError",
]
