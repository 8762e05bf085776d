"""
Security Utilities Module

Password hashing, JWT encoding for bucket owners, credential generation and
bearer header parsing.

Bucket keys and file identifiers double as bearer credentials and object-store
keys, so they are drawn from ``uuid4`` (122 bits of randomness).
"""

import logging
import uuid

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError
from passlib.context import CryptContext


logger = logging.getLogger(__name__)

# ==============================================================================
# PASSWORD HASHING
# ==============================================================================

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=12)

MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_LENGTH = 128


def hash_password(password: str) -> str:
    """
    Hash a plaintext password using bcrypt.

    Raises:
        ValueError: If the password is empty.
    """
    if not password:
        raise ValueError("Password cannot be empty")
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a plaintext password against a stored bcrypt hash."""
    if not plain_password or not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        logger.warning("Password verification failed: malformed hash")
        return False


def password_strength_error(password: str) -> str | None:
    """
    Describe why a password is too weak, or return None if it is acceptable.

    Requirements: 6 to 128 characters with at least one uppercase letter,
    one lowercase letter and one digit.
    """
    if len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
    if len(password) > MAX_PASSWORD_LENGTH:
        return f"Password must be at most {MAX_PASSWORD_LENGTH} characters long"
    if not any(c.isupper() for c in password):
        return "Password must contain at least one uppercase letter"
    if not any(c.islower() for c in password):
        return "Password must contain at least one lowercase letter"
    if not any(c.isdigit() for c in password):
        return "Password must contain at least one digit"
    return None


# ==============================================================================
# JWT
# ==============================================================================


def generate_jwt_token(
    data: dict[str, Any],
    secret_key: str,
    expires_delta: timedelta,
    algorithm: str = "HS256",
) -> str:
    """
    Encode ``data`` as a signed JWT with ``exp`` and ``iat`` claims.

    Raises:
        ValueError: If secret_key is empty.
    """
    if not secret_key:
        raise ValueError("Secret key cannot be empty")

    now = datetime.now(UTC)
    payload = data.copy()
    payload.update({"exp": now + expires_delta, "iat": now})
    return jwt.encode(payload, secret_key, algorithm=algorithm)


def validate_jwt_token(token: str, secret_key: str, algorithm: str = "HS256") -> dict[str, Any] | None:
    """
    Decode and verify a JWT.

    Returns:
        The payload if the token is valid, None otherwise.
    """
    if not token or not secret_key:
        return None
    try:
        return jwt.decode(
            token,
            secret_key,
            algorithms=[algorithm],
            options={"verify_exp": True, "require_exp": True, "require_iat": True},
        )
    except ExpiredSignatureError:
        logger.info("Token validation failed: token has expired")
        return None
    except JWTError as e:
        logger.warning("Token validation failed: %s", e)
        return None


# ==============================================================================
# IDENTIFIERS AND KEYS
# ==============================================================================

PUBLIC_KEY_PREFIX = "pub"
PRIVATE_KEY_PREFIX = "prv"


def generate_id() -> str:
    """Random 32-character hex identifier."""
    return uuid.uuid4().hex


def generate_bucket_key(prefix: str) -> str:
    """
    Generate a bucket credential such as ``pub_9f86d081884c4d63a5e0...``.

    >>> generate_bucket_key(PUBLIC_KEY_PREFIX).startswith("pub_")
    True
    """
    return f"{prefix}_{uuid.uuid4().hex}"


def generate_app_id(prefix: str) -> str:
    """Uppercase alphanumeric tag used to make generated file names unique."""
    return f"{prefix}{uuid.uuid4().hex[:16]}".upper()


def extract_token_from_header(authorization_header: str | None) -> str | None:
    """
    Extract the credential from an ``Authorization: Bearer <token>`` header.

    Returns:
        The token string, or None if the header is missing or malformed.
    """
    if not authorization_header:
        return None

    parts = authorization_header.split()
    if len(parts) != 2:
        return None

    scheme, token = parts
    if scheme.lower() != "bearer":
        return None
    return token


__all__ = [
    "PRIVATE_KEY_PREFIX",
    "PUBLIC_KEY_PREFIX",
    "extract_token_from_header",
    "generate_app_id",
    "generate_bucket_key",
    "generate_id",
    "generate_jwt_token",
    "hash_password",
    "password_strength_error",
    "pwd_context",
    "validate_jwt_token",
    "verify_password",
]
