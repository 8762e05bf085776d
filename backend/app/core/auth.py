"""
Authentication Dependencies

Two kinds of callers reach the API:

- bucket owners, who present a locally issued HS256 JWT
- bucket clients, who present a bucket's public key

Both use ``Authorization: Bearer <credential>``. The dependencies here resolve
the credential to a user or a bucket and raise UnauthorizedError otherwise.

Usage:
    ```python
    @router.get("/buckets")
    async def list_buckets(user: UserResponse = Depends(get_current_user)): ...

    @router.get("/public/files")
    async def list_files(bucket: Bucket = Depends(get_bucket_from_public_key)): ...
    ```
"""

import logging

from datetime import timedelta

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.config import Settings
from app.core.exceptions import UnauthorizedError
from app.models.bucket import Bucket
from app.models.user import User, UserResponse
from app.services import ServiceContainer
from app.utils.security import generate_jwt_token, validate_jwt_token


logger = logging.getLogger(__name__)

TOKEN_TYPE = "access"

owner_bearer = HTTPBearer(
    scheme_name="OwnerToken",
    description="JWT issued by /api/v1/auth/login",
    auto_error=False,
)

bucket_bearer = HTTPBearer(
    scheme_name="BucketKey",
    description="A bucket's public key",
    auto_error=False,
)


def get_services(request: Request) -> ServiceContainer:
    """The service container built by the application lifespan."""
    return request.app.state.services


def create_access_token(user: User, settings: Settings) -> str:
    """Sign a JWT for ``user`` carrying ``sub``, ``email`` and ``type`` claims."""
    return generate_jwt_token(
        {"sub": user.id, "email": user.email, "type": TOKEN_TYPE},
        settings.secret_key,
        expires_delta=timedelta(hours=settings.jwt_expiration_hours),
        algorithm=settings.jwt_algorithm,
    )


def _credential(credentials: HTTPAuthorizationCredentials | None) -> str:
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Missing bearer credential")
    return credentials.credentials


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(owner_bearer),
    services: ServiceContainer = Depends(get_services),
) -> UserResponse:
    """
    Resolve an owner JWT to the user it names.

    The user lookup goes through the identity cache.

    Raises:
        UnauthorizedError: If the token is missing, invalid, expired or names no user.
    """
    token = _credential(credentials)
    settings = services.settings
    payload = validate_jwt_token(token, settings.secret_key, settings.jwt_algorithm)
    if payload is None or payload.get("type") != TOKEN_TYPE or not payload.get("sub"):
        raise UnauthorizedError("Invalid token")

    user = await services.users.get_cached_user(payload["sub"])
    if user is None:
        logger.warning("Token for unknown user %s", payload["sub"])
        raise UnauthorizedError("Invalid token")
    return user


async def get_bucket_from_public_key(
    credentials: HTTPAuthorizationCredentials | None = Depends(bucket_bearer),
    services: ServiceContainer = Depends(get_services),
) -> Bucket:
    """
    Resolve a bucket public key to its bucket.

    Raises:
        UnauthorizedError: If the key is missing or matches no bucket.
    """
    bucket = await services.buckets.get_bucket_by_public_key(_credential(credentials))
    if bucket is None:
        raise UnauthorizedError("Invalid bucket key")
    return bucket
