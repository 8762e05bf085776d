"""
Owner Authentication API Router

Endpoints:
- POST /register: Create an owner account and return an access token
- POST /login: Exchange email and password for an access token
- GET /me: Current owner profile
- PATCH /me: Change email
- POST /me/password: Change password
- DELETE /me: Delete the account (only when no buckets are owned)
"""

import logging

from fastapi import APIRouter, Depends, status

from app.core.auth import create_access_token, get_current_user, get_services
from app.models.error import ErrorResponse
from app.models.user import (
    PasswordChange,
    TokenResponse,
    User,
    UserCreate,
    UserLogin,
    UserResponse,
    UserUpdate,
)
from app.services import ServiceContainer


logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["authentication"],
    responses={401: {"description": "Not authenticated", "model": ErrorResponse}},
)


def _token_response(user: User, services: ServiceContainer) -> TokenResponse:
    settings = services.settings
    return TokenResponse(
        access_token=create_access_token(user, settings),
        expires_in=settings.jwt_expiration_hours * 3600,
        user=UserResponse.from_user(user),
    )


@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register an owner account",
    responses={
        400: {"description": "Weak password", "model": ErrorResponse},
        409: {"description": "Email already registered", "model": ErrorResponse},
    },
)
async def register(
    request: UserCreate,
    services: ServiceContainer = Depends(get_services),
) -> TokenResponse:
    user = await services.users.register(request.email, request.password)
    return _token_response(user, services)


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Authenticate an owner",
    description="Returns a JWT to send as `Authorization: Bearer <token>` on owner endpoints.",
)
async def login(
    request: UserLogin,
    services: ServiceContainer = Depends(get_services),
) -> TokenResponse:
    user = await services.users.authenticate(request.email, request.password)
    logger.info("User %s logged in", user.id)
    return _token_response(user, services)


@router.get("/me", response_model=UserResponse, summary="Get current owner profile")
async def get_me(user: UserResponse = Depends(get_current_user)) -> UserResponse:
    return user


@router.patch(
    "/me",
    response_model=UserResponse,
    summary="Update current owner profile",
    responses={409: {"description": "Email already registered", "model": ErrorResponse}},
)
async def update_me(
    request: UserUpdate,
    user: UserResponse = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> UserResponse:
    updated = await services.users.update_user(user.id, email=request.email)
    return UserResponse.from_user(updated)


@router.post(
    "/me/password",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Change password",
    responses={400: {"description": "Weak or unchanged password", "model": ErrorResponse}},
)
async def change_password(
    request: PasswordChange,
    user: UserResponse = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> None:
    await services.users.change_password(user.id, request.current_password, request.new_password)


@router.delete(
    "/me",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete account",
    responses={409: {"description": "Account still owns buckets", "model": ErrorResponse}},
)
async def delete_me(
    user: UserResponse = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> None:
    await services.users.delete_user(user.id)
