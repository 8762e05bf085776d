"""
User Pydantic models.

A user owns zero or more buckets and authenticates to the owner API with a
locally issued JWT. The stored document keeps only the bcrypt hash of the
password; ``UserResponse`` is the shape that leaves the process.
"""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.utils.security import generate_id


class User(BaseModel):
    """
    Stored user document.

    Attributes:
        id: Random hex identifier (aliased from _id)
        email: Unique, lowercased email address
        password_hash: Bcrypt hash of the password
        created_at: Registration timestamp (UTC)
        updated_at: Last modification timestamp (UTC)
    """

    id: str = Field(default_factory=generate_id, alias="_id", description="User identifier")

    email: EmailStr = Field(..., description="Unique email address")

    password_hash: str = Field(..., description="Bcrypt hash of the user's password")

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Account registration timestamp (UTC)",
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Last profile modification timestamp (UTC)",
    )

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower() if isinstance(v, str) else v


class UserCreate(BaseModel):
    """Registration request. Strength rules are enforced by the user service."""

    email: EmailStr = Field(..., description="User email address")

    password: str = Field(..., min_length=1, description="Plaintext password")

    model_config = ConfigDict(
        json_schema_extra={"example": {"email": "owner@example.com", "password": "Secret123"}}
    )


class UserLogin(BaseModel):
    email: EmailStr = Field(..., description="User email address")

    password: str = Field(..., min_length=1, description="User password")


class UserUpdate(BaseModel):
    email: EmailStr | None = Field(default=None, description="New email address")


class PasswordChange(BaseModel):
    current_password: str = Field(..., min_length=1, description="Current password")

    new_password: str = Field(..., min_length=1, description="Replacement password")


class UserResponse(BaseModel):
    """
    User as returned to clients and held in the identity cache.

    Excludes the password hash.
    """

    id: str = Field(..., description="User ID")
    email: EmailStr = Field(..., description="User email")
    created_at: datetime = Field(..., description="Registration timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class TokenResponse(BaseModel):
    """JWT token response after registration or login."""

    access_token: str = Field(..., description="JWT access token")

    token_type: str = Field(default="bearer", description="Token type (always 'bearer')")

    expires_in: int = Field(..., description="Token expiration time in seconds")

    user: UserResponse = Field(..., description="Authenticated user information")
