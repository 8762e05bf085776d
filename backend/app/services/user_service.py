"""
User Service Module

Registration, credential checks and profile changes for bucket owners. User
lookups made on every authenticated request go through the cache; any change
to a user invalidates its entry.

A user who still owns buckets cannot be deleted. Buckets are never removed
implicitly because their objects would be orphaned in the store.
"""

import logging

from app.core.exceptions import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from app.models.user import User, UserResponse
from app.repositories.bucket_repository import BucketRepository
from app.repositories.user_repository import UserRepository
from app.services.base import require_text
from app.utils.cache import Cache, CacheKeys, cache_key
from app.utils.security import hash_password, password_strength_error, verify_password


logger = logging.getLogger(__name__)


class UserService:
    def __init__(
        self,
        user_repository: UserRepository,
        bucket_repository: BucketRepository,
        cache: Cache,
        user_cache_ttl_seconds: int = 300,
    ) -> None:
        self.users = user_repository
        self.buckets = bucket_repository
        self.cache = cache
        self.user_cache_ttl_seconds = user_cache_ttl_seconds

    @staticmethod
    def _check_password_strength(password: str) -> None:
        problem = password_strength_error(password)
        if problem:
            raise ValidationError(problem, field="password")

    async def _invalidate(self, user_id: str) -> None:
        await self.cache.invalidate(cache_key(CacheKeys.USER, user_id))

    async def register(self, email: str, password: str) -> User:
        """
        Create a user with a bcrypt-hashed password.

        Raises:
            ValidationError: If the email is empty or the password is too weak.
            ConflictError: If the email is already registered.
        """
        email = require_text(email, "email").strip().lower()
        self._check_password_strength(password)

        if await self.users.find_by_email(email) is not None:
            raise ConflictError("Email already registered", email=email)

        user = await self.users.create(User(email=email, password_hash=hash_password(password)))
        logger.info("Registered user %s", user.id)
        return user

    async def authenticate(self, email: str, password: str) -> User:
        """
        Check credentials.

        Raises:
            UnauthorizedError: On an unknown email or a wrong password, without saying which.
        """
        user = await self.users.find_by_email(require_text(email, "email"))
        if user is None or not verify_password(password, user.password_hash):
            raise UnauthorizedError("Invalid credentials")
        return user

    async def get_user_by_id(self, user_id: str) -> User | None:
        return await self.users.find_by_id(require_text(user_id, "user_id"))

    async def get_user_by_email(self, email: str) -> User | None:
        return await self.users.find_by_email(require_text(email, "email"))

    async def get_cached_user(self, user_id: str) -> UserResponse | None:
        """Identity lookup for authenticated requests, served from the cache when possible."""
        require_text(user_id, "user_id")

        async def load() -> dict | None:
            user = await self.users.find_by_id(user_id)
            return UserResponse.from_user(user).model_dump(mode="json") if user else None

        cached = await self.cache.get_or_compute(
            cache_key(CacheKeys.USER, user_id), load, ttl_seconds=self.user_cache_ttl_seconds
        )
        return UserResponse.model_validate(cached) if cached else None

    async def update_user(self, user_id: str, email: str | None = None) -> User:
        """
        Change a user's email.

        Raises:
            NotFoundError: If the user does not exist.
            ConflictError: If another user already has the email.
        """
        user = await self.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found", user_id=user_id)
        if email is None:
            return user

        new_email = require_text(email, "email").strip().lower()
        if new_email != user.email:
            if await self.users.find_by_email(new_email) is not None:
                raise ConflictError("Email already registered", email=new_email)

        updated = await self.users.update(user.id, {"email": new_email})
        if updated is None:
            raise NotFoundError("User not found", user_id=user_id)
        await self._invalidate(user.id)
        return updated

    async def change_password(self, user_id: str, current_password: str, new_password: str) -> None:
        """
        Replace a user's password.

        Raises:
            ValidationError: If the new password equals the current one or is too weak.
            NotFoundError: If the user does not exist.
            UnauthorizedError: If the current password is wrong.
        """
        if current_password == new_password:
            raise ValidationError(
                "New password must be different from current password", field="new_password"
            )
        self._check_password_strength(new_password)

        user = await self.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found", user_id=user_id)
        if not verify_password(current_password, user.password_hash):
            raise UnauthorizedError("Current password is incorrect")

        if await self.users.update(user.id, {"password_hash": hash_password(new_password)}) is None:
            raise NotFoundError("User not found", user_id=user_id)
        await self._invalidate(user.id)
        logger.info("Changed password for user %s", user.id)

    async def delete_user(self, user_id: str) -> None:
        """
        Delete a user who owns no buckets.

        Raises:
            NotFoundError: If the user does not exist.
            ConflictError: If the user still owns buckets.
        """
        user = await self.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found", user_id=user_id)

        owned = await self.buckets.count_by_owner(user.id)
        if owned:
            raise ConflictError(
                "Cannot delete a user who still owns buckets", user_id=user.id, bucket_count=owned
            )

        if not await self.users.delete(user.id):
            raise NotFoundError("User not found", user_id=user_id)
        await self._invalidate(user.id)
        logger.info("Deleted user %s", user.id)
