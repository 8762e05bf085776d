"""
User Service Test Suite

Registration, credential checks and profile changes, with the identity cache
invalidated on every change.
"""

import pytest

from app.core.exceptions import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from app.models.bucket import Bucket
from app.models.user import User
from app.services import ServiceContainer
from app.utils.cache import CacheKeys, MemoryCache, cache_key
from app.utils.security import verify_password
from tests.conftest import TEST_PASSWORD


class TestRegister:
    @pytest.mark.asyncio
    async def test_register_hashes_password_and_normalizes_email(
        self, services: ServiceContainer
    ) -> None:
        user = await services.users.register("  New@Example.com ", TEST_PASSWORD)

        assert user.email == "new@example.com"
        assert user.password_hash != TEST_PASSWORD
        assert verify_password(TEST_PASSWORD, user.password_hash)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "password", ["Ab1", "alllower1", "ALLUPPER1", "NoDigitsHere", "A1" + "a" * 127]
    )
    async def test_weak_password_is_rejected(
        self, services: ServiceContainer, password: str
    ) -> None:
        with pytest.raises(ValidationError):
            await services.users.register("new@example.com", password)

    @pytest.mark.asyncio
    async def test_duplicate_email_conflicts(self, services: ServiceContainer) -> None:
        await services.users.register("new@example.com", TEST_PASSWORD)

        with pytest.raises(ConflictError):
            await services.users.register("NEW@example.com", TEST_PASSWORD)


class TestAuthenticate:
    @pytest.mark.asyncio
    async def test_correct_credentials(self, services: ServiceContainer) -> None:
        registered = await services.users.register("new@example.com", TEST_PASSWORD)

        user = await services.users.authenticate("new@example.com", TEST_PASSWORD)

        assert user.id == registered.id

    @pytest.mark.asyncio
    async def test_wrong_password_and_unknown_email_look_the_same(
        self, services: ServiceContainer
    ) -> None:
        await services.users.register("new@example.com", TEST_PASSWORD)

        with pytest.raises(UnauthorizedError) as wrong_password:
            await services.users.authenticate("new@example.com", "Wrong123")
        with pytest.raises(UnauthorizedError) as unknown_email:
            await services.users.authenticate("nobody@example.com", TEST_PASSWORD)

        assert wrong_password.value.message == unknown_email.value.message


class TestProfileChanges:
    @pytest.mark.asyncio
    async def test_cached_user_excludes_hash(
        self, services: ServiceContainer, owner: User
    ) -> None:
        cached = await services.users.get_cached_user(owner.id)

        assert cached is not None
        assert cached.email == owner.email
        assert "password_hash" not in cached.model_dump()

    @pytest.mark.asyncio
    async def test_unknown_user_is_not_cached(
        self, services: ServiceContainer, cache: MemoryCache
    ) -> None:
        assert await services.users.get_cached_user("missing") is None
        assert not await cache.has(cache_key(CacheKeys.USER, "missing"))

    @pytest.mark.asyncio
    async def test_update_email_invalidates_cache(
        self, services: ServiceContainer, owner: User, cache: MemoryCache
    ) -> None:
        await services.users.get_cached_user(owner.id)

        updated = await services.users.update_user(owner.id, email="Renamed@Example.com")

        assert updated.email == "renamed@example.com"
        assert not await cache.has(cache_key(CacheKeys.USER, owner.id))
        cached = await services.users.get_cached_user(owner.id)
        assert cached is not None and cached.email == "renamed@example.com"

    @pytest.mark.asyncio
    async def test_update_to_taken_email_conflicts(
        self, services: ServiceContainer, owner: User, other_owner: User
    ) -> None:
        with pytest.raises(ConflictError):
            await services.users.update_user(owner.id, email=other_owner.email)

    @pytest.mark.asyncio
    async def test_change_password(self, services: ServiceContainer) -> None:
        user = await services.users.register("new@example.com", TEST_PASSWORD)

        await services.users.change_password(user.id, TEST_PASSWORD, "Changed456")

        await services.users.authenticate("new@example.com", "Changed456")
        with pytest.raises(UnauthorizedError):
            await services.users.authenticate("new@example.com", TEST_PASSWORD)

    @pytest.mark.asyncio
    async def test_change_password_requires_current_password(
        self, services: ServiceContainer
    ) -> None:
        user = await services.users.register("new@example.com", TEST_PASSWORD)

        with pytest.raises(UnauthorizedError):
            await services.users.change_password(user.id, "Wrong123", "Changed456")

    @pytest.mark.asyncio
    async def test_unchanged_password_is_rejected(self, services: ServiceContainer) -> None:
        user = await services.users.register("new@example.com", TEST_PASSWORD)

        with pytest.raises(ValidationError):
            await services.users.change_password(user.id, TEST_PASSWORD, TEST_PASSWORD)


class TestDeleteUser:
    @pytest.mark.asyncio
    async def test_delete_user_without_buckets(
        self, services: ServiceContainer, other_owner: User
    ) -> None:
        await services.users.delete_user(other_owner.id)

        assert await services.users.get_user_by_id(other_owner.id) is None

    @pytest.mark.asyncio
    async def test_owner_of_buckets_cannot_be_deleted(
        self, services: ServiceContainer, bucket: Bucket
    ) -> None:
        with pytest.raises(ConflictError):
            await services.users.delete_user(bucket.owner_id)

        assert await services.users.get_user_by_id(bucket.owner_id) is not None

    @pytest.mark.asyncio
    async def test_delete_missing_user(self, services: ServiceContainer) -> None:
        with pytest.raises(NotFoundError):
            await services.users.delete_user("missing")
