"""
Bucket Service Test Suite

Covers bucket creation, per-owner name uniqueness, ownership checks, the
non-empty deletion guard, the dashboard summary and the counter helpers.

Test Organization:
- TestCreateBucket: key generation, zeroed counters, input validation
- TestBucketNameUniqueness: trim/case-insensitive uniqueness per owner
- TestBucketLookups: lookups by id, owner, public and private key
- TestUpdateBucket: rename rules
- TestDeleteBucket: empty-only deletion
- TestBucketCounters: atomic counter helpers and dashboard totals
"""

import pytest

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models.bucket import RECENT_BUCKETS_LIMIT, Bucket
from app.models.file import FileCreate
from app.models.user import User
from app.services import ServiceContainer


# =============================================================================
# Create
# =============================================================================


class TestCreateBucket:
    """Test suite for BucketService.create_bucket."""

    @pytest.mark.asyncio
    async def test_create_bucket_starts_empty_with_two_distinct_keys(
        self, services: ServiceContainer, owner: User
    ) -> None:
        bucket = await services.buckets.create_bucket("Media", owner.id)

        assert bucket.name == "Media"
        assert bucket.owner_id == owner.id
        assert bucket.download_count == 0
        assert bucket.upload_count == 0
        assert bucket.total_size == 0
        assert bucket.file_count == 0
        assert bucket.public_key.startswith("pub_")
        assert bucket.private_key.startswith("prv_")
        assert bucket.public_key != bucket.private_key

    @pytest.mark.asyncio
    async def test_create_bucket_trims_name(self, services: ServiceContainer, owner: User) -> None:
        bucket = await services.buckets.create_bucket("  Media  ", owner.id)

        assert bucket.name == "Media"
        assert bucket.name_key == "media"

    @pytest.mark.asyncio
    async def test_keys_differ_between_buckets(
        self, services: ServiceContainer, owner: User
    ) -> None:
        first = await services.buckets.create_bucket("One", owner.id)
        second = await services.buckets.create_bucket("Two", owner.id)

        assert first.public_key != second.public_key
        assert first.private_key != second.private_key

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["", "   ", None])
    async def test_blank_name_is_rejected(
        self, services: ServiceContainer, owner: User, name: str | None
    ) -> None:
        with pytest.raises(ValidationError):
            await services.buckets.create_bucket(name, owner.id)

    @pytest.mark.asyncio
    async def test_overlong_name_is_rejected(self, services: ServiceContainer, owner: User) -> None:
        with pytest.raises(ValidationError):
            await services.buckets.create_bucket("x" * 51, owner.id)

    @pytest.mark.asyncio
    async def test_unknown_owner_is_not_found(self, services: ServiceContainer) -> None:
        with pytest.raises(NotFoundError):
            await services.buckets.create_bucket("Media", "no-such-user")


# =============================================================================
# Uniqueness
# =============================================================================


class TestBucketNameUniqueness:
    """Bucket names are unique per owner after trimming and lowercasing."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("duplicate", ["Media", "media", "  MEDIA ", "mEdIa"])
    async def test_same_owner_duplicate_name_conflicts(
        self, services: ServiceContainer, owner: User, duplicate: str
    ) -> None:
        await services.buckets.create_bucket("Media", owner.id)

        with pytest.raises(ConflictError):
            await services.buckets.create_bucket(duplicate, owner.id)

    @pytest.mark.asyncio
    async def test_different_owners_may_share_a_name(
        self, services: ServiceContainer, owner: User, other_owner: User
    ) -> None:
        mine = await services.buckets.create_bucket("Media", owner.id)
        theirs = await services.buckets.create_bucket("Media", other_owner.id)

        assert mine.id != theirs.id


# =============================================================================
# Lookups
# =============================================================================


class TestBucketLookups:
    """Absence is a normal outcome for lookups and returns None."""

    @pytest.mark.asyncio
    async def test_lookup_by_keys(self, services: ServiceContainer, bucket: Bucket) -> None:
        by_public = await services.buckets.get_bucket_by_public_key(bucket.public_key)
        by_private = await services.buckets.get_bucket_by_private_key(bucket.private_key)

        assert by_public is not None and by_public.id == bucket.id
        assert by_private is not None and by_private.id == bucket.id

    @pytest.mark.asyncio
    async def test_missing_lookups_return_none(self, services: ServiceContainer) -> None:
        assert await services.buckets.get_bucket_by_id("missing") is None
        assert await services.buckets.get_bucket_by_public_key("pub_missing") is None
        assert await services.buckets.get_bucket_by_private_key("prv_missing") is None
        assert await services.buckets.get_bucket_stats("missing") is None

    @pytest.mark.asyncio
    async def test_empty_identifier_is_a_validation_error(self, services: ServiceContainer) -> None:
        with pytest.raises(ValidationError):
            await services.buckets.get_bucket_by_id("")

    @pytest.mark.asyncio
    async def test_buckets_by_owner_newest_first(
        self, services: ServiceContainer, owner: User, other_owner: User
    ) -> None:
        first = await services.buckets.create_bucket("First", owner.id)
        second = await services.buckets.create_bucket("Second", owner.id)
        await services.buckets.create_bucket("Theirs", other_owner.id)

        buckets = await services.buckets.get_buckets_by_owner_id(owner.id)

        assert [b.id for b in buckets] == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_owned_bucket_hides_other_owners(
        self, services: ServiceContainer, bucket: Bucket, other_owner: User
    ) -> None:
        with pytest.raises(NotFoundError):
            await services.buckets.get_owned_bucket(bucket.id, other_owner.id)

        owned = await services.buckets.get_owned_bucket(bucket.id, bucket.owner_id)
        assert owned.id == bucket.id


# =============================================================================
# Update
# =============================================================================


class TestUpdateBucket:
    """Test suite for BucketService.update_bucket."""

    @pytest.mark.asyncio
    async def test_rename(self, services: ServiceContainer, bucket: Bucket) -> None:
        renamed = await services.buckets.update_bucket(bucket.id, name="Photos")

        assert renamed.name == "Photos"
        assert renamed.name_key == "photos"

    @pytest.mark.asyncio
    async def test_rename_to_own_name_in_other_case_is_allowed(
        self, services: ServiceContainer, bucket: Bucket
    ) -> None:
        renamed = await services.buckets.update_bucket(bucket.id, name="MEDIA")

        assert renamed.name == "MEDIA"

    @pytest.mark.asyncio
    async def test_rename_onto_sibling_conflicts(
        self, services: ServiceContainer, bucket: Bucket, owner: User
    ) -> None:
        await services.buckets.create_bucket("Photos", owner.id)

        with pytest.raises(ConflictError):
            await services.buckets.update_bucket(bucket.id, name=" photos")

    @pytest.mark.asyncio
    async def test_rename_missing_bucket(self, services: ServiceContainer) -> None:
        with pytest.raises(NotFoundError):
            await services.buckets.update_bucket("missing", name="Photos")


# =============================================================================
# Delete
# =============================================================================


class TestDeleteBucket:
    """Only empty buckets can be deleted."""

    @pytest.mark.asyncio
    async def test_delete_empty_bucket(self, services: ServiceContainer, bucket: Bucket) -> None:
        await services.buckets.delete_bucket(bucket.id)

        assert await services.buckets.get_bucket_by_id(bucket.id) is None

    @pytest.mark.asyncio
    async def test_non_empty_bucket_deletion_is_blocked_until_emptied(
        self, services: ServiceContainer, bucket: Bucket
    ) -> None:
        file = await services.files.create_file(
            FileCreate(
                bucket_id=bucket.id,
                name="a.png",
                original_name="a.png",
                type="image/png",
                size=10,
            )
        )

        with pytest.raises(ConflictError, match="non-empty"):
            await services.buckets.delete_bucket(bucket.id)

        await services.files.delete_file(file.id)
        await services.buckets.delete_bucket(bucket.id)
        assert await services.buckets.get_bucket_by_id(bucket.id) is None

    @pytest.mark.asyncio
    async def test_delete_missing_bucket(self, services: ServiceContainer) -> None:
        with pytest.raises(NotFoundError):
            await services.buckets.delete_bucket("missing")


# =============================================================================
# Counters and Dashboard
# =============================================================================


class TestBucketCounters:
    """Counter helpers report whether the bucket still exists."""

    @pytest.mark.asyncio
    async def test_counter_helpers(self, services: ServiceContainer, bucket: Bucket) -> None:
        assert await services.buckets.increment_download_count(bucket.id)
        assert await services.buckets.increment_upload_count(bucket.id, 2)
        assert await services.buckets.update_bucket_stats(bucket.id, 500, 1)

        stats = await services.buckets.get_bucket_stats(bucket.id)

        assert stats is not None
        assert stats.download_count == 1
        assert stats.upload_count == 2
        assert stats.total_size == 500
        assert stats.file_count == 1

    @pytest.mark.asyncio
    async def test_counters_on_missing_bucket_return_false(self, services: ServiceContainer) -> None:
        assert not await services.buckets.increment_download_count("missing")
        assert not await services.buckets.update_bucket_stats("missing", 1, 1)

    @pytest.mark.asyncio
    async def test_dashboard_totals(self, services: ServiceContainer, owner: User) -> None:
        buckets = [
            await services.buckets.create_bucket(f"Bucket {i}", owner.id)
            for i in range(RECENT_BUCKETS_LIMIT + 1)
        ]
        await services.buckets.update_bucket_stats(buckets[0].id, 100, 2)
        await services.buckets.update_bucket_stats(buckets[1].id, 50, 1)
        await services.buckets.increment_upload_count(buckets[0].id, 3)
        await services.buckets.increment_download_count(buckets[1].id, 4)

        summary = await services.buckets.get_dashboard(owner.id)

        assert summary.total_buckets == RECENT_BUCKETS_LIMIT + 1
        assert summary.total_files == 3
        assert summary.total_storage == 150
        assert summary.total_api_calls == 7
        assert len(summary.recent_buckets) == RECENT_BUCKETS_LIMIT
        assert summary.recent_buckets[0].id == buckets[-1].id
