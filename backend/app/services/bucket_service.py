"""
Bucket Service Module

Owns the bucket lifecycle: per-owner name uniqueness, key-pair generation,
ownership checks, deletion guards and the aggregate counters.

Name uniqueness is compared on the trimmed, lowercased name. The service checks
before writing so callers get a clear conflict; the unique
``(owner_id, name_key)`` index catches the race the check cannot.

Counters are only changed through ``BucketRepository.increment``, an atomic
``$inc``. Absence on lookups is a normal outcome and returns None.
"""

import logging

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models.bucket import (
    BUCKET_NAME_MAX_LENGTH,
    RECENT_BUCKETS_LIMIT,
    Bucket,
    BucketResponse,
    BucketStats,
    DashboardSummary,
    normalize_bucket_name,
)
from app.repositories.bucket_repository import BucketRepository
from app.repositories.file_repository import FileRepository
from app.repositories.user_repository import UserRepository
from app.services.base import require_text


logger = logging.getLogger(__name__)


class BucketService:
    """
    Bucket lifecycle and statistics.

    Attributes:
        buckets: Bucket persistence
        files: File persistence, consulted before deleting a bucket
        users: User persistence, consulted for owner existence
    """

    def __init__(
        self,
        bucket_repository: BucketRepository,
        file_repository: FileRepository,
        user_repository: UserRepository,
    ) -> None:
        self.buckets = bucket_repository
        self.files = file_repository
        self.users = user_repository
        self.logger = logger

    async def _ensure_name_available(
        self, owner_id: str, name_key: str, exclude_id: str | None = None
    ) -> None:
        existing = await self.buckets.find_by_owner_and_name_key(owner_id, name_key)
        if existing is not None and existing.id != exclude_id:
            raise ConflictError(
                "A bucket with this name already exists", owner_id=owner_id, name=name_key
            )

    @staticmethod
    def _clean_name(name: str | None) -> str:
        cleaned = require_text(name, "name").strip()
        if len(cleaned) > BUCKET_NAME_MAX_LENGTH:
            raise ValidationError(
                f"Bucket name must be at most {BUCKET_NAME_MAX_LENGTH} characters", field="name"
            )
        return cleaned

    async def create_bucket(self, name: str, owner_id: str) -> Bucket:
        """
        Create a bucket with a fresh key pair and zeroed counters.

        Raises:
            ValidationError: If the name is blank or too long, or owner_id is empty.
            NotFoundError: If the owner does not exist.
            ConflictError: If the owner already has a bucket with the same name, ignoring case.
        """
        cleaned = self._clean_name(name)
        require_text(owner_id, "owner_id")

        if await self.users.find_by_id(owner_id) is None:
            raise NotFoundError("Owner not found", owner_id=owner_id)

        name_key = normalize_bucket_name(cleaned)
        await self._ensure_name_available(owner_id, name_key)

        bucket = await self.buckets.create(Bucket(name=cleaned, name_key=name_key, owner_id=owner_id))
        self.logger.info("Created bucket %s for owner %s", bucket.id, owner_id)
        return bucket

    async def get_bucket_by_id(self, bucket_id: str) -> Bucket | None:
        return await self.buckets.find_by_id(require_text(bucket_id, "bucket_id"))

    async def get_buckets_by_owner_id(self, owner_id: str) -> list[Bucket]:
        return await self.buckets.find_by_owner(require_text(owner_id, "owner_id"))

    async def get_bucket_by_public_key(self, public_key: str) -> Bucket | None:
        return await self.buckets.find_by_public_key(require_text(public_key, "public_key"))

    async def get_bucket_by_private_key(self, private_key: str) -> Bucket | None:
        return await self.buckets.find_by_private_key(require_text(private_key, "private_key"))

    async def get_owned_bucket(self, bucket_id: str, owner_id: str) -> Bucket:
        """
        Fetch a bucket on behalf of its owner.

        Raises:
            NotFoundError: If the bucket is absent or belongs to someone else.
        """
        bucket = await self.get_bucket_by_id(bucket_id)
        if bucket is None or bucket.owner_id != owner_id:
            raise NotFoundError("Bucket not found", bucket_id=bucket_id)
        return bucket

    async def update_bucket(self, bucket_id: str, name: str | None = None) -> Bucket:
        """
        Rename a bucket. Renaming to the current name, in any case, is allowed.

        Raises:
            NotFoundError: If the bucket does not exist.
            ConflictError: If another bucket of the same owner already uses the name.
        """
        bucket = await self.get_bucket_by_id(bucket_id)
        if bucket is None:
            raise NotFoundError("Bucket not found", bucket_id=bucket_id)
        if name is None:
            return bucket

        cleaned = self._clean_name(name)
        name_key = normalize_bucket_name(cleaned)
        await self._ensure_name_available(bucket.owner_id, name_key, exclude_id=bucket.id)

        updated = await self.buckets.rename(bucket.id, cleaned, name_key)
        if updated is None:
            raise NotFoundError("Bucket not found", bucket_id=bucket_id)
        return updated

    async def delete_bucket(self, bucket_id: str) -> None:
        """
        Delete an empty bucket.

        Raises:
            NotFoundError: If the bucket does not exist.
            ConflictError: If any file still references the bucket.
        """
        bucket = await self.get_bucket_by_id(bucket_id)
        if bucket is None:
            raise NotFoundError("Bucket not found", bucket_id=bucket_id)

        remaining = await self.files.count_by_bucket(bucket.id)
        if remaining:
            raise ConflictError(
                "Cannot delete non-empty bucket", bucket_id=bucket.id, file_count=remaining
            )

        if not await self.buckets.delete(bucket.id):
            raise NotFoundError("Bucket not found", bucket_id=bucket_id)
        self.logger.info("Deleted bucket %s", bucket.id)

    async def get_bucket_stats(self, bucket_id: str) -> BucketStats | None:
        bucket = await self.get_bucket_by_id(bucket_id)
        return BucketStats.from_bucket(bucket) if bucket else None

    async def get_dashboard(self, owner_id: str) -> DashboardSummary:
        """Totals across every bucket the owner holds, plus the newest few."""
        buckets = await self.get_buckets_by_owner_id(owner_id)
        return DashboardSummary(
            total_buckets=len(buckets),
            total_files=sum(bucket.file_count for bucket in buckets),
            total_storage=sum(bucket.total_size for bucket in buckets),
            total_api_calls=sum(bucket.upload_count + bucket.download_count for bucket in buckets),
            recent_buckets=[
                BucketResponse.from_bucket(bucket) for bucket in buckets[:RECENT_BUCKETS_LIMIT]
            ],
        )

    # =========================================================================
    # Counters
    # =========================================================================

    async def increment_download_count(self, bucket_id: str, amount: int = 1) -> bool:
        return await self.buckets.increment(bucket_id, download_count=amount)

    async def increment_upload_count(self, bucket_id: str, amount: int = 1) -> bool:
        return await self.buckets.increment(bucket_id, upload_count=amount)

    async def update_bucket_stats(self, bucket_id: str, size_delta: int, count_delta: int) -> bool:
        """Apply size and file-count deltas in one atomic update. False if the bucket is gone."""
        return await self.buckets.increment(
            bucket_id, total_size=size_delta, file_count=count_delta
        )
