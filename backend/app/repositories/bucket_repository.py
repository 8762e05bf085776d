"""
Bucket persistence.

Each method is one MongoDB operation. Counter changes go through ``increment``,
a single ``$inc`` update, so concurrent uploads and downloads against the same
bucket are all reflected.
"""

import logging

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.models.bucket import Bucket
from app.repositories.base import conflict_from_duplicate, utcnow


logger = logging.getLogger(__name__)

COUNTER_FIELDS = frozenset({"download_count", "upload_count", "total_size", "file_count"})


class BucketRepository:
    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self._collection = collection

    async def find_by_id(self, bucket_id: str) -> Bucket | None:
        document = await self._collection.find_one({"_id": bucket_id})
        return Bucket.model_validate(document) if document else None

    async def find_by_owner(self, owner_id: str, limit: int = 0) -> list[Bucket]:
        """Buckets owned by ``owner_id``, newest first. ``limit`` of 0 means all."""
        cursor = self._collection.find({"owner_id": owner_id}).sort("created_at", DESCENDING)
        if limit:
            cursor = cursor.limit(limit)
        return [Bucket.model_validate(document) async for document in cursor]

    async def find_by_owner_and_name_key(self, owner_id: str, name_key: str) -> Bucket | None:
        document = await self._collection.find_one({"owner_id": owner_id, "name_key": name_key})
        return Bucket.model_validate(document) if document else None

    async def find_by_public_key(self, public_key: str) -> Bucket | None:
        document = await self._collection.find_one({"public_key": public_key})
        return Bucket.model_validate(document) if document else None

    async def find_by_private_key(self, private_key: str) -> Bucket | None:
        document = await self._collection.find_one({"private_key": private_key})
        return Bucket.model_validate(document) if document else None

    async def count_by_owner(self, owner_id: str) -> int:
        return await self._collection.count_documents({"owner_id": owner_id})

    async def create(self, bucket: Bucket) -> Bucket:
        """
        Insert a new bucket.

        Raises:
            ConflictError: If a unique index (owner/name, public or private key) is violated.
        """
        try:
            await self._collection.insert_one(bucket.model_dump(by_alias=True))
        except DuplicateKeyError as error:
            raise conflict_from_duplicate(error, "Bucket") from error
        return bucket

    async def rename(self, bucket_id: str, name: str, name_key: str) -> Bucket | None:
        """
        Set a new name and return the updated bucket, or None if it no longer exists.

        Raises:
            ConflictError: If the owner already has a bucket with ``name_key``.
        """
        try:
            document = await self._collection.find_one_and_update(
                {"_id": bucket_id},
                {"$set": {"name": name, "name_key": name_key, "updated_at": utcnow()}},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as error:
            raise conflict_from_duplicate(error, "Bucket") from error
        return Bucket.model_validate(document) if document else None

    async def delete(self, bucket_id: str) -> bool:
        result = await self._collection.delete_one({"_id": bucket_id})
        return result.deleted_count > 0

    async def increment(self, bucket_id: str, **deltas: int) -> bool:
        """
        Atomically add ``deltas`` to counter fields.

        Returns:
            bool: True if the bucket exists and was updated.
        """
        unknown = set(deltas) - COUNTER_FIELDS
        if unknown:
            raise ValueError(f"Not a bucket counter: {', '.join(sorted(unknown))}")

        changes = {field: delta for field, delta in deltas.items() if delta}
        if not changes:
            return await self._collection.count_documents({"_id": bucket_id}, limit=1) > 0

        result = await self._collection.update_one(
            {"_id": bucket_id},
            {"$inc": changes, "$set": {"updated_at": utcnow()}},
        )
        return result.matched_count > 0
