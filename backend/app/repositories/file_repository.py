"""File record persistence."""

import logging

from typing import Any

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.models.file import FileRecord
from app.repositories.base import conflict_from_duplicate, utcnow


logger = logging.getLogger(__name__)


class FileRepository:
    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self._collection = collection

    async def find_by_id(self, file_id: str) -> FileRecord | None:
        document = await self._collection.find_one({"_id": file_id})
        return FileRecord.model_validate(document) if document else None

    async def find_by_bucket(self, bucket_id: str) -> list[FileRecord]:
        cursor = self._collection.find({"bucket_id": bucket_id}).sort("created_at", DESCENDING)
        return [FileRecord.model_validate(document) async for document in cursor]

    async def find_by_bucket_and_name(self, bucket_id: str, name: str) -> FileRecord | None:
        document = await self._collection.find_one({"bucket_id": bucket_id, "name": name})
        return FileRecord.model_validate(document) if document else None

    async def count_by_bucket(self, bucket_id: str) -> int:
        return await self._collection.count_documents({"bucket_id": bucket_id})

    async def create(self, file: FileRecord) -> FileRecord:
        """
        Insert a new file record.

        Raises:
            ConflictError: If the bucket already holds a file with this name.
        """
        try:
            await self._collection.insert_one(file.model_dump(by_alias=True))
        except DuplicateKeyError as error:
            raise conflict_from_duplicate(error, "File") from error
        return file

    async def update(self, file_id: str, fields: dict[str, Any]) -> FileRecord | None:
        """
        Set ``fields`` and return the updated record, or None if it no longer exists.

        Raises:
            ConflictError: If a rename collides with another file in the bucket.
        """
        try:
            document = await self._collection.find_one_and_update(
                {"_id": file_id},
                {"$set": {**fields, "updated_at": utcnow()}},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as error:
            raise conflict_from_duplicate(error, "File") from error
        return FileRecord.model_validate(document) if document else None

    async def delete(self, file_id: str) -> bool:
        result = await self._collection.delete_one({"_id": file_id})
        return result.deleted_count > 0

    async def increment_downloads(self, file_id: str, amount: int = 1) -> bool:
        """Atomically add ``amount`` to the download counter. False if no record changed."""
        result = await self._collection.update_one(
            {"_id": file_id},
            {"$inc": {"downloads": amount}, "$set": {"updated_at": utcnow()}},
        )
        return result.modified_count > 0
