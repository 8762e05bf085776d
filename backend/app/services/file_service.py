"""
File Service Module

Owns the file lifecycle inside a bucket and keeps the parent bucket's counters
in step with the records that exist:

- create: record, then ``total_size += size``, ``file_count += 1``, ``upload_count += 1``
- delete: stored object, then record, then ``total_size -= size``, ``file_count -= 1``
- download: ``downloads += 1`` on the file, then ``download_count += 1`` on the bucket

A counter update that fails after its record mutation succeeded is a
ConsistencyError, logged at critical level because the bucket statistics have
drifted from the records.
"""

import logging

from app.core.exceptions import ConflictError, ConsistencyError, NotFoundError, ValidationError
from app.core.storage import StorageClient
from app.models.file import FileCreate, FileRecord, object_key_for
from app.repositories.file_repository import FileRepository
from app.services.base import require_text
from app.services.bucket_service import BucketService
from app.utils.cache import Cache, CacheKeys, cache_key


logger = logging.getLogger(__name__)


class FileService:
    """
    File lifecycle and counter synchronization.

    Attributes:
        files: File persistence
        bucket_service: Counter updates and bucket existence checks
        storage: Object store gateway, used to remove bytes before records
        cache: Optional cache whose download URLs are dropped when a file goes away
    """

    def __init__(
        self,
        file_repository: FileRepository,
        bucket_service: BucketService,
        storage: StorageClient,
        cache: Cache | None = None,
    ) -> None:
        self.files = file_repository
        self.bucket_service = bucket_service
        self.storage = storage
        self.cache = cache
        self.logger = logger

    async def create_file(self, data: FileCreate) -> FileRecord:
        """
        Register a file in a bucket and count it.

        Raises:
            ValidationError: If a required field is missing or size is negative.
            NotFoundError: If the bucket does not exist.
            ConflictError: If the bucket already has a file with exactly this name.
            ConsistencyError: If the record was stored but the bucket counters were not.
        """
        require_text(data.bucket_id, "bucket_id")
        name = require_text(data.name, "name").strip()
        require_text(data.original_name, "original_name")
        require_text(data.type, "type")
        if data.size < 0:
            raise ValidationError("File size cannot be negative", field="size", size=data.size)

        if await self.bucket_service.get_bucket_by_id(data.bucket_id) is None:
            raise NotFoundError("Bucket not found", bucket_id=data.bucket_id)

        if await self.files.find_by_bucket_and_name(data.bucket_id, name) is not None:
            raise ConflictError(
                "A file with this name already exists in the bucket",
                bucket_id=data.bucket_id,
                name=name,
            )

        file = await self.files.create(
            FileRecord(
                bucket_id=data.bucket_id,
                name=name,
                original_name=data.original_name,
                type=data.type,
                size=data.size,
                metadata=data.metadata,
            )
        )

        await self._apply_counters(
            file,
            size_delta=file.size,
            count_delta=1,
            upload_delta=1,
            action="create",
        )
        self.logger.info("Created file %s in bucket %s (%d bytes)", file.id, file.bucket_id, file.size)
        return file

    async def _apply_counters(
        self,
        file: FileRecord,
        size_delta: int,
        count_delta: int,
        upload_delta: int,
        action: str,
    ) -> None:
        try:
            stats_applied = await self.bucket_service.update_bucket_stats(
                file.bucket_id, size_delta, count_delta
            )
            uploads_applied = True
            if upload_delta:
                uploads_applied = await self.bucket_service.increment_upload_count(
                    file.bucket_id, upload_delta
                )
        except Exception as error:
            self.logger.critical(
                "Bucket counters not updated after file %s: file=%s bucket=%s",
                action,
                file.id,
                file.bucket_id,
                exc_info=True,
            )
            raise ConsistencyError(
                f"Bucket counters not updated after file {action}",
                file_id=file.id,
                bucket_id=file.bucket_id,
            ) from error

        if not (stats_applied and uploads_applied):
            self.logger.critical(
                "Bucket vanished while updating counters after file %s: file=%s bucket=%s",
                action,
                file.id,
                file.bucket_id,
            )
            raise ConsistencyError(
                f"Bucket counters not updated after file {action}",
                file_id=file.id,
                bucket_id=file.bucket_id,
            )

    async def get_file_by_id(self, file_id: str) -> FileRecord | None:
        return await self.files.find_by_id(require_text(file_id, "file_id"))

    async def get_files_by_bucket_id(self, bucket_id: str) -> list[FileRecord]:
        """
        List a bucket's files, newest first.

        Raises:
            NotFoundError: If the bucket itself does not exist.
        """
        require_text(bucket_id, "bucket_id")
        if await self.bucket_service.get_bucket_by_id(bucket_id) is None:
            raise NotFoundError("Bucket not found", bucket_id=bucket_id)
        return await self.files.find_by_bucket(bucket_id)

    async def get_file_by_name(self, bucket_id: str, name: str) -> FileRecord | None:
        return await self.files.find_by_bucket_and_name(
            require_text(bucket_id, "bucket_id"), require_text(name, "name")
        )

    async def update_file(
        self, file_id: str, name: str | None = None, metadata: dict | None = None
    ) -> FileRecord:
        """
        Rename a file and/or replace its metadata. Renaming to the current name is allowed.

        Raises:
            NotFoundError: If the file does not exist.
            ConflictError: If another file in the bucket already has the new name.
        """
        file = await self.get_file_by_id(file_id)
        if file is None:
            raise NotFoundError("File not found", file_id=file_id)

        fields: dict = {}
        if name is not None:
            new_name = require_text(name, "name").strip()
            if new_name != file.name:
                clash = await self.files.find_by_bucket_and_name(file.bucket_id, new_name)
                if clash is not None and clash.id != file.id:
                    raise ConflictError(
                        "A file with this name already exists in the bucket",
                        bucket_id=file.bucket_id,
                        name=new_name,
                    )
                fields["name"] = new_name
        if metadata is not None:
            fields["metadata"] = metadata

        if not fields:
            return file

        updated = await self.files.update(file.id, fields)
        if updated is None:
            raise NotFoundError("File not found", file_id=file_id)
        return updated

    async def delete_file(self, file_id: str) -> FileRecord:
        """
        Delete the stored object, then the record, then uncount it from the bucket.

        Raises:
            NotFoundError: If the file does not exist.
            StorageError: If the object store refuses the delete. Nothing else changes.
            ConsistencyError: If the record was removed but the bucket counters were not.
        """
        file = await self.get_file_by_id(file_id)
        if file is None:
            raise NotFoundError("File not found", file_id=file_id)

        await self.storage.delete_file(object_key_for(file))
        return await self._remove_record(file, upload_delta=0, action="delete")

    async def discard_file(self, file: FileRecord) -> FileRecord:
        """
        Undo a registration whose upload URL was never handed out.

        No bytes can exist for the record, so the object store is not touched,
        and the upload it was counted as is taken back too.
        """
        self.logger.warning("Discarding file %s in bucket %s", file.id, file.bucket_id)
        return await self._remove_record(file, upload_delta=-1, action="discard")

    async def _remove_record(self, file: FileRecord, upload_delta: int, action: str) -> FileRecord:
        if not await self.files.delete(file.id):
            raise NotFoundError("File not found", file_id=file.id)

        if self.cache is not None:
            await self.cache.invalidate(cache_key(CacheKeys.DOWNLOAD_URL, file.id))
            await self.cache.invalidate(cache_key(CacheKeys.UPLOAD_URL, file.id))

        await self._apply_counters(
            file,
            size_delta=-file.size,
            count_delta=-1,
            upload_delta=upload_delta,
            action=action,
        )
        self.logger.info("Removed file %s from bucket %s (%s)", file.id, file.bucket_id, action)
        return file

    async def increment_downloads(self, file_id: str) -> bool:
        """
        Count one download on the file and its bucket.

        The bucket is only counted if the file-level increment changed a record.

        Raises:
            NotFoundError: If the file does not exist.
            ConsistencyError: If the file was counted but its bucket was not.
        """
        file = await self.get_file_by_id(file_id)
        if file is None:
            raise NotFoundError("File not found", file_id=file_id)

        if not await self.files.increment_downloads(file.id):
            self.logger.warning("Download not counted, file %s changed concurrently", file.id)
            return False

        try:
            counted = await self.bucket_service.increment_download_count(file.bucket_id)
        except Exception as error:
            self.logger.critical(
                "Bucket download count not updated: file=%s bucket=%s",
                file.id,
                file.bucket_id,
                exc_info=True,
            )
            raise ConsistencyError(
                "Bucket download count not updated", file_id=file.id, bucket_id=file.bucket_id
            ) from error
        if not counted:
            self.logger.critical(
                "Bucket vanished while counting download: file=%s bucket=%s",
                file.id,
                file.bucket_id,
            )
            raise ConsistencyError(
                "Bucket download count not updated", file_id=file.id, bucket_id=file.bucket_id
            )
        return True
