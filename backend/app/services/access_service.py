"""
Access Issuance Service Module

Hands out presigned URLs to holders of a bucket's public key.

Upload:
    1. the bucket has already been resolved from its public key
    2. a file record is created through FileService (record exists, bytes do not)
    3. a presigned PUT URL is obtained through the cache
    4. the URL is returned

If step 3 fails the record from step 2 is discarded before the error
propagates, so no metadata is left pointing at an object that can never arrive.

Download:
    resolve the file, check it belongs to the caller's bucket, obtain a presigned
    GET URL through the cache, then count the download. The count happens on
    every request, cache hit or not.

A file from another bucket is reported exactly like a missing file.
"""

import logging

from dataclasses import dataclass

from app.config import Settings
from app.core.exceptions import NotFoundError, StorageError, ValidationError
from app.core.storage import ObjectStream, StorageClient
from app.models.bucket import Bucket
from app.models.file import (
    UNNAMED_FILE_NAME,
    FileCreate,
    FileRecord,
    UploadTicket,
    object_key_for,
)
from app.services.file_service import FileService
from app.utils.cache import Cache, CacheKeys, cache_key
from app.utils.security import generate_app_id


logger = logging.getLogger(__name__)


@dataclass
class IssuedUpload:
    file: FileRecord
    ticket: UploadTicket


@dataclass
class IssuedDownload:
    file: FileRecord
    url: str
    expires_in: int


@dataclass
class OpenedDownload:
    file: FileRecord
    chunks: ObjectStream


class AccessService:
    """
    Presigned URL issuance and streaming for bucket-key clients.

    Attributes:
        file_service: Record creation, lookup and download counting
        storage: Object store gateway
        cache: URL memo keyed by operation and file identifier
        settings: URL lifetimes and the public upload size cap
    """

    def __init__(
        self,
        file_service: FileService,
        storage: StorageClient,
        cache: Cache,
        settings: Settings,
    ) -> None:
        self.file_service = file_service
        self.storage = storage
        self.cache = cache
        self.settings = settings

    # =========================================================================
    # Lookups
    # =========================================================================

    async def get_bucket_file(self, bucket: Bucket, file_id: str) -> FileRecord:
        """
        Resolve a file inside ``bucket``.

        Raises:
            NotFoundError: If the file is absent or belongs to a different bucket.
        """
        file = await self.file_service.get_file_by_id(file_id)
        if file is None or file.bucket_id != bucket.id:
            raise NotFoundError("File not found", file_id=file_id)
        return file

    # =========================================================================
    # Uploads
    # =========================================================================

    def _check_public_size(self, size: int) -> None:
        limit = self.settings.max_public_upload_size_bytes
        if size < 0:
            raise ValidationError("File size cannot be negative", field="file_size", size=size)
        if size > limit:
            raise ValidationError(
                f"File size exceeds the {self.settings.max_public_upload_size_mb} MiB limit",
                field="file_size",
                size=size,
                limit=limit,
            )

    async def issue_public_upload(
        self,
        bucket: Bucket,
        file_name: str | None,
        file_type: str,
        file_size: int,
        metadata: dict | None = None,
    ) -> IssuedUpload:
        """
        Register a file under a generated unique name and return its upload URL.

        The stored name is ``<file_name or UNNAMED>xxx<generated id>``.

        Raises:
            ValidationError: If the size is negative or above the public cap.
            StorageError: If the URL cannot be signed. The record is discarded first.
        """
        self._check_public_size(file_size)
        base_name = file_name or UNNAMED_FILE_NAME
        data = FileCreate(
            bucket_id=bucket.id,
            name=f"{base_name}xxx{generate_app_id('FILE')}",
            original_name=base_name,
            type=file_type,
            size=file_size,
            metadata=metadata or {},
        )
        return await self.issue_upload(data)

    async def issue_upload(self, data: FileCreate) -> IssuedUpload:
        """
        Create the file record, then obtain its presigned PUT URL through the cache.

        Raises:
            ValidationError, NotFoundError, ConflictError: From record creation.
            StorageError: If the URL cannot be signed. The record is discarded first.
        """
        file = await self.file_service.create_file(data)
        key = object_key_for(file)
        ttl = self.settings.upload_url_expiration_seconds

        async def sign() -> str:
            return await self.storage.generate_presigned_upload_url(
                key, ttl_seconds=ttl, content_type=file.type
            )

        try:
            url = await self.cache.get_or_compute(
                cache_key(CacheKeys.UPLOAD_URL, file.id),
                sign,
                ttl_seconds=self.settings.upload_url_cache_ttl_seconds,
            )
        except Exception:
            logger.warning("Upload URL issuance failed for file %s, discarding record", file.id)
            await self.file_service.discard_file(file)
            raise

        if not url:
            await self.file_service.discard_file(file)
            raise StorageError("Object store returned an empty upload URL", key=key)

        ticket = UploadTicket(
            url=url,
            key=key,
            expires_in=ttl,
            method="PUT",
            headers={"Content-Type": file.type},
        )
        logger.info("Issued upload URL for file %s in bucket %s", file.id, file.bucket_id)
        return IssuedUpload(file=file, ticket=ticket)

    # =========================================================================
    # Downloads
    # =========================================================================

    async def _cached_url_lifetime(self, key: str) -> int:
        remaining_ms = await self.cache.remaining_ttl(key)
        if remaining_ms < 0:
            return self.settings.download_url_expiration_seconds
        return remaining_ms // 1000 + self.settings.presigned_url_cache_margin_seconds

    async def issue_download(self, bucket: Bucket, file_id: str) -> IssuedDownload:
        """
        Return a presigned GET URL for a file in ``bucket`` and count the download.

        Raises:
            NotFoundError: If the file is absent or belongs to a different bucket.
            StorageError: If the URL cannot be signed.
        """
        file = await self.get_bucket_file(bucket, file_id)
        key = cache_key(CacheKeys.DOWNLOAD_URL, file.id)

        async def sign() -> str:
            return await self.storage.generate_presigned_download_url(
                object_key_for(file), ttl_seconds=self.settings.download_url_expiration_seconds
            )

        url = await self.cache.get_or_compute(
            key, sign, ttl_seconds=self.settings.download_url_cache_ttl_seconds
        )
        expires_in = await self._cached_url_lifetime(key)

        if await self.file_service.increment_downloads(file.id):
            file.downloads += 1
        return IssuedDownload(file=file, url=url, expires_in=expires_in)

    async def open_download(self, bucket: Bucket, file_id: str) -> OpenedDownload:
        """
        Open a byte stream for a file in ``bucket`` and count the download.

        Existence is checked against the object store, not the record.

        Raises:
            NotFoundError: If the record or the stored object is missing.
            StorageError: If the object store fails.
        """
        file = await self.get_bucket_file(bucket, file_id)
        key = object_key_for(file)
        if not await self.storage.file_exists(key):
            raise NotFoundError("File content not found", file_id=file.id)

        chunks = await self.storage.get_file_stream(key)
        try:
            counted = await self.file_service.increment_downloads(file.id)
        except Exception:
            await chunks.aclose()
            raise
        if counted:
            file.downloads += 1
        return OpenedDownload(file=file, chunks=chunks)

    async def describe_file(self, bucket: Bucket, file_id: str) -> tuple[FileRecord, bool]:
        """Return the record and whether its bytes are present in the object store."""
        file = await self.get_bucket_file(bucket, file_id)
        return file, await self.storage.file_exists(object_key_for(file))

    async def delete_file(self, bucket: Bucket, file_id: str) -> FileRecord:
        file = await self.get_bucket_file(bucket, file_id)
        return await self.file_service.delete_file(file.id)
