"""
Access Service Test Suite

Tests presigned URL issuance for bucket-key clients:

- Public uploads get a generated unique name and a size cap
- A failed signing rolls back the freshly created record
- Download URLs are memoized, but every request is counted
- Files from another bucket look exactly like missing files
- Streaming checks the object store before counting
"""

import io
import re

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.config import Settings
from app.core.exceptions import (
    ConflictError,
    ConsistencyError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from app.core.storage import StorageClient
from app.models.bucket import Bucket
from app.models.file import FileCreate, FileRecord
from app.services import ServiceContainer
from app.services.access_service import AccessService
from app.utils.cache import CacheKeys, MemoryCache, cache_key
from tests.conftest import OBJECT_BYTES
from tests.fakes import FakeClock, FakeFileRepository


MIB = 1024 * 1024


async def _bucket(services: ServiceContainer, bucket_id: str) -> Bucket:
    bucket = await services.buckets.get_bucket_by_id(bucket_id)
    assert bucket is not None
    return bucket


# =============================================================================
# Public Upload
# =============================================================================


class TestPublicUpload:
    """Test suite for AccessService.issue_public_upload."""

    @pytest.mark.asyncio
    async def test_ticket_and_generated_name(
        self, services: ServiceContainer, bucket: Bucket, mock_storage: AsyncMock
    ) -> None:
        issued = await services.access.issue_public_upload(
            bucket, "a.png", "image/png", 1024, {"source": "web"}
        )

        assert re.fullmatch(r"a\.pngxxxFILE[0-9A-F]{16}", issued.file.name)
        assert issued.file.original_name == "a.png"
        assert issued.file.metadata == {"source": "web"}
        assert issued.ticket.key == issued.file.id
        assert issued.ticket.method == "PUT"
        assert issued.ticket.expires_in == 900
        assert issued.ticket.headers == {"Content-Type": "image/png"}
        assert "X-Amz-Signature=up" in issued.ticket.url
        mock_storage.generate_presigned_upload_url.assert_awaited_once_with(
            issued.file.id, ttl_seconds=900, content_type="image/png"
        )

        updated = await _bucket(services, bucket.id)
        assert (updated.total_size, updated.file_count, updated.upload_count) == (1024, 1, 1)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("file_name", [None, ""])
    async def test_missing_name_falls_back_to_unnamed(
        self, services: ServiceContainer, bucket: Bucket, file_name: str | None
    ) -> None:
        issued = await services.access.issue_public_upload(bucket, file_name, "text/plain", 3)

        assert issued.file.name.startswith("UNNAMEDxxxFILE")
        assert issued.file.original_name == "UNNAMED"

    @pytest.mark.asyncio
    async def test_same_base_name_twice_gives_two_files(
        self, services: ServiceContainer, bucket: Bucket
    ) -> None:
        first = await services.access.issue_public_upload(bucket, "a.png", "image/png", 1)
        second = await services.access.issue_public_upload(bucket, "a.png", "image/png", 1)

        assert first.file.name != second.file.name
        assert first.ticket.url != second.ticket.url

    @pytest.mark.asyncio
    async def test_size_exactly_at_cap_is_accepted(
        self, services: ServiceContainer, bucket: Bucket
    ) -> None:
        issued = await services.access.issue_public_upload(
            bucket, "big.bin", "application/octet-stream", 100 * MIB
        )

        assert issued.file.size == 104857600

    @pytest.mark.asyncio
    @pytest.mark.parametrize("size", [100 * MIB + 1, -1])
    async def test_size_outside_range_is_rejected(
        self,
        services: ServiceContainer,
        bucket: Bucket,
        mock_storage: AsyncMock,
        file_repository: FakeFileRepository,
        size: int,
    ) -> None:
        with pytest.raises(ValidationError):
            await services.access.issue_public_upload(
                bucket, "big.bin", "application/octet-stream", size
            )

        assert file_repository.documents == {}
        mock_storage.generate_presigned_upload_url.assert_not_awaited()


# =============================================================================
# Upload Rollback
# =============================================================================


class TestUploadRollback:
    """A record whose URL could not be issued must not survive."""

    @pytest.mark.asyncio
    async def test_signing_failure_discards_record(
        self,
        services: ServiceContainer,
        bucket: Bucket,
        mock_storage: AsyncMock,
        file_repository: FakeFileRepository,
    ) -> None:
        mock_storage.generate_presigned_upload_url.side_effect = StorageError("signing failed")

        with pytest.raises(StorageError):
            await services.access.issue_public_upload(bucket, "a.png", "image/png", 1024)

        assert file_repository.documents == {}
        updated = await _bucket(services, bucket.id)
        assert (updated.total_size, updated.file_count, updated.upload_count) == (0, 0, 0)
        mock_storage.delete_file.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_url_is_a_storage_error(
        self,
        services: ServiceContainer,
        bucket: Bucket,
        mock_storage: AsyncMock,
        file_repository: FakeFileRepository,
        cache: MemoryCache,
    ) -> None:
        mock_storage.generate_presigned_upload_url.side_effect = None
        mock_storage.generate_presigned_upload_url.return_value = ""

        with pytest.raises(StorageError):
            await services.access.issue_public_upload(bucket, "a.png", "image/png", 1024)

        assert file_repository.documents == {}
        assert (await cache.stats())["keys"] == 0

    @pytest.mark.asyncio
    async def test_owner_upload_conflict_creates_nothing(
        self,
        services: ServiceContainer,
        stored_file: FileRecord,
        mock_storage: AsyncMock,
    ) -> None:
        with pytest.raises(ConflictError):
            await services.access.issue_upload(
                FileCreate(
                    bucket_id=stored_file.bucket_id,
                    name="a.png",
                    original_name="a.png",
                    type="image/png",
                    size=5,
                )
            )

        mock_storage.generate_presigned_upload_url.assert_not_awaited()


# =============================================================================
# Download URLs
# =============================================================================


class TestIssueDownload:
    """Test suite for AccessService.issue_download."""

    @pytest.mark.asyncio
    async def test_url_is_memoized_but_every_request_counts(
        self,
        services: ServiceContainer,
        bucket: Bucket,
        stored_file: FileRecord,
        mock_storage: AsyncMock,
    ) -> None:
        first = await services.access.issue_download(bucket, stored_file.id)
        second = await services.access.issue_download(bucket, stored_file.id)

        assert first.url == second.url
        mock_storage.generate_presigned_download_url.assert_awaited_once_with(
            stored_file.id, ttl_seconds=3600
        )
        assert second.file.downloads == 2

        file = await services.files.get_file_by_id(stored_file.id)
        updated = await _bucket(services, bucket.id)
        assert file is not None and file.downloads == 2
        assert updated.download_count == 2

    @pytest.mark.asyncio
    async def test_expires_in_tracks_cached_lifetime(
        self,
        services: ServiceContainer,
        bucket: Bucket,
        stored_file: FileRecord,
        clock: FakeClock,
    ) -> None:
        fresh = await services.access.issue_download(bucket, stored_file.id)
        clock.advance(100)
        later = await services.access.issue_download(bucket, stored_file.id)

        assert fresh.expires_in == 3600
        assert later.expires_in == 3500

    @pytest.mark.asyncio
    async def test_url_is_resigned_after_cache_expiry(
        self,
        services: ServiceContainer,
        bucket: Bucket,
        stored_file: FileRecord,
        clock: FakeClock,
        mock_storage: AsyncMock,
    ) -> None:
        first = await services.access.issue_download(bucket, stored_file.id)
        clock.advance(3300)
        second = await services.access.issue_download(bucket, stored_file.id)

        assert first.url != second.url
        assert mock_storage.generate_presigned_download_url.await_count == 2

    @pytest.mark.asyncio
    async def test_other_bucket_file_is_not_found(
        self,
        services: ServiceContainer,
        other_bucket: Bucket,
        stored_file: FileRecord,
        mock_storage: AsyncMock,
    ) -> None:
        with pytest.raises(NotFoundError) as cross:
            await services.access.issue_download(other_bucket, stored_file.id)
        with pytest.raises(NotFoundError) as missing:
            await services.access.issue_download(other_bucket, "missing")

        assert cross.value.message == missing.value.message
        mock_storage.generate_presigned_download_url.assert_not_awaited()
        file = await services.files.get_file_by_id(stored_file.id)
        assert file is not None and file.downloads == 0

    @pytest.mark.asyncio
    async def test_signing_failure_is_not_counted(
        self,
        services: ServiceContainer,
        bucket: Bucket,
        stored_file: FileRecord,
        mock_storage: AsyncMock,
    ) -> None:
        mock_storage.generate_presigned_download_url.side_effect = StorageError("down")

        with pytest.raises(StorageError):
            await services.access.issue_download(bucket, stored_file.id)

        file = await services.files.get_file_by_id(stored_file.id)
        assert file is not None and file.downloads == 0

    @pytest.mark.asyncio
    async def test_uncounted_download_keeps_snapshot_count(
        self,
        services: ServiceContainer,
        bucket: Bucket,
        stored_file: FileRecord,
        file_repository: FakeFileRepository,
    ) -> None:
        with patch.object(file_repository, "increment_downloads", AsyncMock(return_value=False)):
            issued = await services.access.issue_download(bucket, stored_file.id)

        assert issued.file.downloads == 0
        updated = await _bucket(services, bucket.id)
        assert updated.download_count == 0

    @pytest.mark.asyncio
    async def test_deleted_file_drops_cached_url(
        self,
        services: ServiceContainer,
        bucket: Bucket,
        stored_file: FileRecord,
        cache: MemoryCache,
    ) -> None:
        await services.access.issue_download(bucket, stored_file.id)
        assert await cache.has(cache_key(CacheKeys.DOWNLOAD_URL, stored_file.id))

        await services.access.delete_file(bucket, stored_file.id)

        assert not await cache.has(cache_key(CacheKeys.DOWNLOAD_URL, stored_file.id))
        with pytest.raises(NotFoundError):
            await services.access.issue_download(bucket, stored_file.id)


# =============================================================================
# Streaming and Info
# =============================================================================


class TestOpenDownload:
    """Test suite for AccessService.open_download and describe_file."""

    @pytest.mark.asyncio
    async def test_stream_yields_object_bytes_and_counts(
        self, services: ServiceContainer, bucket: Bucket, stored_file: FileRecord
    ) -> None:
        opened = await services.access.open_download(bucket, stored_file.id)
        body = b"".join([chunk async for chunk in opened.chunks])

        assert body == OBJECT_BYTES
        assert opened.file.type == "image/png"
        file = await services.files.get_file_by_id(stored_file.id)
        assert file is not None and file.downloads == 1

    @pytest.mark.asyncio
    async def test_missing_object_is_not_found_and_not_counted(
        self,
        services: ServiceContainer,
        bucket: Bucket,
        stored_file: FileRecord,
        mock_storage: AsyncMock,
    ) -> None:
        mock_storage.file_exists.return_value = False

        with pytest.raises(NotFoundError, match="content"):
            await services.access.open_download(bucket, stored_file.id)

        mock_storage.get_file_stream.assert_not_awaited()
        file = await services.files.get_file_by_id(stored_file.id)
        assert file is not None and file.downloads == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("exists", [True, False])
    async def test_describe_reports_object_presence(
        self,
        services: ServiceContainer,
        bucket: Bucket,
        stored_file: FileRecord,
        mock_storage: AsyncMock,
        exists: bool,
    ) -> None:
        mock_storage.file_exists.return_value = exists

        file, present = await services.access.describe_file(bucket, stored_file.id)

        assert file.id == stored_file.id
        assert present is exists

    @pytest.mark.asyncio
    async def test_delete_through_other_bucket_is_not_found(
        self,
        services: ServiceContainer,
        other_bucket: Bucket,
        stored_file: FileRecord,
        mock_storage: AsyncMock,
    ) -> None:
        with pytest.raises(NotFoundError):
            await services.access.delete_file(other_bucket, stored_file.id)

        mock_storage.delete_file.assert_not_awaited()
        assert await services.files.get_file_by_id(stored_file.id) is not None

    @pytest.mark.asyncio
    async def test_object_body_is_released_when_counting_fails(
        self,
        services: ServiceContainer,
        bucket: Bucket,
        stored_file: FileRecord,
        cache: MemoryCache,
        mock_settings: Settings,
    ) -> None:
        body = io.BytesIO(OBJECT_BYTES)
        s3_client = MagicMock()
        s3_client.get_object.return_value = {"Body": body}
        access = AccessService(
            services.files, StorageClient(mock_settings, s3_client=s3_client), cache, mock_settings
        )

        with patch.object(
            services.files,
            "increment_downloads",
            AsyncMock(side_effect=ConsistencyError("Bucket download count not updated")),
        ):
            with pytest.raises(ConsistencyError):
                await access.open_download(bucket, stored_file.id)

        assert body.closed
