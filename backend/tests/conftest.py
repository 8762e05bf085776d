"""
Pytest Configuration and Test Fixtures for the Bucket Gateway Backend

This module provides:
- Test settings isolated from the environment's MongoDB, Redis and S3
- In-memory repositories (see fakes.py) and a MemoryCache on a hand-driven clock
- A mocked StorageClient that signs distinct, recognizable URLs
- A ServiceContainer wired from the above, plus an httpx client over the app
- Sample owner, bucket and file fixtures
"""

import itertools

from collections.abc import AsyncIterator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from httpx import ASGITransport, AsyncClient

from app.config import Settings
from app.core.auth import create_access_token
from app.core.storage import StorageClient
from app.main import create_app
from app.models.bucket import Bucket
from app.models.file import FileCreate, FileRecord
from app.models.user import User
from app.services import ServiceContainer, build_services
from app.utils.cache import MemoryCache
from tests.fakes import FakeBucketRepository, FakeClock, FakeFileRepository, FakeUserRepository


TEST_PASSWORD = "Secret123"
OBJECT_BYTES = b"0123456789" * 1000


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")


# ==============================================================================
# Settings Fixtures
# ==============================================================================


@pytest.fixture
def mock_settings() -> Settings:
    """Settings with test values for every external dependency."""
    return Settings(
        app_env="testing",
        app_name="bucket-gateway-test",
        debug=True,
        json_logs=False,
        secret_key="test-secret-key-for-jwt-signing-minimum-32-chars",
        mongodb_uri="mongodb://localhost:27017/test_bucket_gateway",
        mongodb_db_name="test_bucket_gateway",
        mongodb_min_pool_size=1,
        mongodb_max_pool_size=10,
        cache_backend="memory",
        redis_url="redis://localhost:6379/1",
        s3_endpoint_url="http://localhost:9000",
        s3_access_key_id="test-access-key",
        s3_secret_access_key="test-secret-key",
        s3_bucket_name="test-bucket",
        s3_region="us-east-1",
        upload_url_expiration_seconds=900,
        download_url_expiration_seconds=3600,
        presigned_url_cache_margin_seconds=300,
        max_public_upload_size_mb=100,
        jwt_algorithm="HS256",
        jwt_expiration_hours=24,
    )


# ==============================================================================
# Infrastructure Fixtures
# ==============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> MemoryCache:
    return MemoryCache(clock=clock)


async def _object_chunks() -> AsyncIterator[bytes]:
    for start in range(0, len(OBJECT_BYTES), 4096):
        yield OBJECT_BYTES[start : start + 4096]


@pytest.fixture
def mock_storage() -> AsyncMock:
    """
    StorageClient double.

    Every signing call returns a new URL carrying a sequence number, so tests
    can tell a cached URL from a freshly signed one.
    """
    storage = AsyncMock(spec=StorageClient)
    counter = itertools.count(1)

    async def sign_upload(key: str, ttl_seconds: int, content_type: str | None = None) -> str:
        return f"https://s3.example.com/test-bucket/{key}?X-Amz-Signature=up{next(counter)}"

    async def sign_download(key: str, ttl_seconds: int) -> str:
        return f"https://s3.example.com/test-bucket/{key}?X-Amz-Signature=down{next(counter)}"

    async def open_stream(key: str, chunk_size: int = 65536) -> AsyncIterator[bytes]:
        return _object_chunks()

    storage.generate_presigned_upload_url.side_effect = sign_upload
    storage.generate_presigned_download_url.side_effect = sign_download
    storage.get_file_stream.side_effect = open_stream
    storage.file_exists.return_value = True
    storage.delete_file.return_value = None
    return storage


@pytest.fixture
def user_repository() -> FakeUserRepository:
    return FakeUserRepository()


@pytest.fixture
def bucket_repository() -> FakeBucketRepository:
    return FakeBucketRepository()


@pytest.fixture
def file_repository() -> FakeFileRepository:
    return FakeFileRepository()


@pytest.fixture
def services(
    mock_settings: Settings,
    cache: MemoryCache,
    mock_storage: AsyncMock,
    user_repository: FakeUserRepository,
    bucket_repository: FakeBucketRepository,
    file_repository: FakeFileRepository,
) -> ServiceContainer:
    return build_services(
        settings=mock_settings,
        cache=cache,
        storage=mock_storage,
        user_repository=user_repository,
        bucket_repository=bucket_repository,
        file_repository=file_repository,
    )


# ==============================================================================
# Sample Data Fixtures
# ==============================================================================


@pytest_asyncio.fixture
async def owner(user_repository: FakeUserRepository) -> User:
    """A stored user. The hash is a placeholder; login tests register for real."""
    return await user_repository.create(
        User(email="owner@example.com", password_hash="$2b$12$placeholderplaceholderpla")
    )


@pytest_asyncio.fixture
async def other_owner(user_repository: FakeUserRepository) -> User:
    return await user_repository.create(
        User(email="other@example.com", password_hash="$2b$12$placeholderplaceholderpla")
    )


@pytest_asyncio.fixture
async def bucket(services: ServiceContainer, owner: User) -> Bucket:
    return await services.buckets.create_bucket("Media", owner.id)


@pytest_asyncio.fixture
async def other_bucket(services: ServiceContainer, other_owner: User) -> Bucket:
    return await services.buckets.create_bucket("Archive", other_owner.id)


@pytest_asyncio.fixture
async def stored_file(services: ServiceContainer, bucket: Bucket) -> FileRecord:
    return await services.files.create_file(
        FileCreate(
            bucket_id=bucket.id,
            name="a.png",
            original_name="a.png",
            type="image/png",
            size=1024,
        )
    )


# ==============================================================================
# HTTP Fixtures
# ==============================================================================


@pytest_asyncio.fixture
async def async_client(
    mock_settings: Settings, services: ServiceContainer
) -> AsyncIterator[AsyncClient]:
    """HTTP client over an app whose services are the in-memory ones above."""
    app = create_app(mock_settings, use_lifespan=False)
    app.state.services = services
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.fixture
def owner_headers(owner: User, mock_settings: Settings) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(owner, mock_settings)}"}


@pytest.fixture
def bucket_headers(bucket: Bucket) -> dict[str, str]:
    return {"Authorization": f"Bearer {bucket.public_key}"}
