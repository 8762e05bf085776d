"""
Services package.

- bucket_service: bucket lifecycle, naming rules and aggregate counters
- file_service: file lifecycle and counter synchronization with the parent bucket
- access_service: presigned URL issuance for bucket-key clients
- user_service: registration, credentials and profile changes

Services receive their repositories, storage gateway and cache through their
constructors. ``build_services`` wires one set of them together; the
application lifespan calls it once and tests call it with fakes.
"""

from dataclasses import dataclass

from app.config import Settings
from app.core.storage import StorageClient
from app.repositories.bucket_repository import BucketRepository
from app.repositories.file_repository import FileRepository
from app.repositories.user_repository import UserRepository
from app.services.access_service import AccessService
from app.services.bucket_service import BucketService
from app.services.file_service import FileService
from app.services.user_service import UserService
from app.utils.cache import Cache


@dataclass
class ServiceContainer:
    settings: Settings
    cache: Cache
    storage: StorageClient
    users: UserService
    buckets: BucketService
    files: FileService
    access: AccessService


def build_services(
    settings: Settings,
    cache: Cache,
    storage: StorageClient,
    user_repository: UserRepository,
    bucket_repository: BucketRepository,
    file_repository: FileRepository,
) -> ServiceContainer:
    bucket_service = BucketService(bucket_repository, file_repository, user_repository)
    file_service = FileService(file_repository, bucket_service, storage, cache)
    return ServiceContainer(
        settings=settings,
        cache=cache,
        storage=storage,
        users=UserService(
            user_repository,
            bucket_repository,
            cache,
            user_cache_ttl_seconds=settings.user_cache_ttl_seconds,
        ),
        buckets=bucket_service,
        files=file_service,
        access=AccessService(file_service, storage, cache, settings),
    )


__all__ = [
    "AccessService",
    "BucketService",
    "FileService",
    "ServiceContainer",
    "UserService",
    "build_services",
]
