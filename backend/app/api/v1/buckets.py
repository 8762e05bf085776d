"""
Owner Bucket API Router

JWT-protected endpoints for managing one's own buckets and the files in them.
A bucket or file that belongs to another owner is reported as not found.

Endpoints:
- GET/POST /buckets
- GET/PATCH/DELETE /buckets/{bucket_id}
- GET /buckets/{bucket_id}/stats
- GET/POST /buckets/{bucket_id}/files
- GET/PATCH/DELETE /files/{file_id}
- GET /dashboard
"""

import logging

from fastapi import APIRouter, Depends, status

from app.core.auth import get_current_user, get_services
from app.core.exceptions import NotFoundError
from app.models.bucket import (
    BucketCreate,
    BucketResponse,
    BucketStats,
    BucketUpdate,
    DashboardSummary,
    PublicBucketResponse,
)
from app.models.error import ErrorResponse
from app.models.file import (
    FileCreate,
    FileRecord,
    FileResponse,
    FileUpdate,
    OwnerFileCreate,
    UploadUrlResponse,
)
from app.models.user import UserResponse
from app.services import ServiceContainer


logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["buckets"],
    responses={
        401: {"description": "Not authenticated", "model": ErrorResponse},
        404: {"description": "Bucket or file not found", "model": ErrorResponse},
    },
)


async def _owned_file(file_id: str, owner_id: str, services: ServiceContainer) -> FileRecord:
    file = await services.files.get_file_by_id(file_id)
    if file is None:
        raise NotFoundError("File not found", file_id=file_id)
    bucket = await services.buckets.get_bucket_by_id(file.bucket_id)
    if bucket is None or bucket.owner_id != owner_id:
        raise NotFoundError("File not found", file_id=file_id)
    return file


# =============================================================================
# Buckets
# =============================================================================


@router.get("/buckets", response_model=list[BucketResponse], summary="List own buckets")
async def list_buckets(
    user: UserResponse = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> list[BucketResponse]:
    buckets = await services.buckets.get_buckets_by_owner_id(user.id)
    return [BucketResponse.from_bucket(bucket) for bucket in buckets]


@router.post(
    "/buckets",
    response_model=BucketResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a bucket",
    description="Creates a bucket with a fresh public/private key pair and zeroed counters.",
    responses={409: {"description": "Name already used by this owner", "model": ErrorResponse}},
)
async def create_bucket(
    request: BucketCreate,
    user: UserResponse = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> BucketResponse:
    bucket = await services.buckets.create_bucket(request.name, user.id)
    return BucketResponse.from_bucket(bucket)


@router.get("/buckets/{bucket_id}", response_model=BucketResponse, summary="Get a bucket")
async def get_bucket(
    bucket_id: str,
    user: UserResponse = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> BucketResponse:
    bucket = await services.buckets.get_owned_bucket(bucket_id, user.id)
    return BucketResponse.from_bucket(bucket)


@router.patch(
    "/buckets/{bucket_id}",
    response_model=BucketResponse,
    summary="Rename a bucket",
    responses={409: {"description": "Name already used by this owner", "model": ErrorResponse}},
)
async def update_bucket(
    bucket_id: str,
    request: BucketUpdate,
    user: UserResponse = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> BucketResponse:
    await services.buckets.get_owned_bucket(bucket_id, user.id)
    bucket = await services.buckets.update_bucket(bucket_id, name=request.name)
    return BucketResponse.from_bucket(bucket)


@router.delete(
    "/buckets/{bucket_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an empty bucket",
    responses={409: {"description": "Bucket still holds files", "model": ErrorResponse}},
)
async def delete_bucket(
    bucket_id: str,
    user: UserResponse = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> None:
    await services.buckets.get_owned_bucket(bucket_id, user.id)
    await services.buckets.delete_bucket(bucket_id)


@router.get("/buckets/{bucket_id}/stats", response_model=BucketStats, summary="Bucket counters")
async def get_bucket_stats(
    bucket_id: str,
    user: UserResponse = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> BucketStats:
    bucket = await services.buckets.get_owned_bucket(bucket_id, user.id)
    return BucketStats.from_bucket(bucket)


# =============================================================================
# Files
# =============================================================================


@router.get(
    "/buckets/{bucket_id}/files", response_model=list[FileResponse], summary="List bucket files"
)
async def list_bucket_files(
    bucket_id: str,
    user: UserResponse = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> list[FileResponse]:
    await services.buckets.get_owned_bucket(bucket_id, user.id)
    files = await services.files.get_files_by_bucket_id(bucket_id)
    return [FileResponse.from_file(file) for file in files]


@router.post(
    "/buckets/{bucket_id}/files",
    response_model=UploadUrlResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a file and get its upload URL",
    responses={
        409: {"description": "File name already used in the bucket", "model": ErrorResponse},
        502: {"description": "Object store failure", "model": ErrorResponse},
    },
)
async def create_bucket_file(
    bucket_id: str,
    request: OwnerFileCreate,
    user: UserResponse = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> UploadUrlResponse:
    bucket = await services.buckets.get_owned_bucket(bucket_id, user.id)
    issued = await services.access.issue_upload(
        FileCreate(
            bucket_id=bucket.id,
            name=request.name,
            original_name=request.original_name or request.name,
            type=request.type,
            size=request.size,
            metadata=request.metadata,
        )
    )
    return UploadUrlResponse(
        file=FileResponse.from_file(issued.file),
        bucket=PublicBucketResponse.from_bucket(bucket).model_dump(),
        upload=issued.ticket,
    )


@router.get("/files/{file_id}", response_model=FileResponse, summary="Get a file")
async def get_file(
    file_id: str,
    user: UserResponse = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> FileResponse:
    return FileResponse.from_file(await _owned_file(file_id, user.id, services))


@router.patch(
    "/files/{file_id}",
    response_model=FileResponse,
    summary="Rename a file or replace its metadata",
    responses={409: {"description": "File name already used in the bucket", "model": ErrorResponse}},
)
async def update_file(
    file_id: str,
    request: FileUpdate,
    user: UserResponse = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> FileResponse:
    await _owned_file(file_id, user.id, services)
    file = await services.files.update_file(file_id, name=request.name, metadata=request.metadata)
    return FileResponse.from_file(file)


@router.delete(
    "/files/{file_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a file and its stored object",
)
async def delete_file(
    file_id: str,
    user: UserResponse = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> None:
    await _owned_file(file_id, user.id, services)
    await services.files.delete_file(file_id)


# =============================================================================
# Dashboard
# =============================================================================


@router.get("/dashboard", response_model=DashboardSummary, summary="Totals across own buckets")
async def get_dashboard(
    user: UserResponse = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> DashboardSummary:
    return await services.buckets.get_dashboard(user.id)
