"""
Public Bucket API Router

Endpoints for bucket clients. The caller is identified by a bucket public key
sent as ``Authorization: Bearer <public key>``; every operation is confined to
that bucket.

Endpoints:
- POST /upload-uri: Register a file and return a presigned PUT URL
- GET /download-uri/{file_id}: Presigned GET URL (counts a download)
- GET /files/{file_id}/download: Stream the object (counts a download)
- GET /files/{file_id}: File record plus object-store presence
- GET /files: List files in the bucket
- DELETE /files/{file_id}: Delete a file and its object
"""

import logging

from collections.abc import AsyncIterator
from urllib.parse import quote

from fastapi import APIRouter, Depends, status
from fastapi.responses import StreamingResponse

from app.core.auth import get_bucket_from_public_key, get_services
from app.core.exceptions import StorageError
from app.core.storage import ObjectStream
from app.models.bucket import Bucket, PublicBucketResponse
from app.models.error import ErrorResponse
from app.models.file import (
    DownloadUrlResponse,
    FileInfoResponse,
    FileResponse,
    UploadUrlRequest,
    UploadUrlResponse,
)
from app.services import ServiceContainer


logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["public"],
    responses={
        401: {"description": "Missing or invalid bucket key", "model": ErrorResponse},
        404: {"description": "File not found in this bucket", "model": ErrorResponse},
    },
)


# =============================================================================
# Streaming Helpers
# =============================================================================


async def stream_object(file_id: str, chunks: ObjectStream) -> AsyncIterator[bytes]:
    """
    Relay object bytes to the client.

    Headers are already sent once the first chunk goes out, so a storage
    failure mid-stream can only be logged and the body cut short. The object
    body is released however the relay ends.
    """
    sent = 0
    try:
        async for chunk in chunks:
            sent += len(chunk)
            yield chunk
    except StorageError as e:
        logger.error("Stream for file %s aborted after %d bytes: %s", file_id, sent, e.message)
        return
    finally:
        await chunks.aclose()
    logger.debug("Streamed %d bytes for file %s", sent, file_id)


def _content_disposition(file_name: str) -> str:
    return f"attachment; filename*=UTF-8''{quote(file_name)}"


# =============================================================================
# API Endpoints
# =============================================================================


@router.post(
    "/upload-uri",
    response_model=UploadUrlResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request a presigned upload URL",
    description=(
        "Registers a file record in the bucket and returns a presigned PUT URL "
        "for its bytes. The stored name is the given base name plus a unique "
        "suffix. Sizes above the public upload limit are rejected."
    ),
    responses={
        400: {"description": "Invalid size or type", "model": ErrorResponse},
        502: {"description": "Object store failure", "model": ErrorResponse},
    },
)
async def request_upload_uri(
    request: UploadUrlRequest,
    bucket: Bucket = Depends(get_bucket_from_public_key),
    services: ServiceContainer = Depends(get_services),
) -> UploadUrlResponse:
    issued = await services.access.issue_public_upload(
        bucket,
        file_name=request.file_name,
        file_type=request.file_type,
        file_size=request.file_size,
        metadata=request.metadata,
    )
    return UploadUrlResponse(
        file=FileResponse.from_file(issued.file),
        bucket=PublicBucketResponse.from_bucket(bucket).model_dump(),
        upload=issued.ticket,
    )


@router.get(
    "/download-uri/{file_id}",
    response_model=DownloadUrlResponse,
    summary="Request a presigned download URL",
    description=(
        "Returns a presigned GET URL. Repeated requests within the URL lifetime "
        "return the same URL; every request counts as a download."
    ),
    responses={502: {"description": "Object store failure", "model": ErrorResponse}},
)
async def request_download_uri(
    file_id: str,
    bucket: Bucket = Depends(get_bucket_from_public_key),
    services: ServiceContainer = Depends(get_services),
) -> DownloadUrlResponse:
    issued = await services.access.issue_download(bucket, file_id)
    return DownloadUrlResponse(
        url=issued.url,
        expires_in=issued.expires_in,
        file=FileResponse.from_file(issued.file),
    )


@router.get(
    "/files/{file_id}/download",
    response_class=StreamingResponse,
    summary="Stream file bytes",
    responses={
        200: {"content": {"application/octet-stream": {}}, "description": "File bytes"},
        502: {"description": "Object store failure", "model": ErrorResponse},
    },
)
async def download_file(
    file_id: str,
    bucket: Bucket = Depends(get_bucket_from_public_key),
    services: ServiceContainer = Depends(get_services),
) -> StreamingResponse:
    opened = await services.access.open_download(bucket, file_id)
    file = opened.file
    return StreamingResponse(
        stream_object(file.id, opened.chunks),
        media_type=file.type or "application/octet-stream",
        headers={
            "Content-Disposition": _content_disposition(file.original_name),
            "Content-Length": str(file.size),
        },
    )


@router.get("/files/{file_id}", response_model=FileInfoResponse, summary="Get file info")
async def get_file_info(
    file_id: str,
    bucket: Bucket = Depends(get_bucket_from_public_key),
    services: ServiceContainer = Depends(get_services),
) -> FileInfoResponse:
    file, exists = await services.access.describe_file(bucket, file_id)
    return FileInfoResponse(file=FileResponse.from_file(file), storage={"exists": exists})


@router.get("/files", response_model=list[FileResponse], summary="List files in the bucket")
async def list_files(
    bucket: Bucket = Depends(get_bucket_from_public_key),
    services: ServiceContainer = Depends(get_services),
) -> list[FileResponse]:
    files = await services.files.get_files_by_bucket_id(bucket.id)
    return [FileResponse.from_file(file) for file in files]


@router.delete(
    "/files/{file_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a file",
    responses={502: {"description": "Object store failure", "model": ErrorResponse}},
)
async def delete_file(
    file_id: str,
    bucket: Bucket = Depends(get_bucket_from_public_key),
    services: ServiceContainer = Depends(get_services),
) -> None:
    await services.access.delete_file(bucket, file_id)
