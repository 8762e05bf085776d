"""
Models Package.

Pydantic models for users, buckets and files. Stored documents use a random hex
``id`` aliased to MongoDB's ``_id``; request and response shapes live beside the
document they describe.
"""

from app.models.bucket import (
    Bucket,
    BucketCreate,
    BucketResponse,
    BucketStats,
    BucketUpdate,
    DashboardSummary,
    PublicBucketResponse,
    normalize_bucket_name,
)
from app.models.file import (
    DownloadUrlResponse,
    FileCreate,
    FileInfoResponse,
    FileRecord,
    FileResponse,
    FileUpdate,
    OwnerFileCreate,
    UploadTicket,
    UploadUrlRequest,
    UploadUrlResponse,
    object_key_for,
)
from app.models.error import ErrorResponse
from app.models.user import (
    PasswordChange,
    TokenResponse,
    User,
    UserCreate,
    UserLogin,
    UserResponse,
    UserUpdate,
)


__all__ = [
    "Bucket",
    "BucketCreate",
    "BucketResponse",
    "BucketStats",
    "BucketUpdate",
    "DashboardSummary",
    "DownloadUrlResponse",
    "ErrorResponse",
    "FileCreate",
    "FileInfoResponse",
    "FileRecord",
    "FileResponse",
    "FileUpdate",
    "OwnerFileCreate",
    "PasswordChange",
    "PublicBucketResponse",
    "TokenResponse",
    "UploadTicket",
    "UploadUrlRequest",
    "UploadUrlResponse",
    "User",
    "UserCreate",
    "UserLogin",
    "UserResponse",
    "UserUpdate",
    "normalize_bucket_name",
    "object_key_for",
]
