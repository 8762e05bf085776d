"""
File Pydantic models.

A file record describes one stored object. The record's identifier is also the
object-store key; ``object_key_for`` is the only place that mapping is made.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.utils.security import generate_id


FILE_NAME_MAX_LENGTH = 255
PUBLIC_FILE_NAME_PATTERN = r"^[a-zA-Z0-9._-]+$"
MIME_TYPE_PATTERN = r"^[a-z]+/[a-z0-9\-\+\.]+$"
UNNAMED_FILE_NAME = "UNNAMED"


class FileRecord(BaseModel):
    """
    Stored file document.

    Attributes:
        id: Random hex identifier, also the object-store key
        bucket_id: Owning bucket
        name: Display name, unique within the bucket (exact match)
        original_name: Name supplied by the client
        type: Declared MIME type
        size: Declared size in bytes
        downloads: Download URLs and streams issued for this file
        metadata: Free-form client metadata
    """

    id: str = Field(default_factory=generate_id, alias="_id", description="File identifier")
    bucket_id: str = Field(..., description="Owning bucket ID")
    name: str = Field(..., description="Display name, unique within the bucket")
    original_name: str = Field(..., description="Client-supplied file name")
    type: str = Field(..., description="Declared MIME type")
    size: int = Field(..., description="Declared size in bytes")
    downloads: int = Field(default=0, description="Download counter")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Client metadata")
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = ConfigDict(populate_by_name=True)


def object_key_for(file: FileRecord) -> str:
    """Object-store key holding the bytes of ``file``."""
    return file.id


class FileCreate(BaseModel):
    """Input to FileService.create_file."""

    bucket_id: str
    name: str
    original_name: str
    type: str
    size: int
    metadata: dict[str, Any] = Field(default_factory=dict)


class FileUpdate(BaseModel):
    name: str | None = Field(
        default=None, min_length=1, max_length=FILE_NAME_MAX_LENGTH, description="New display name"
    )
    metadata: dict[str, Any] | None = Field(default=None, description="Replacement metadata")


class OwnerFileCreate(BaseModel):
    """Owner-side request to register a file and receive an upload URL."""

    name: str = Field(..., min_length=1, max_length=FILE_NAME_MAX_LENGTH, examples=["a.png"])
    original_name: str | None = Field(default=None, max_length=FILE_NAME_MAX_LENGTH)
    type: str = Field(..., pattern=MIME_TYPE_PATTERN, examples=["image/png"])
    size: int = Field(..., description="Declared size in bytes", examples=[1024])
    metadata: dict[str, Any] = Field(default_factory=dict)


class UploadUrlRequest(BaseModel):
    """Public upload request. Size limits are enforced by the access service."""

    file_name: str | None = Field(
        default=None,
        min_length=1,
        max_length=FILE_NAME_MAX_LENGTH,
        pattern=PUBLIC_FILE_NAME_PATTERN,
        description="Base name; a unique suffix is appended",
        examples=["photo.png"],
    )
    file_type: str = Field(..., pattern=MIME_TYPE_PATTERN, examples=["image/png"])
    file_size: int = Field(..., description="Declared size in bytes", examples=[1024])
    metadata: dict[str, Any] = Field(default_factory=dict)


class FileResponse(BaseModel):
    id: str
    bucket_id: str
    name: str
    original_name: str
    type: str
    size: int
    downloads: int
    metadata: dict[str, Any]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_file(cls, file: FileRecord) -> "FileResponse":
        return cls.model_validate(file.model_dump())


class UploadTicket(BaseModel):
    """Everything a client needs to PUT the bytes for a freshly registered file."""

    url: str
    key: str
    expires_in: int
    method: str = "PUT"
    headers: dict[str, str] = Field(default_factory=dict)


class UploadUrlResponse(BaseModel):
    file: FileResponse
    bucket: dict[str, str]
    upload: UploadTicket


class DownloadUrlResponse(BaseModel):
    url: str
    expires_in: int
    file: FileResponse


class FileInfoResponse(BaseModel):
    file: FileResponse
    storage: dict[str, Any]
