"""
Bucket Pydantic models.

A bucket is an owned, named isolation unit holding file records and four
aggregate counters. Counters are only ever changed by atomic ``$inc`` deltas at
the persistence layer; nothing in the application writes them directly.
"""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from app.utils.security import (
    PRIVATE_KEY_PREFIX,
    PUBLIC_KEY_PREFIX,
    generate_bucket_key,
    generate_id,
)


BUCKET_NAME_MIN_LENGTH = 3
BUCKET_NAME_MAX_LENGTH = 50
BUCKET_NAME_PATTERN = r"^[a-zA-Z0-9\-_\s]+$"
RECENT_BUCKETS_LIMIT = 5


def normalize_bucket_name(name: str) -> str:
    """Comparison key for per-owner name uniqueness: trimmed and lowercased."""
    return name.strip().lower()


class Bucket(BaseModel):
    """
    Stored bucket document.

    ``name_key`` is the normalized name backing the unique
    ``(owner_id, name_key)`` index.
    """

    id: str = Field(default_factory=generate_id, alias="_id", description="Bucket identifier")

    name: str = Field(..., description="Display name, unique per owner ignoring case")

    name_key: str = Field(..., description="Trimmed, lowercased name used for uniqueness")

    owner_id: str = Field(..., description="Owning user ID")

    public_key: str = Field(
        default_factory=lambda: generate_bucket_key(PUBLIC_KEY_PREFIX),
        description="Bearer credential for public file operations",
    )

    private_key: str = Field(
        default_factory=lambda: generate_bucket_key(PRIVATE_KEY_PREFIX),
        description="Credential reserved for administrative listing",
    )

    download_count: int = Field(default=0, description="Downloads issued across all files")
    upload_count: int = Field(default=0, description="Uploads issued across all files")
    total_size: int = Field(default=0, description="Sum of declared file sizes in bytes")
    file_count: int = Field(default=0, description="Number of file records")

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = ConfigDict(populate_by_name=True)


class BucketCreate(BaseModel):
    name: str = Field(
        ...,
        min_length=BUCKET_NAME_MIN_LENGTH,
        max_length=BUCKET_NAME_MAX_LENGTH,
        pattern=BUCKET_NAME_PATTERN,
        description="Bucket name (letters, digits, spaces, hyphens and underscores)",
        examples=["Media"],
    )


class BucketUpdate(BaseModel):
    name: str | None = Field(
        default=None,
        min_length=BUCKET_NAME_MIN_LENGTH,
        max_length=BUCKET_NAME_MAX_LENGTH,
        pattern=BUCKET_NAME_PATTERN,
        description="New bucket name",
    )


class BucketStats(BaseModel):
    """Read-only counter snapshot."""

    bucket_id: str
    name: str
    file_count: int
    total_size: int
    download_count: int
    upload_count: int

    @classmethod
    def from_bucket(cls, bucket: Bucket) -> "BucketStats":
        return cls(
            bucket_id=bucket.id,
            name=bucket.name,
            file_count=bucket.file_count,
            total_size=bucket.total_size,
            download_count=bucket.download_count,
            upload_count=bucket.upload_count,
        )


class BucketResponse(BaseModel):
    """Bucket as returned to its owner, keys included."""

    id: str
    name: str
    owner_id: str
    public_key: str
    private_key: str
    download_count: int
    upload_count: int
    total_size: int
    file_count: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_bucket(cls, bucket: Bucket) -> "BucketResponse":
        return cls.model_validate(bucket.model_dump())


class PublicBucketResponse(BaseModel):
    """Bucket as echoed to a public-key client. Never includes the private key."""

    id: str
    name: str

    @classmethod
    def from_bucket(cls, bucket: Bucket) -> "PublicBucketResponse":
        return cls(id=bucket.id, name=bucket.name)


class DashboardSummary(BaseModel):
    total_buckets: int = Field(..., description="Number of buckets owned")
    total_files: int = Field(..., description="Files across all owned buckets")
    total_storage: int = Field(..., description="Declared bytes across all owned buckets")
    total_api_calls: int = Field(..., description="Uploads plus downloads issued")
    recent_buckets: list[BucketResponse] = Field(
        default_factory=list, description=f"The {RECENT_BUCKETS_LIMIT} newest buckets"
    )
