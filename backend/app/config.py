"""
Bucket Gateway Configuration Management Module

Loads and validates the environment for the gateway using Pydantic Settings:
- Application settings (name, environment, debug mode, logging)
- MongoDB connection and pooling
- Cache backend selection (process-local memory or Redis)
- S3-compatible object storage and presigned URL lifetimes
- Public upload limits
- Local JWT signing for bucket owners

All settings support environment variable overrides and .env file loading.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Configuration settings for the bucket gateway.

    Example usage:
        ```python
        from app.config import get_settings

        settings = get_settings()
        print(f"Storing objects in: {settings.s3_bucket_name}")
        ```
    """

    # =========================================================================
    # Application Settings
    # =========================================================================

    app_name: str = Field(
        default="bucket-gateway",
        description="Application name displayed in API documentation and logs",
    )

    app_env: str = Field(
        default="development",
        description="Application environment (development, staging, production, testing)",
    )

    debug: bool = Field(default=False, description="Enable debug mode and verbose logging")

    log_level: str = Field(
        default="info", description="Logging level (debug, info, warning, error, critical)"
    )

    json_logs: bool | None = Field(
        default=None,
        description="Emit JSON log lines. Defaults to True in production, False elsewhere",
    )

    secret_key: str = Field(
        default="development-secret-key-change-in-production-32chars",
        description="Secret key for JWT signing. Must be a secure random string.",
        min_length=32,
    )

    host: str = Field(default="0.0.0.0", description="Host address for the API server to bind to")

    port: int = Field(default=8000, description="Port number for the API server", ge=1, le=65535)

    cors_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="List of allowed CORS origins for dashboard access",
    )

    # =========================================================================
    # MongoDB Configuration
    # =========================================================================

    mongodb_uri: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI (e.g., mongodb://localhost:27017)",
    )

    mongodb_db_name: str = Field(
        default="bucket_gateway", description="MongoDB database name for gateway metadata"
    )

    mongodb_min_pool_size: int = Field(
        default=10, description="Minimum number of connections in MongoDB connection pool", ge=1
    )

    mongodb_max_pool_size: int = Field(
        default=100, description="Maximum number of connections in MongoDB connection pool", ge=10
    )

    # =========================================================================
    # Cache Configuration
    # =========================================================================

    cache_backend: str = Field(
        default="memory",
        description="Cache backend for presigned URLs and user lookups (memory or redis)",
    )

    redis_url: str = Field(
        default="redis://localhost:6379",
        description="Redis connection URL, used when cache_backend is redis",
    )

    user_cache_ttl_seconds: int = Field(
        default=300, description="TTL for cached user lookups in seconds (5 minutes)", ge=1
    )

    # =========================================================================
    # S3-Compatible Storage Configuration
    # =========================================================================

    s3_endpoint_url: str | None = Field(
        default=None, description="S3-compatible endpoint URL (None for AWS S3)"
    )

    s3_access_key_id: str = Field(
        default="minioadmin",
        description="S3 access key ID for authentication",
    )

    s3_secret_access_key: str = Field(
        default="minioadmin",
        description="S3 secret access key for authentication",
    )

    s3_bucket_name: str = Field(
        default="bucket-gateway-objects", description="Object store bucket holding all files"
    )

    s3_region: str = Field(
        default="auto",
        description="Region for the S3 client (auto works for R2-style endpoints)",
    )

    upload_url_expiration_seconds: int = Field(
        default=900,
        description="Lifetime of presigned upload URLs in seconds (15 minutes)",
        ge=60,
        le=604800,
    )

    download_url_expiration_seconds: int = Field(
        default=3600,
        description="Lifetime of presigned download URLs in seconds (1 hour)",
        ge=60,
        le=604800,
    )

    presigned_url_cache_margin_seconds: int = Field(
        default=300,
        description="How long before expiry a cached presigned URL stops being handed out",
        ge=0,
    )

    # =========================================================================
    # Upload Limits
    # =========================================================================

    max_public_upload_size_mb: int = Field(
        default=100,
        description="Maximum declared file size on the public upload path in MiB",
        ge=1,
    )

    # =========================================================================
    # JWT Configuration
    # =========================================================================

    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")

    jwt_expiration_hours: int = Field(
        default=24, description="JWT token expiration time in hours", ge=1, le=168
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid logging level."""
        valid_levels = {"debug", "info", "warning", "error", "critical"}
        normalized = v.lower()
        if normalized not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {', '.join(valid_levels)}")
        return normalized

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate that app_env is a valid environment name."""
        valid_envs = {"development", "staging", "production", "testing"}
        normalized = v.lower()
        if normalized not in valid_envs:
            raise ValueError(f"Invalid app_env '{v}'. Must be one of: {', '.join(valid_envs)}")
        return normalized

    @field_validator("cache_backend")
    @classmethod
    def validate_cache_backend(cls, v: str) -> str:
        """Validate that cache_backend names a supported backend."""
        normalized = v.lower()
        if normalized not in {"memory", "redis"}:
            raise ValueError(f"Invalid cache_backend '{v}'. Must be one of: memory, redis")
        return normalized

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        """Only the symmetric HS family is supported for locally issued tokens."""
        valid_algorithms = {"HS256", "HS384", "HS512"}
        if v.upper() not in valid_algorithms:
            raise ValueError(
                f"Invalid jwt_algorithm '{v}'. Must be one of: {', '.join(valid_algorithms)}"
            )
        return v.upper()

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from comma-separated string if provided as string."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def max_public_upload_size_bytes(self) -> int:
        """Public upload cap in bytes (inclusive)."""
        return self.max_public_upload_size_mb * 1024 * 1024

    @property
    def upload_url_cache_ttl_seconds(self) -> int:
        """Cache lifetime for an upload URL, kept strictly inside the URL's own lifetime."""
        return max(self.upload_url_expiration_seconds - self.presigned_url_cache_margin_seconds, 1)

    @property
    def download_url_cache_ttl_seconds(self) -> int:
        """Cache lifetime for a download URL, kept strictly inside the URL's own lifetime."""
        return max(
            self.download_url_expiration_seconds - self.presigned_url_cache_margin_seconds, 1
        )

    @property
    def use_json_logs(self) -> bool:
        if self.json_logs is not None:
            return self.json_logs
        return self.is_production

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get the process-wide Settings instance.

    Configuration is read from the environment once, on first call.

    Returns:
        Settings: The global configuration instance.
    """
    return Settings()
