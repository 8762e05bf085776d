"""
S3-Compatible Object Store Gateway

Narrow async wrapper around a boto3 S3 client for the operations the gateway
needs: presigned upload/download URLs, existence checks, streaming reads and
deletes. Works against AWS S3, MinIO, Cloudflare R2 or any other S3-compatible
endpoint through the configurable endpoint URL.

boto3 is synchronous, so every call is pushed to a worker thread with
``asyncio.to_thread``. All driver failures surface as ``StorageError``.
"""

import asyncio
import logging

from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

import boto3

from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.config import Settings
from app.core.exceptions import StorageError


logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CHUNK_SIZE = 64 * 1024
NOT_FOUND_ERROR_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


def async_wrap(func: Callable[..., T]) -> Callable[..., "asyncio.Future[T]"]:
    """
    Decorator to run a blocking boto3 call in a worker thread.

    Args:
        func: The synchronous function to wrap

    Returns:
        An async function that executes the original in a thread pool
    """

    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        return await asyncio.to_thread(func, *args, **kwargs)

    return wrapper


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


class ObjectStream:
    """
    Chunked reader over an opened object body.

    The body is released when it is exhausted, when a read fails, or when
    ``aclose`` is called. ``aclose`` may be called any number of times.
    """

    def __init__(self, key: str, body: Any, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self.key = key
        self._body = body
        self._chunk_size = chunk_size
        self.closed = False

    def __aiter__(self) -> "ObjectStream":
        return self

    async def __anext__(self) -> bytes:
        if self.closed:
            raise StopAsyncIteration
        try:
            chunk = await asyncio.to_thread(self._body.read, self._chunk_size)
        except (ClientError, BotoCoreError) as error:
            await self.aclose()
            raise StorageError("Failed while reading object", key=self.key) from error
        if not chunk:
            await self.aclose()
            raise StopAsyncIteration
        return chunk

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._body.close()


class StorageClient:
    """
    Object store gateway used by the file and access services.

    Example usage:
        ```python
        storage = StorageClient(get_settings())
        url = await storage.generate_presigned_upload_url("3f2a...", ttl_seconds=900)
        exists = await storage.file_exists("3f2a...")
        ```
    """

    def __init__(self, settings: Settings, s3_client: Any | None = None) -> None:
        """
        Build the S3 client from settings.

        Args:
            settings: Application settings containing S3 configuration.
            s3_client: Pre-built boto3 client, mainly for tests.
        """
        self.settings = settings
        self.bucket_name = settings.s3_bucket_name

        if s3_client is None:
            client_config = Config(
                signature_version="s3v4",
                s3={"addressing_style": "path"},
                retries={"max_attempts": 3, "mode": "standard"},
            )
            s3_client = boto3.client(
                "s3",
                endpoint_url=settings.s3_endpoint_url,
                aws_access_key_id=settings.s3_access_key_id,
                aws_secret_access_key=settings.s3_secret_access_key,
                region_name=settings.s3_region,
                config=client_config,
            )
        self.s3_client = s3_client

        logger.info(
            "S3 storage client initialized",
            extra={
                "bucket": self.bucket_name,
                "region": settings.s3_region,
                "endpoint": settings.s3_endpoint_url or "AWS S3 (default)",
            },
        )

    async def generate_presigned_upload_url(
        self, key: str, ttl_seconds: int, content_type: str | None = None
    ) -> str:
        """
        Sign a PUT URL for ``key``. Nothing is uploaded.

        Raises:
            StorageError: If signing fails, for example on misconfiguration.
        """
        params: dict[str, Any] = {"Bucket": self.bucket_name, "Key": key}
        if content_type:
            params["ContentType"] = content_type
        return await self._presign("put_object", params, ttl_seconds)

    async def generate_presigned_download_url(self, key: str, ttl_seconds: int) -> str:
        """
        Sign a GET URL for ``key``.

        Raises:
            StorageError: If signing fails.
        """
        params = {"Bucket": self.bucket_name, "Key": key}
        return await self._presign("get_object", params, ttl_seconds)

    async def _presign(self, client_method: str, params: dict[str, Any], ttl_seconds: int) -> str:
        @async_wrap
        def _generate() -> str:
            return self.s3_client.generate_presigned_url(
                ClientMethod=client_method,
                Params=params,
                ExpiresIn=ttl_seconds,
            )

        try:
            url = await _generate()
        except (ClientError, BotoCoreError) as error:
            logger.exception(
                "Failed to generate presigned URL",
                extra={"key": params["Key"], "method": client_method},
            )
            raise StorageError(
                "Failed to generate presigned URL", key=params["Key"], method=client_method
            ) from error

        logger.debug(
            "Generated presigned URL",
            extra={"key": params["Key"], "method": client_method, "expires_in": ttl_seconds},
        )
        return url

    async def file_exists(self, key: str) -> bool:
        """
        Check whether an object exists using ``head_object``.

        Returns:
            True if the object exists, False when the store answers 404/NoSuchKey.

        Raises:
            StorageError: On any other failure.
        """

        @async_wrap
        def _head() -> dict[str, Any]:
            return self.s3_client.head_object(Bucket=self.bucket_name, Key=key)

        try:
            await _head()
        except ClientError as error:
            if _error_code(error) in NOT_FOUND_ERROR_CODES:
                return False
            logger.exception("Failed to check object existence", extra={"key": key})
            raise StorageError("Failed to check object existence", key=key) from error
        except BotoCoreError as error:
            logger.exception("Failed to check object existence", extra={"key": key})
            raise StorageError("Failed to check object existence", key=key) from error
        return True

    async def get_file_stream(
        self, key: str, chunk_size: int = DEFAULT_CHUNK_SIZE
    ) -> ObjectStream:
        """
        Open the object and return an async iterator over its bytes.

        The object is opened eagerly so that a missing key fails here, before a
        caller has committed to a streaming response. The caller owns the
        returned stream and must ``aclose`` it if it is never fully read.

        Raises:
            StorageError: If the object is absent or cannot be read.
        """

        @async_wrap
        def _get() -> dict[str, Any]:
            return self.s3_client.get_object(Bucket=self.bucket_name, Key=key)

        try:
            response = await _get()
        except ClientError as error:
            code = _error_code(error)
            logger.warning("Failed to open object", extra={"key": key, "code": code})
            raise StorageError("Object is not readable", key=key, code=code) from error
        except BotoCoreError as error:
            logger.exception("Failed to open object", extra={"key": key})
            raise StorageError("Object is not readable", key=key) from error

        body = response.get("Body")
        if body is None:
            raise StorageError("Object has no body", key=key)
        return ObjectStream(key, body, chunk_size)

    async def delete_file(self, key: str) -> None:
        """
        Delete an object. Deleting an absent key is not an error.

        Raises:
            StorageError: If the store rejects the delete.
        """

        @async_wrap
        def _delete() -> dict[str, Any]:
            return self.s3_client.delete_object(Bucket=self.bucket_name, Key=key)

        try:
            await _delete()
        except ClientError as error:
            if _error_code(error) in NOT_FOUND_ERROR_CODES:
                logger.info("Object already absent", extra={"key": key})
                return
            logger.exception("Failed to delete object", extra={"key": key})
            raise StorageError("Failed to delete object", key=key) from error
        except BotoCoreError as error:
            logger.exception("Failed to delete object", extra={"key": key})
            raise StorageError("Failed to delete object", key=key) from error

        logger.info("Deleted object", extra={"key": key})
