"""
MongoDB Database Client Module

Async MongoDB connection management for the bucket gateway using Motor. It provides:
- Connection pooling with configurable pool size
- Connect retry with exponential backoff
- Health checks using the MongoDB ping command
- Collection accessors for users, buckets and files
- Unique indexes that back bucket naming, file naming and key lookups

The unique indexes are the last line of defence against check-then-act races in
the services: a concurrent duplicate insert fails with DuplicateKeyError, which
the repositories translate into ConflictError.
"""

import asyncio
import logging

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError

from app.config import Settings


logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"
BUCKETS_COLLECTION = "buckets"
FILES_COLLECTION = "files"


class DatabaseClient:
    """
    Async MongoDB client wrapper with connection pooling and lifecycle management.

    Example usage:
        ```python
        db_client = DatabaseClient(get_settings())
        await db_client.connect()
        buckets = db_client.get_buckets_collection()
        await db_client.close()
        ```
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._mongodb_uri = settings.mongodb_uri
        self._db_name = settings.mongodb_db_name
        self._min_pool_size = settings.mongodb_min_pool_size
        self._max_pool_size = settings.mongodb_max_pool_size
        self._client: AsyncIOMotorClient | None = None
        self._database: AsyncIOMotorDatabase | None = None

    async def connect(self, max_retries: int = 3, retry_delay: float = 1.0) -> bool:
        """
        Establish the MongoDB connection, retrying with exponential backoff.

        Args:
            max_retries: Number of connection attempts before giving up.
            retry_delay: Initial delay between attempts in seconds, doubled after each failure.

        Returns:
            bool: True if connected, False after all retries failed.
        """
        for attempt in range(1, max_retries + 1):
            try:
                logger.info(
                    "Connecting to MongoDB database %s (attempt %d/%d)",
                    self._db_name,
                    attempt,
                    max_retries,
                )
                self._client = AsyncIOMotorClient(
                    self._mongodb_uri,
                    minPoolSize=self._min_pool_size,
                    maxPoolSize=self._max_pool_size,
                    serverSelectionTimeoutMS=5000,
                    tz_aware=True,
                )
                self._database = self._client[self._db_name]
                await self._client.admin.command("ping")

                logger.info(
                    "Connected to MongoDB database %s with pool size %d-%d",
                    self._db_name,
                    self._min_pool_size,
                    self._max_pool_size,
                )
                return True

            except (ServerSelectionTimeoutError, ConnectionFailure):
                logger.exception(
                    "MongoDB connection failure (attempt %d/%d)", attempt, max_retries
                )
                if attempt < max_retries:
                    logger.warning("Retrying in %.1f seconds...", retry_delay)
                    await asyncio.sleep(retry_delay)
                    retry_delay *= 2

        logger.error("Failed to connect to MongoDB after %d attempts", max_retries)
        self._client = None
        self._database = None
        return False

    async def close(self) -> None:
        """Close the Motor client. Safe to call when not connected."""
        if self._client is None:
            logger.warning("MongoDB close called but no active connection exists")
            return
        self._client.close()
        self._client = None
        self._database = None
        logger.info("MongoDB connection closed for database: %s", self._db_name)

    async def ping(self) -> bool:
        """Health check using the admin ping command."""
        if self._client is None:
            return False
        try:
            await self._client.admin.command("ping")
        except (ConnectionFailure, ServerSelectionTimeoutError):
            logger.exception("MongoDB ping failed")
            return False
        return True

    def get_database(self) -> AsyncIOMotorDatabase:
        """
        Get the database instance.

        Raises:
            RuntimeError: If not connected to MongoDB.
        """
        if self._database is None:
            raise RuntimeError(
                "MongoDB database not available. Call connect() first or check connection status."
            )
        return self._database

    def get_users_collection(self) -> AsyncIOMotorCollection:
        return self.get_database()[USERS_COLLECTION]

    def get_buckets_collection(self) -> AsyncIOMotorCollection:
        return self.get_database()[BUCKETS_COLLECTION]

    def get_files_collection(self) -> AsyncIOMotorCollection:
        return self.get_database()[FILES_COLLECTION]

    async def create_indexes(self) -> None:
        """
        Create the indexes the gateway relies on.

        - users: email (unique)
        - buckets: public_key (unique), private_key (unique), owner_id,
          (owner_id, name_key) unique
        - files: bucket_id, (bucket_id, name) unique

        Raises:
            RuntimeError: If not connected to MongoDB.
        """
        database = self.get_database()
        logger.info("Creating MongoDB indexes...")

        users = database[USERS_COLLECTION]
        await users.create_index("email", unique=True, background=True)

        buckets = database[BUCKETS_COLLECTION]
        await buckets.create_index("public_key", unique=True, background=True)
        await buckets.create_index("private_key", unique=True, background=True)
        await buckets.create_index(
            [("owner_id", ASCENDING), ("created_at", DESCENDING)], background=True
        )
        await buckets.create_index(
            [("owner_id", ASCENDING), ("name_key", ASCENDING)], unique=True, background=True
        )

        files = database[FILES_COLLECTION]
        await files.create_index(
            [("bucket_id", ASCENDING), ("created_at", DESCENDING)], background=True
        )
        await files.create_index(
            [("bucket_id", ASCENDING), ("name", ASCENDING)], unique=True, background=True
        )

        logger.info("MongoDB indexes created")


class _DatabaseClientContainer:
    """Container for database client singleton to avoid global statements."""

    client: DatabaseClient | None = None


_container = _DatabaseClientContainer()


async def init_db(settings: Settings) -> DatabaseClient:
    """
    Initialize the process-wide database client.

    Connects to MongoDB and creates indexes. Called from the application lifespan.

    Raises:
        RuntimeError: If the connection fails after all retries.
    """
    if _container.client is not None:
        logger.warning("Database client already initialized, returning existing instance")
        return _container.client

    client = DatabaseClient(settings)
    if not await client.connect():
        raise RuntimeError(
            "Failed to establish MongoDB connection. "
            "Check mongodb_uri configuration and server availability."
        )
    await client.create_indexes()

    _container.client = client
    return client


async def close_db() -> None:
    """Close the process-wide database client if one exists."""
    if _container.client is not None:
        await _container.client.close()
        _container.client = None


def get_db_client() -> DatabaseClient:
    """
    Get the process-wide database client.

    Raises:
        RuntimeError: If init_db() has not been called.
    """
    if _container.client is None:
        raise RuntimeError(
            "Database client not initialized. Call init_db() first during application startup."
        )
    return _container.client
