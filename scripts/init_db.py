#!/usr/bin/env python3
"""
MongoDB Database Initialization Script for the bucket gateway.

Creates the users, buckets and files indexes the gateway relies on. Safe to run
repeatedly: existing indexes are left in place.

Usage:
    python scripts/init_db.py [options]

Options:
    --drop          Drop the gateway collections first (WARNING: destructive)
    --yes           Do not ask for confirmation before dropping
    --verbose       Display detailed operation logs

Configuration is read from the same environment variables and .env file as the
application (MONGODB_URI, MONGODB_DB_NAME, ...).
"""

import argparse
import asyncio
import logging
import sys

from app.config import get_settings
from app.core.database import (
    BUCKETS_COLLECTION,
    FILES_COLLECTION,
    USERS_COLLECTION,
    DatabaseClient,
)
from app.utils.logger import setup_logging


logger = logging.getLogger("init_db")

COLLECTIONS = (USERS_COLLECTION, BUCKETS_COLLECTION, FILES_COLLECTION)


async def drop_collections(client: DatabaseClient) -> None:
    database = client.get_database()
    existing = set(await database.list_collection_names())
    for name in COLLECTIONS:
        if name in existing:
            await database.drop_collection(name)
            logger.warning("Dropped collection: %s", name)
        else:
            logger.debug("Collection %s does not exist, skipping", name)


async def report_indexes(client: DatabaseClient) -> None:
    database = client.get_database()
    for name in COLLECTIONS:
        info = await database[name].index_information()
        for index_name, spec in sorted(info.items()):
            logger.info(
                "%s.%s keys=%s unique=%s", name, index_name, spec["key"], spec.get("unique", False)
            )


async def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    client = DatabaseClient(settings)

    if not await client.connect():
        logger.error("Failed to connect to MongoDB. Exiting.")
        return 1

    try:
        if args.drop:
            await drop_collections(client)
        await client.create_indexes()
        await report_indexes(client)
    finally:
        await client.close()

    logger.info("Database %s initialized", settings.mongodb_db_name)
    return 0


def parse_arguments() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Create MongoDB indexes for the bucket gateway",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/init_db.py                # Create indexes
  python scripts/init_db.py --verbose      # With detailed logging
  python scripts/init_db.py --drop         # Drop collections first (DESTRUCTIVE)
        """,
    )
    parser.add_argument(
        "--drop",
        action="store_true",
        help="Drop existing collections before creating indexes (WARNING: destructive operation)",
    )
    parser.add_argument("--yes", "-y", action="store_true", help="Skip the drop confirmation")
    parser.add_argument("--verbose", "-v", action="store_true", help="Display detailed operation logs")
    return parser.parse_args()


def main() -> int:
    args = parse_arguments()
    setup_logging(log_level="DEBUG" if args.verbose else "INFO", json_logs=False)

    if args.drop and not args.yes:
        confirmation = input(
            "\nWARNING: This will DELETE ALL users, buckets and files metadata.\n"
            "Type 'yes' to confirm: "
        )
        if confirmation.lower() != "yes":
            print("Operation cancelled.")
            return 0

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        print("\n\nInitialization interrupted by user.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
