#!/usr/bin/env python3
"""
MongoDB Database Initialization Script for MediaShelf.

Creates the ``videos`` collection with JSON schema validation and the indexes
the API relies on. Safe to run repeatedly: an existing collection gets its
validation rules updated and existing indexes are left alone.

Usage:
    python init_db.py [options]

Options:
    --drop          Drop the videos collection first (WARNING: destructive)
    --verbose       Display detailed operation logs
    --help          Show this help message and exit

Environment Variables:
    MONGODB_URI         MongoDB connection URI (default: mongodb://localhost:27017)
    MONGODB_DB_NAME     Database name (default: mediashelf)
"""

import argparse
import os
import sys
import time

from datetime import UTC, datetime
from typing import Any

from dotenv import load_dotenv
from pymongo import ASCENDING, DESCENDING, IndexModel, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import CollectionInvalid, ConnectionFailure, PyMongoError


DEFAULT_MONGODB_URI = "mongodb://localhost:27017"
DEFAULT_DATABASE_NAME = "mediashelf"
CONNECTION_TIMEOUT_MS = 5000

VIDEOS_COLLECTION = "videos"

VIDEO_VALIDATOR: dict[str, Any] = {
    "$jsonSchema": {
        "bsonType": "object",
        "required": ["title", "public_id", "original_size", "compressed_size", "created_at"],
        "properties": {
            "title": {"bsonType": "string", "minLength": 1, "maxLength": 200},
            "description": {"bsonType": ["string", "null"], "maxLength": 2000},
            "public_id": {"bsonType": "string", "minLength": 1},
            "original_size": {"bsonType": ["int", "long"], "minimum": 0},
            "compressed_size": {"bsonType": ["int", "long"], "minimum": 0},
            "duration": {"bsonType": ["double", "int", "long"], "minimum": 0},
            "user_id": {"bsonType": ["string", "null"]},
            "created_at": {"bsonType": "date"},
            "updated_at": {"bsonType": "date"},
        },
    }
}

VIDEO_INDEXES: list[IndexModel] = [
    IndexModel([("created_at", DESCENDING)], name="created_at_-1"),
    IndexModel([("public_id", ASCENDING)], name="public_id_1", unique=True),
    IndexModel([("user_id", ASCENDING), ("created_at", DESCENDING)], name="user_id_1_created_at_-1"),
]


class DatabaseInitializer:
    """Creates and verifies the MediaShelf collections."""

    def __init__(self, verbose: bool = False) -> None:
        self.verbose = verbose
        self.client: MongoClient | None = None
        self.db: Database | None = None

    def log(self, message: str, level: str = "INFO") -> None:
        if level == "DEBUG" and not self.verbose:
            return
        timestamp = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S UTC")
        print(f"[{timestamp}] [{level}] {message}")

    @staticmethod
    def _mask_uri(uri: str) -> str:
        if "@" in uri:
            protocol_end = uri.find("://") + 3
            return f"{uri[:protocol_end]}***:***{uri[uri.find('@'):]}"
        return uri

    def connect(self) -> bool:
        """
        Connect using MONGODB_URI / MONGODB_DB_NAME, retrying with backoff.

        Returns:
            True if connection successful, False otherwise.
        """
        load_dotenv()

        mongodb_uri = os.getenv("MONGODB_URI", DEFAULT_MONGODB_URI)
        database_name = os.getenv("MONGODB_DB_NAME", DEFAULT_DATABASE_NAME)

        self.log(f"Connecting to MongoDB at {self._mask_uri(mongodb_uri)}...")

        max_retries = 3
        retry_delay = 2

        for attempt in range(1, max_retries + 1):
            try:
                self.client = MongoClient(
                    mongodb_uri,
                    serverSelectionTimeoutMS=CONNECTION_TIMEOUT_MS,
                    connectTimeoutMS=CONNECTION_TIMEOUT_MS,
                )
                self.client.admin.command("ping")
                self.db = self.client[database_name]
                self.log(f"Connected; using database: {database_name}")
                return True
            except ConnectionFailure as e:
                self.log(f"Connection attempt {attempt}/{max_retries} failed: {e}", "WARNING")
                if attempt < max_retries:
                    time.sleep(retry_delay)
                    retry_delay *= 2

        self.log("Failed to connect after all retry attempts", "ERROR")
        return False

    def drop_videos_collection(self) -> None:
        self.log(f"Dropping collection: {VIDEOS_COLLECTION}", "WARNING")
        self.db.drop_collection(VIDEOS_COLLECTION)

    def create_videos_collection(self) -> Collection:
        """Create the collection with validation, or update the rules if it exists."""
        if VIDEOS_COLLECTION in self.db.list_collection_names():
            self.log(f"Collection {VIDEOS_COLLECTION} exists, updating validation rules", "DEBUG")
            self.db.command(
                "collMod",
                VIDEOS_COLLECTION,
                validator=VIDEO_VALIDATOR,
                validationLevel="moderate",
                validationAction="error",
            )
            return self.db[VIDEOS_COLLECTION]

        try:
            self.db.create_collection(
                VIDEOS_COLLECTION,
                validator=VIDEO_VALIDATOR,
                validationLevel="moderate",
                validationAction="error",
            )
            self.log(f"Created collection: {VIDEOS_COLLECTION}")
        except CollectionInvalid:
            self.log(f"Collection {VIDEOS_COLLECTION} already exists", "DEBUG")
        return self.db[VIDEOS_COLLECTION]

    def create_indexes(self, collection: Collection) -> list[str]:
        """Create missing indexes; returns the names that were created."""
        existing = collection.index_information()
        missing = [index for index in VIDEO_INDEXES if index.document["name"] not in existing]
        if not missing:
            self.log("All indexes already exist", "DEBUG")
            return []

        created = collection.create_indexes(missing)
        for name in created:
            self.log(f"  Created index: {name}", "DEBUG")
        return created

    def verify_initialization(self) -> bool:
        """Check that the collection and every expected index are present."""
        if VIDEOS_COLLECTION not in self.db.list_collection_names():
            self.log(f"Collection {VIDEOS_COLLECTION} is missing", "ERROR")
            return False

        existing = self.db[VIDEOS_COLLECTION].index_information()
        missing = [index.document["name"] for index in VIDEO_INDEXES if index.document["name"] not in existing]
        if missing:
            self.log(f"Missing indexes: {', '.join(missing)}", "ERROR")
            return False

        self.log("Database initialization verified")
        return True

    def close(self) -> None:
        if self.client:
            self.client.close()
            self.log("MongoDB connection closed", "DEBUG")


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Initialize MongoDB database for MediaShelf")
    parser.add_argument(
        "--drop",
        action="store_true",
        help="Drop the videos collection before creation (WARNING: destructive operation)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Display detailed operation logs")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """
    Returns:
        Exit code (0 for success, 1 for failure).
    """
    args = parse_arguments(argv)
    initializer = DatabaseInitializer(verbose=args.verbose)

    try:
        if not initializer.connect():
            return 1

        if args.drop:
            confirmation = input(
                "\nWARNING: This will DELETE ALL VIDEO RECORDS.\nType 'yes' to confirm: "
            )
            if confirmation.lower() != "yes":
                print("Operation cancelled.")
                return 0
            initializer.drop_videos_collection()

        collection = initializer.create_videos_collection()
        initializer.create_indexes(collection)
        return 0 if initializer.verify_initialization() else 1

    except KeyboardInterrupt:
        print("\n\nInitialization interrupted by user.")
        return 130

    except PyMongoError as e:
        initializer.log(f"MongoDB error: {e}", "ERROR")
        return 1

    finally:
        initializer.close()


if __name__ == "__main__":
    sys.exit(main())
