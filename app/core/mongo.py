"""MongoDB connection, index migrations and driver error translation."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Iterator

import pymongo
from pymongo.errors import PyMongoError

from app.core.config import StoreConfig
from app.core.logging import CORRELATION_ID_CTX

LOGGER = logging.getLogger(__name__)

USERS_COLLECTION = "users"
TODOS_COLLECTION = "todos"

MigrationFn = Callable[[Any], None]


class StoreUnavailableError(RuntimeError):
    """Raised when the persistent store cannot serve a request in time."""


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Translate driver failures into ``StoreUnavailableError``."""
    try:
        yield
    except PyMongoError as exc:
        LOGGER.error("store_operation_failed: %s", operation, exc_info=True)
        raise StoreUnavailableError(f"Store operation failed: {operation}") from exc


def _migration_0001_users_indexes(db: Any) -> None:
    users = db[USERS_COLLECTION]
    users.create_index("user_id", unique=True)
    users.create_index("email", unique=True)
    users.create_index("username", unique=True)
    users.create_index("active_refresh_tokens")
    users.create_index("email_verification_token", sparse=True)
    users.create_index([("created_at", pymongo.DESCENDING)])


def _migration_0002_todos_indexes(db: Any) -> None:
    todos = db[TODOS_COLLECTION]
    todos.create_index("todo_id", unique=True)
    todos.create_index([("owner_id", pymongo.ASCENDING), ("created_at", pymongo.DESCENDING)])
    todos.create_index([("owner_id", pymongo.ASCENDING), ("completed", pymongo.ASCENDING)])


MIGRATIONS: list[tuple[str, MigrationFn]] = [
    ("0001_users_indexes", _migration_0001_users_indexes),
    ("0002_todos_indexes", _migration_0002_todos_indexes),
]


def connect_mongo(config: StoreConfig) -> Any:
    """Connect to MongoDB and return the configured database.

    The ping runs eagerly so that an unreachable store aborts startup instead
    of failing the first request.
    """
    client: Any = pymongo.MongoClient(
        config.mongo_uri,
        serverSelectionTimeoutMS=config.timeout_ms,
        connectTimeoutMS=config.timeout_ms,
        socketTimeoutMS=config.timeout_ms,
        tz_aware=True,
    )
    with store_errors("ping"):
        client.admin.command("ping")
    LOGGER.info("mongo_connected: db=%s", config.mongo_db)
    return client[config.mongo_db]


def apply_mongo_migrations(db: Any) -> list[str]:
    """Apply pending index migrations and return the ids that ran."""
    applied: list[str] = []
    with store_errors("migrations"):
        migration_collection = db["schema_migrations"]
        migration_collection.create_index("migration_id", unique=True)

        for migration_id, migration_fn in MIGRATIONS:
            if migration_collection.find_one({"migration_id": migration_id}):
                continue
            migration_fn(db)
            migration_collection.insert_one(
                {
                    "migration_id": migration_id,
                    "applied_at": datetime.now(timezone.utc),
                    "correlation_id": CORRELATION_ID_CTX.get(),
                }
            )
            applied.append(migration_id)
    if applied:
        LOGGER.info("mongo_migrations_applied: %s", ", ".join(applied))
    return applied
