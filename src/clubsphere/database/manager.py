"""
# Database Management Module

This module provides the **MongoDB infrastructure** for the ClubSphere API. It implements
the `DatabaseManager` class that owns the Motor async client, the selected database and
every index the lifecycle component relies on.

## Key Features

### 1. Connection Lifecycle Management
- **Async Initialization**: Connection is established in the FastAPI lifespan, not on first request
- **Graceful Shutdown**: The client is closed when the application stops
- **Health Monitoring**: `health_check()` pings the server for the `/health` endpoint

### 2. Resilience
- **Exponential Backoff**: Connection attempts are retried (1s, 2s, 4s...)
- **Transaction Detection**: Replica sets and mongos routers are detected at connect time so the
  club deletion cascade can run inside a session transaction when one is available

### 3. Integrity Indexes
The duplicate-relationship and double-confirmation guarantees are enforced by the store,
not by read-then-write checks:

| Collection | Index | Purpose |
|---|---|---|
| `memberships` | `activeKey` unique, sparse | One active/pending membership per (user, club) |
| `memberships` | `paymentIntentId` unique, sparse | One membership per confirmed intent |
| `registrations` | `activeKey` unique, sparse | One `registered` registration per (user, event) |
| `registrations` | `paymentIntentId` unique, sparse | One registration per confirmed intent |
| `users` | `email` unique | One account per email |
| `categories` | `name` unique | No duplicate categories |

### 4. Observability
- **`[DATABASE]`** logger for connection and index lifecycle
- **`[DB_PERFORMANCE]`** logger for timings
- **`[DB_HEALTH]`** logger for health checks and server info
- Queries echoed into logs are sanitised with `_sanitize_query_for_logging()`

## Usage

```python
from clubsphere.database import db_manager

await db_manager.connect()
await db_manager.create_indexes()
clubs = db_manager.get_collection("clubs")
```

Request handlers never hold collection globals. They receive the connected database
through the `get_database` dependency in `clubsphere.routes.dependencies`.
"""

import asyncio
import time
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo.errors import ConnectionFailure, PyMongoError, ServerSelectionTimeoutError

from clubsphere.config import settings
from clubsphere.managers.logging_manager import get_logger
from clubsphere.utils.datetime_utils import utcnow

db_logger = get_logger(prefix="[DATABASE]")
perf_logger = get_logger(prefix="[DB_PERFORMANCE]")
health_logger = get_logger(prefix="[DB_HEALTH]")

COLLECTIONS = ("users", "clubs", "events", "memberships", "registrations", "transactions", "categories")

DEFAULT_CATEGORIES = [
    ("sports", "Sports & Fitness"),
    ("tech", "Technology & Coding"),
    ("arts", "Arts & Culture"),
    ("photography", "Photography"),
    ("gaming", "Gaming"),
    ("music", "Music"),
    ("social", "Social & Networking"),
]


class DatabaseManager:
    """
    Manages the MongoDB connection, collections and indexes.

    **Lifecycle:**
    1. **Instantiation**: `client` and `database` are `None`
    2. **Connection**: `connect()` creates the Motor client, pings and detects transactions
    3. **Setup**: `create_indexes()` and `seed_default_categories()`
    4. **Shutdown**: `disconnect()` closes the pooled connections

    Attributes:
        client (`Optional[AsyncIOMotorClient]`): The Motor client, `None` until connected.
        database (`Optional[AsyncIOMotorDatabase]`): The selected database, `None` until connected.
        transactions_supported (`Optional[bool]`): Whether multi-document transactions are
            available. Detected during `connect()`.

    Note:
        Use the module-level `db_manager` singleton. Separate instances defeat connection pooling.
    """

    def __init__(self):
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self._connection_retries = 3
        # True when connected to a replica set or mongos
        self.transactions_supported: Optional[bool] = None

    @property
    def is_connected(self) -> bool:
        return self.database is not None

    async def connect(self):
        """
        Establish the MongoDB connection with exponential backoff.

        Steps:
        1. Create the Motor client with the configured pool and timeouts
        2. Ping the server
        3. Run `hello` to detect replica set / mongos (transaction support)

        Raises:
            `ServerSelectionTimeoutError`: MongoDB unreachable after every attempt.
            `ConnectionFailure`: Authentication failed or the connection was refused.
        """
        if self.is_connected:
            db_logger.debug("connect() called on an already connected manager")
            return

        start_time = time.time()
        db_logger.info("Starting MongoDB connection process")

        for attempt in range(self._connection_retries):
            attempt_start = time.time()
            try:
                db_logger.info("Connection attempt %d/%d to MongoDB", attempt + 1, self._connection_retries)
                db_logger.info(
                    "MongoDB connection config - Database: %s, MaxPool: %d, MinPool: %d, ServerTimeout: %dms, ConnTimeout: %dms",
                    settings.MONGODB_DATABASE,
                    settings.MONGODB_MAX_POOL_SIZE,
                    settings.MONGODB_MIN_POOL_SIZE,
                    settings.MONGODB_SERVER_SELECTION_TIMEOUT,
                    settings.MONGODB_CONNECTION_TIMEOUT,
                )

                self.client = AsyncIOMotorClient(
                    settings.MONGODB_URL,
                    serverSelectionTimeoutMS=settings.MONGODB_SERVER_SELECTION_TIMEOUT,
                    connectTimeoutMS=settings.MONGODB_CONNECTION_TIMEOUT,
                    maxPoolSize=settings.MONGODB_MAX_POOL_SIZE,
                    minPoolSize=settings.MONGODB_MIN_POOL_SIZE,
                    tz_aware=False,
                )
                self.database = self.client[settings.MONGODB_DATABASE]

                ping_start = time.time()
                await self.client.admin.command("ping")
                ping_duration = time.time() - ping_start

                try:
                    hello = await self.client.admin.command({"hello": 1})
                    self.transactions_supported = bool(hello.get("setName") or hello.get("msg") == "isdbgrid")
                except PyMongoError as e:
                    db_logger.warning("Could not detect transaction support, assuming none: %s", e)
                    self.transactions_supported = False

                total_duration = time.time() - start_time
                perf_logger.info(
                    "MongoDB connection established successfully in %.3fs (ping: %.3fs)", total_duration, ping_duration
                )
                db_logger.info(
                    "Connected to MongoDB database: %s (transactions supported: %s)",
                    settings.MONGODB_DATABASE,
                    self.transactions_supported,
                )
                return

            except (ServerSelectionTimeoutError, ConnectionFailure) as e:
                attempt_duration = time.time() - attempt_start
                perf_logger.warning("Connection attempt %d failed after %.3fs", attempt + 1, attempt_duration)
                db_logger.warning(
                    "Failed to connect to MongoDB (attempt %d/%d): %s", attempt + 1, self._connection_retries, e
                )
                self.client = None
                self.database = None
                if attempt == self._connection_retries - 1:
                    db_logger.error("All connection attempts failed after %.3fs", time.time() - start_time)
                    raise

                backoff_time = 2**attempt
                db_logger.info("Waiting %.1fs before retry (exponential backoff)", backoff_time)
                await asyncio.sleep(backoff_time)

    def attach(self, database: AsyncIOMotorDatabase, transactions_supported: bool = False):
        """
        Use an already constructed database handle.

        Used by tests and tooling that build their own Motor-compatible client.
        """
        self.client = getattr(database, "client", None)
        self.database = database
        self.transactions_supported = transactions_supported
        db_logger.info("Attached database handle: %s", getattr(database, "name", "<unnamed>"))

    async def disconnect(self):
        """Close the Motor client. Safe to call when not connected."""
        start_time = time.time()
        if self.client is None:
            db_logger.warning("Disconnect called but no active MongoDB connection found")
            return

        self.client.close()
        self.client = None
        self.database = None
        self.transactions_supported = None
        perf_logger.info("MongoDB disconnection completed in %.3fs", time.time() - start_time)
        db_logger.info("Successfully disconnected from MongoDB")

    async def health_check(self) -> bool:
        """Ping the server. Returns `False` instead of raising."""
        start_time = time.time()
        if self.client is None:
            health_logger.warning("Health check requested without a MongoDB connection")
            return False
        try:
            await self.client.admin.command("ping")
            perf_logger.debug("Database health check completed in %.3fs", time.time() - start_time)
            return True
        except PyMongoError as e:
            perf_logger.warning("Database health check failed after %.3fs", time.time() - start_time)
            health_logger.error("Database health check failed: %s", e)
            return False

    def get_collection(self, collection_name: str) -> AsyncIOMotorCollection:
        """
        Return a collection from the connected database.

        Raises:
            `ConnectionError`: If `connect()` (or `attach()`) has not been called.
        """
        if self.database is None:
            db_logger.error("Attempted to get collection '%s' without database connection", collection_name)
            raise ConnectionError("Database not connected. Call connect() first.")
        return self.database[collection_name]

    async def create_indexes(self):
        """Create every index the services depend on. Existing indexes are left untouched."""
        start_time = time.time()
        db_logger.info("Starting database index creation process")

        # Uniqueness indexes guard integrity, so their failure aborts startup
        await self._create_index(self.get_collection("users"), "email", {"unique": True}, required=True)
        await self._create_index(self.get_collection("categories"), "name", {"unique": True}, required=True)
        for name in ("memberships", "registrations"):
            collection = self.get_collection(name)
            await self._create_index(collection, "activeKey", {"unique": True, "sparse": True}, required=True)
            await self._create_index(collection, "paymentIntentId", {"unique": True, "sparse": True}, required=True)
        await self._create_index(
            self.get_collection("transactions"), "paymentIntentId", {"unique": True, "sparse": True}, required=True
        )

        # Lookup indexes
        clubs = self.get_collection("clubs")
        await self._create_index(clubs, "managerEmail", {})
        await self._create_index(clubs, [("status", 1), ("memberCount", -1)], {})
        await self._create_index(clubs, "category", {})

        events = self.get_collection("events")
        await self._create_index(events, "clubId", {})
        await self._create_index(events, "clubName", {})
        await self._create_index(events, [("status", 1), ("date", 1)], {})

        memberships = self.get_collection("memberships")
        await self._create_index(memberships, [("userId", 1), ("clubId", 1)], {})
        await self._create_index(memberships, "clubId", {})

        registrations = self.get_collection("registrations")
        await self._create_index(registrations, [("userId", 1), ("eventId", 1)], {})
        await self._create_index(registrations, "eventId", {})

        await self._create_index(self.get_collection("transactions"), [("userId", 1), ("createdAt", -1)], {})

        perf_logger.info("Database index creation completed in %.3fs", time.time() - start_time)
        db_logger.info("Database indexes created successfully")

    async def _create_index(
        self, collection: AsyncIOMotorCollection, field_spec: Any, options: Dict[str, Any], required: bool = False
    ):
        """Create an index if it doesn't already exist"""
        start_time = time.time()
        try:
            await collection.create_index(field_spec, **options)
            perf_logger.debug("Created/ensured index '%s' in %.3fs", field_spec, time.time() - start_time)
        except PyMongoError as e:
            if required:
                db_logger.error("Could not create required index '%s' on '%s': %s", field_spec, collection.name, e)
                raise
            db_logger.warning("Could not create/ensure index '%s' on '%s': %s", field_spec, collection.name, e)

    async def seed_default_categories(self) -> int:
        """Insert the default categories when the collection is empty. Returns the number inserted."""
        categories = self.get_collection("categories")
        if await categories.count_documents({}) > 0:
            return 0
        now = utcnow()
        docs = [{"name": name, "displayName": display, "createdAt": now} for name, display in DEFAULT_CATEGORIES]
        await categories.insert_many(docs)
        db_logger.info("Seeded %d default categories", len(docs))
        return len(docs)

    # Database operation logging utilities
    def log_query_error(self, collection_name: str, operation: str, error: Exception, query: Optional[Dict] = None):
        """Log a failed database operation with a sanitised copy of its query"""
        safe_query = self._sanitize_query_for_logging(query) if query else {}
        db_logger.error(
            "%s operation failed on collection '%s' - Error: %s, Query: %s",
            operation,
            collection_name,
            error,
            safe_query,
        )

    def _sanitize_query_for_logging(self, query: Dict[str, Any]) -> Dict[str, Any]:
        """Sanitize database queries for safe logging by removing sensitive data"""
        if not isinstance(query, dict):
            return {}

        sensitive_fields = {"password", "token", "secret", "credential", "api_key"}

        sanitized: Dict[str, Any] = {}
        for key, value in query.items():
            if any(sensitive_field in key.lower() for sensitive_field in sensitive_fields):
                sanitized[key] = "[REDACTED]"
            elif isinstance(value, dict):
                sanitized[key] = self._sanitize_query_for_logging(value)
            elif isinstance(value, list):
                sanitized[key] = [
                    self._sanitize_query_for_logging(item) if isinstance(item, dict) else item for item in value
                ]
            else:
                sanitized[key] = value

        return sanitized


# Global database manager instance
db_manager = DatabaseManager()
