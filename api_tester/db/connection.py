"""Async SQLite connection manager with pooling and schema versioning.

Wraps `aiosqlite` connections, initializes the database schema, tracks the
schema version with ``PRAGMA user_version`` and provides a configurable
connection pool for async database access.
"""

from __future__ import annotations

import asyncio
import time
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import aiosqlite

from ..config import get_settings

_settings = get_settings()

DATABASE_PATH = _settings.db.path
POOL_SIZE = _settings.db.pool_size
POOL_TIMEOUT = _settings.db.pool_timeout  # seconds
CURRENT_SCHEMA_VERSION = 1

logger = logging.getLogger(__name__)

_pool: asyncio.Queue[aiosqlite.Connection] | None = None
_pool_lock = asyncio.Lock()
_pool_initialized = False

SCHEMA = """
CREATE TABLE IF NOT EXISTS api_collections (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    description TEXT,
    icon TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS api_requests (
    id TEXT PRIMARY KEY,
    collection_id TEXT,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    method TEXT NOT NULL,
    url TEXT NOT NULL,
    query_params_json TEXT,
    headers_json TEXT,
    body_mode TEXT,
    body_content TEXT,
    auth_mode TEXT,
    auth_config_json TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY (collection_id) REFERENCES api_collections(id) ON DELETE SET NULL
);

CREATE TABLE IF NOT EXISTS api_request_runs (
    id TEXT PRIMARY KEY,
    request_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    started_at TEXT NOT NULL,
    completed_at TEXT,
    status_code INTEGER,
    status_text TEXT,
    duration_ms REAL,
    request_headers_json TEXT,
    response_headers_json TEXT,
    response_body TEXT,
    error_message TEXT,
    created_at TEXT NOT NULL,
    FOREIGN KEY (request_id) REFERENCES api_requests(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_api_collections_user ON api_collections(user_id);
CREATE INDEX IF NOT EXISTS idx_api_requests_user_collection ON api_requests(user_id, collection_id);
CREATE INDEX IF NOT EXISTS idx_api_request_runs_request ON api_request_runs(request_id, started_at);
"""


async def _open_connection() -> aiosqlite.Connection:
    conn = await aiosqlite.connect(
        DATABASE_PATH,
        timeout=POOL_TIMEOUT,
        cached_statements=128,
    )
    conn.row_factory = aiosqlite.Row
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.commit()
    return conn


async def _initialize_schema(conn: aiosqlite.Connection) -> None:
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.executescript(SCHEMA)
    await conn.execute(f"PRAGMA user_version = {CURRENT_SCHEMA_VERSION};")
    await conn.commit()


async def _initialize_database() -> None:
    """Initialize database schema and run migrations if necessary."""
    try:
        async with aiosqlite.connect(DATABASE_PATH, timeout=POOL_TIMEOUT) as conn:
            cursor = await conn.execute("PRAGMA user_version;")
            row = await cursor.fetchone()
            current_version = row[0] if row else 0

            if current_version == 0:
                logger.info("Applying initial schema, version %d", CURRENT_SCHEMA_VERSION)
                await _initialize_schema(conn)
            elif current_version < CURRENT_SCHEMA_VERSION:
                logger.info(
                    "Running migrations from version %d to %d",
                    current_version,
                    CURRENT_SCHEMA_VERSION,
                )
                await _initialize_schema(conn)
            else:
                logger.info("Database schema is up-to-date (version %d)", current_version)
    except Exception as e:
        logger.exception("Failed to initialize or migrate database: %s", e)
        raise


async def _initialize_pool() -> None:
    """Create and populate the connection pool."""
    global _pool, _pool_initialized

    # ":memory:" opens an isolated database per connection, so the pool holds
    # exactly one shared connection and every acquire waits for it.
    if DATABASE_PATH == ":memory:":
        conn = await _open_connection()
        await _initialize_schema(conn)

        _pool = asyncio.Queue(maxsize=1)
        await _pool.put(conn)
        _pool_initialized = True
        logger.info(
            "Database connection pool initialized with a single shared in-memory connection"
        )
        return

    await _initialize_database()

    q: asyncio.Queue[aiosqlite.Connection] = asyncio.Queue(maxsize=POOL_SIZE)
    for i in range(POOL_SIZE):
        try:
            conn = await _open_connection()
            await q.put(conn)
            logger.debug("Opened connection %d/%d", i + 1, POOL_SIZE)
        except Exception as e:
            logger.exception("Error opening database connection [%d]: %s", i + 1, e)
            raise
    _pool = q
    _pool_initialized = True
    logger.info("Database connection pool initialized with size %d", POOL_SIZE)


@asynccontextmanager
async def get_connection() -> AsyncIterator[aiosqlite.Connection]:
    """
    Acquire a database connection from the pool.

    Usage:
        async with get_connection() as conn:
            await conn.execute(...)
            await conn.commit()
    """
    global _pool, _pool_initialized

    if not _pool_initialized:
        async with _pool_lock:
            if not _pool_initialized:
                logger.info("Initializing database connection pool")
                await _initialize_pool()

    if _pool is None:
        raise RuntimeError("Connection pool is not initialized")
    pool = _pool
    try:
        conn = await asyncio.wait_for(pool.get(), timeout=POOL_TIMEOUT)
        logger.debug("Acquired database connection from pool")
    except asyncio.TimeoutError:
        logger.error("Timed out waiting for database connection")
        raise RuntimeError("Database connection timeout")

    start_time = time.monotonic()
    try:
        yield conn
    finally:
        elapsed = time.monotonic() - start_time
        logger.debug("Database connection held for %.3f seconds", elapsed)
        await pool.put(conn)
        logger.debug("Returned database connection to pool")


async def close_pool() -> None:
    """Close all connections in the pool and reset its state."""
    global _pool, _pool_initialized

    if _pool is None:
        return

    while not _pool.empty():
        conn = await _pool.get()
        try:
            await conn.close()
        except Exception as exc:  # pragma: no cover - cleanup best effort
            logger.warning("Error closing DB connection: %s", exc)

    _pool = None
    _pool_initialized = False
    logger.info("Database connection pool closed")
