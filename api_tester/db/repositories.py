"""SQLite repository implementations using aiosqlite.

Every lookup is scoped to the owning user; a row that exists but belongs to
someone else is indistinguishable from a missing one.
"""

from __future__ import annotations

import datetime
import inspect
import logging
import uuid
from typing import Any, Dict, List, Optional

from . import connection
from .models import (
    ApiRequest as ApiRequestModel,
    Collection as CollectionModel,
    RequestRun as RequestRunModel,
    utcnow,
)

logger = logging.getLogger(__name__)

COLLECTION_MUTABLE_FIELDS = ("name", "description", "icon")
REQUEST_MUTABLE_FIELDS = (
    "collection_id",
    "name",
    "method",
    "url",
    "query_params_json",
    "headers_json",
    "body_mode",
    "body_content",
    "auth_mode",
    "auth_config_json",
)


async def _acquire_connection():
    """Helper to obtain a connection from the connection module.

    Tests may patch ``get_connection`` with a coroutine that immediately
    raises. If the returned object is a coroutine we simply await it so the
    exception propagates as expected. Otherwise we use it as an async context
    manager.
    """
    ctx = connection.get_connection()
    if inspect.iscoroutine(ctx):
        return await ctx  # type: ignore[no-any-return]
    return ctx


def _ts(value: Optional[datetime.datetime]) -> Optional[str]:
    """Serialize a datetime as UTC ISO text so stored values sort chronologically."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc).isoformat(timespec="microseconds")


def _new_id() -> str:
    return str(uuid.uuid4())


def _set_clause(changes: Dict[str, Any], allowed: tuple) -> tuple:
    unknown = set(changes) - set(allowed)
    if unknown:
        raise ValueError(f"Unknown fields: {', '.join(sorted(unknown))}")
    columns = [column for column in allowed if column in changes]
    assignments = ", ".join(f"{column} = ?" for column in columns)
    return assignments, [changes[column] for column in columns]


class CollectionRepository:
    """SQLite implementation of the collection repository."""

    @classmethod
    async def add(
        cls,
        *,
        user_id: str,
        name: str,
        description: Optional[str] = None,
        icon: Optional[str] = None,
    ) -> CollectionModel:
        """Create a new collection owned by *user_id*."""
        collection_id = _new_id()
        now = _ts(utcnow())
        try:
            ctx = await _acquire_connection()
            async with ctx as conn:
                await conn.execute(
                    """
                    INSERT INTO api_collections (id, user_id, name, description, icon, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (collection_id, user_id, name, description, icon, now, now),
                )
                await conn.commit()
                cursor = await conn.execute("SELECT * FROM api_collections WHERE id = ?", (collection_id,))
                row = await cursor.fetchone()
                return CollectionModel(**dict(row))  # type: ignore
        except Exception as e:
            logger.exception("Failed to add collection for user %s: %s", user_id, e)
            raise

    @classmethod
    async def get_owned(cls, collection_id: str, user_id: str) -> Optional[CollectionModel]:
        """Get a collection by id if it belongs to *user_id*."""
        try:
            ctx = await _acquire_connection()
            async with ctx as conn:
                cursor = await conn.execute(
                    "SELECT * FROM api_collections WHERE id = ? AND user_id = ?",
                    (collection_id, user_id),
                )
                row = await cursor.fetchone()
                if row:
                    return CollectionModel(**dict(row))  # type: ignore
                return None
        except Exception as e:
            logger.exception("Failed to get collection %s: %s", collection_id, e)
            raise

    @classmethod
    async def list_by_user(cls, user_id: str) -> List[CollectionModel]:
        """List all collections of a user, oldest first."""
        try:
            ctx = await _acquire_connection()
            async with ctx as conn:
                cursor = await conn.execute(
                    """
                    SELECT * FROM api_collections
                    WHERE user_id = ?
                    ORDER BY created_at ASC, rowid ASC
                    """,
                    (user_id,),
                )
                rows = await cursor.fetchall()
                return [CollectionModel(**dict(row)) for row in rows]  # type: ignore
        except Exception as e:
            logger.exception("Failed to list collections for user %s: %s", user_id, e)
            raise

    @classmethod
    async def update(cls, collection_id: str, user_id: str, changes: Dict[str, Any]) -> Optional[CollectionModel]:
        """Apply *changes* to an owned collection and refresh ``updated_at``."""
        assignments, values = _set_clause(changes, COLLECTION_MUTABLE_FIELDS)
        if assignments:
            assignments += ", "
        try:
            ctx = await _acquire_connection()
            async with ctx as conn:
                await conn.execute(
                    f"UPDATE api_collections SET {assignments}updated_at = ? WHERE id = ? AND user_id = ?",
                    (*values, _ts(utcnow()), collection_id, user_id),
                )
                await conn.commit()
                cursor = await conn.execute(
                    "SELECT * FROM api_collections WHERE id = ? AND user_id = ?",
                    (collection_id, user_id),
                )
                row = await cursor.fetchone()
                if row is None:
                    return None
                return CollectionModel(**dict(row))  # type: ignore
        except Exception as e:
            logger.exception("Failed to update collection %s: %s", collection_id, e)
            raise

    @classmethod
    async def delete(cls, collection_id: str, user_id: str) -> bool:
        """Delete an owned collection. Requests inside it are detached."""
        try:
            ctx = await _acquire_connection()
            async with ctx as conn:
                cursor = await conn.execute(
                    "DELETE FROM api_collections WHERE id = ? AND user_id = ?",
                    (collection_id, user_id),
                )
                await conn.commit()
                return cursor.rowcount > 0
        except Exception as e:
            logger.exception("Failed to delete collection %s: %s", collection_id, e)
            raise


class RequestRepository:
    """SQLite implementation of the saved request repository."""

    @classmethod
    async def add(cls, *, user_id: str, name: str, method: str, url: str, **fields: Any) -> ApiRequestModel:
        """Create a new saved request. Optional columns are passed as keywords."""
        unknown = set(fields) - set(REQUEST_MUTABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown fields: {', '.join(sorted(unknown))}")
        request_id = _new_id()
        now = _ts(utcnow())
        try:
            ctx = await _acquire_connection()
            async with ctx as conn:
                await conn.execute(
                    """
                    INSERT INTO api_requests (
                        id, collection_id, user_id, name, method, url,
                        query_params_json, headers_json, body_mode, body_content,
                        auth_mode, auth_config_json, created_at, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        request_id,
                        fields.get("collection_id"),
                        user_id,
                        name,
                        method,
                        url,
                        fields.get("query_params_json"),
                        fields.get("headers_json"),
                        fields.get("body_mode"),
                        fields.get("body_content"),
                        fields.get("auth_mode"),
                        fields.get("auth_config_json"),
                        now,
                        now,
                    ),
                )
                await conn.commit()
                cursor = await conn.execute("SELECT * FROM api_requests WHERE id = ?", (request_id,))
                row = await cursor.fetchone()
                return ApiRequestModel(**dict(row))  # type: ignore
        except Exception as e:
            logger.exception("Failed to add request for user %s: %s", user_id, e)
            raise

    @classmethod
    async def get_owned(cls, request_id: str, user_id: str) -> Optional[ApiRequestModel]:
        """Get a saved request by id if it belongs to *user_id*."""
        try:
            ctx = await _acquire_connection()
            async with ctx as conn:
                cursor = await conn.execute(
                    "SELECT * FROM api_requests WHERE id = ? AND user_id = ?",
                    (request_id, user_id),
                )
                row = await cursor.fetchone()
                if row:
                    return ApiRequestModel(**dict(row))  # type: ignore
                return None
        except Exception as e:
            logger.exception("Failed to get request %s: %s", request_id, e)
            raise

    @classmethod
    async def list_by_user(cls, user_id: str, collection_id: Optional[str] = None) -> List[ApiRequestModel]:
        """List a user's saved requests, optionally narrowed to one collection."""
        query = "SELECT * FROM api_requests WHERE user_id = ?"
        params: List[Any] = [user_id]
        if collection_id is not None:
            query += " AND collection_id = ?"
            params.append(collection_id)
        query += " ORDER BY created_at ASC, rowid ASC"
        try:
            ctx = await _acquire_connection()
            async with ctx as conn:
                cursor = await conn.execute(query, params)
                rows = await cursor.fetchall()
                return [ApiRequestModel(**dict(row)) for row in rows]  # type: ignore
        except Exception as e:
            logger.exception("Failed to list requests for user %s: %s", user_id, e)
            raise

    @classmethod
    async def update(cls, request_id: str, user_id: str, changes: Dict[str, Any]) -> Optional[ApiRequestModel]:
        """Apply *changes* to an owned request and refresh ``updated_at``."""
        assignments, values = _set_clause(changes, REQUEST_MUTABLE_FIELDS)
        if assignments:
            assignments += ", "
        try:
            ctx = await _acquire_connection()
            async with ctx as conn:
                await conn.execute(
                    f"UPDATE api_requests SET {assignments}updated_at = ? WHERE id = ? AND user_id = ?",
                    (*values, _ts(utcnow()), request_id, user_id),
                )
                await conn.commit()
                cursor = await conn.execute(
                    "SELECT * FROM api_requests WHERE id = ? AND user_id = ?",
                    (request_id, user_id),
                )
                row = await cursor.fetchone()
                if row is None:
                    return None
                return ApiRequestModel(**dict(row))  # type: ignore
        except Exception as e:
            logger.exception("Failed to update request %s: %s", request_id, e)
            raise

    @classmethod
    async def delete(cls, request_id: str, user_id: str) -> bool:
        """Delete an owned request together with its run history."""
        try:
            ctx = await _acquire_connection()
            async with ctx as conn:
                cursor = await conn.execute(
                    "DELETE FROM api_requests WHERE id = ? AND user_id = ?",
                    (request_id, user_id),
                )
                await conn.commit()
                return cursor.rowcount > 0
        except Exception as e:
            logger.exception("Failed to delete request %s: %s", request_id, e)
            raise


class RunRepository:
    """SQLite implementation of the run history repository."""

    @classmethod
    async def add(
        cls,
        *,
        request_id: str,
        user_id: str,
        started_at: Optional[datetime.datetime] = None,
        completed_at: Optional[datetime.datetime] = None,
        status_code: Optional[int] = None,
        status_text: Optional[str] = None,
        duration_ms: Optional[float] = None,
        request_headers_json: Optional[str] = None,
        response_headers_json: Optional[str] = None,
        response_body: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> RequestRunModel:
        """Record a run of a saved request."""
        run_id = _new_id()
        now = utcnow()
        try:
            ctx = await _acquire_connection()
            async with ctx as conn:
                await conn.execute(
                    """
                    INSERT INTO api_request_runs (
                        id, request_id, user_id, started_at, completed_at,
                        status_code, status_text, duration_ms,
                        request_headers_json, response_headers_json, response_body,
                        error_message, created_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        run_id,
                        request_id,
                        user_id,
                        _ts(started_at or now),
                        _ts(completed_at),
                        status_code,
                        status_text,
                        duration_ms,
                        request_headers_json,
                        response_headers_json,
                        response_body,
                        error_message,
                        _ts(now),
                    ),
                )
                await conn.commit()
                cursor = await conn.execute("SELECT * FROM api_request_runs WHERE id = ?", (run_id,))
                row = await cursor.fetchone()
                return RequestRunModel(**dict(row))  # type: ignore
        except Exception as e:
            logger.exception("Failed to log run for request %s: %s", request_id, e)
            raise

    @classmethod
    async def list_by_request(cls, request_id: str, user_id: str) -> List[RequestRunModel]:
        """List runs of a request, most recent first."""
        try:
            ctx = await _acquire_connection()
            async with ctx as conn:
                cursor = await conn.execute(
                    """
                    SELECT * FROM api_request_runs
                    WHERE request_id = ? AND user_id = ?
                    ORDER BY started_at DESC, rowid DESC
                    """,
                    (request_id, user_id),
                )
                rows = await cursor.fetchall()
                return [RequestRunModel(**dict(row)) for row in rows]  # type: ignore
        except Exception as e:
            logger.exception("Failed to list runs for request %s: %s", request_id, e)
            raise
