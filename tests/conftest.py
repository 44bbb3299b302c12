"""
This file contains shared fixtures for the test suite.
"""

import os

import pytest
import pytest_asyncio

# Set env vars before any application modules are imported
os.environ.setdefault("TEST_MODE", "1")
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("PYTHONIOENCODING", "utf-8")


@pytest.fixture(autouse=True)
def reset_db_connection_pool():
    """
    Reset the SQLite connection pool between tests so each test starts from a
    fresh in-memory database.
    """
    import api_tester.db.connection as db_conn

    setattr(db_conn, "_pool_initialized", False)
    setattr(db_conn, "_pool", None)
    yield


@pytest_asyncio.fixture
async def db():
    """In-memory SQLite database, closed after the test."""
    from api_tester.db import connection

    connection.DATABASE_PATH = ":memory:"
    yield connection
    await connection.close_pool()


@pytest.fixture
def make_context():
    """
    Factory for action contexts, signed in as *user_id* unless it is None.
    """
    from api_tester.core.action import ActionContext
    from api_tester.db.models import User

    def factory(user_id="user-1", headers=None):
        locals_ = {"user": User(id=user_id)} if user_id is not None else {}
        return ActionContext(locals=locals_, headers=headers or {})

    return factory


@pytest.fixture
def dispatcher():
    """Dispatcher wired with every action router and middleware."""
    from api_tester.web import build_dispatcher

    return build_dispatcher()


@pytest.fixture
def call(dispatcher, make_context):
    """
    Shortcut: ``await call("createCollection", {...}, user_id="u1")``.
    """

    async def _call(name, payload=None, user_id="user-1"):
        return await dispatcher.dispatch(name, payload, make_context(user_id))

    return _call
