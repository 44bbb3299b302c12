"""Tests for the SQLite repository implementations."""

import datetime

import pytest

from api_tester.db.repositories import (
    CollectionRepository,
    RequestRepository,
    RunRepository,
)
from api_tester.db.models import Collection, ApiRequest, RequestRun

# Mark all async functions in this module as asyncio tests
pytestmark = [pytest.mark.asyncio, pytest.mark.usefixtures("db")]


async def test_add_collection_sets_timestamps():
    collection = await CollectionRepository.add(user_id="u1", name="Stripe sandbox", icon="💳")

    assert isinstance(collection, Collection)
    assert collection.user_id == "u1"
    assert collection.name == "Stripe sandbox"
    assert collection.description is None
    assert collection.icon == "💳"
    assert collection.created_at == collection.updated_at
    assert collection.created_at.tzinfo is not None


async def test_get_owned_collection_is_scoped_to_user():
    collection = await CollectionRepository.add(user_id="u1", name="Mine")

    assert await CollectionRepository.get_owned(collection.id, "u1") is not None
    assert await CollectionRepository.get_owned(collection.id, "u2") is None
    assert await CollectionRepository.get_owned("missing", "u1") is None


async def test_list_collections_only_returns_own_in_creation_order():
    first = await CollectionRepository.add(user_id="u1", name="First")
    await CollectionRepository.add(user_id="u2", name="Other")
    second = await CollectionRepository.add(user_id="u1", name="Second")

    collections = await CollectionRepository.list_by_user("u1")

    assert [c.id for c in collections] == [first.id, second.id]


async def test_update_collection_changes_only_given_fields():
    collection = await CollectionRepository.add(user_id="u1", name="Old", description="keep")

    updated = await CollectionRepository.update(collection.id, "u1", {"name": "New"})

    assert updated.name == "New"
    assert updated.description == "keep"
    assert updated.updated_at >= collection.updated_at
    assert updated.created_at == collection.created_at


async def test_update_collection_of_other_user_returns_none():
    collection = await CollectionRepository.add(user_id="u1", name="Mine")

    assert await CollectionRepository.update(collection.id, "u2", {"name": "Stolen"}) is None
    assert (await CollectionRepository.get_owned(collection.id, "u1")).name == "Mine"


async def test_update_rejects_unknown_columns():
    collection = await CollectionRepository.add(user_id="u1", name="Mine")

    with pytest.raises(ValueError):
        await CollectionRepository.update(collection.id, "u1", {"user_id": "u2"})


async def test_delete_collection_detaches_requests():
    collection = await CollectionRepository.add(user_id="u1", name="Doomed")
    request = await RequestRepository.add(
        user_id="u1", collection_id=collection.id, name="GET /users", method="GET", url="https://x.test/users"
    )

    assert await CollectionRepository.delete(collection.id, "u1") is True

    survivor = await RequestRepository.get_owned(request.id, "u1")
    assert survivor is not None
    assert survivor.collection_id is None


async def test_add_request_stores_optional_columns():
    request = await RequestRepository.add(
        user_id="u1",
        name="POST /login",
        method="POST",
        url="https://api.test/login",
        headers_json='{"Content-Type": "application/json"}',
        body_mode="json",
        body_content='{"user": "a"}',
        auth_mode="none",
    )

    assert isinstance(request, ApiRequest)
    assert request.collection_id is None
    assert request.headers_json == '{"Content-Type": "application/json"}'
    assert request.body_mode == "json"
    assert request.query_params_json is None


async def test_list_requests_filters_by_collection():
    collection = await CollectionRepository.add(user_id="u1", name="C")
    inside = await RequestRepository.add(
        user_id="u1", collection_id=collection.id, name="in", method="GET", url="https://a.test"
    )
    outside = await RequestRepository.add(user_id="u1", name="out", method="GET", url="https://b.test")
    await RequestRepository.add(user_id="u2", name="foreign", method="GET", url="https://c.test")

    assert [r.id for r in await RequestRepository.list_by_user("u1")] == [inside.id, outside.id]
    assert [r.id for r in await RequestRepository.list_by_user("u1", collection.id)] == [inside.id]


async def test_update_request_can_clear_optional_column():
    request = await RequestRepository.add(
        user_id="u1", name="r", method="GET", url="https://a.test", body_content="payload"
    )

    updated = await RequestRepository.update(request.id, "u1", {"body_content": None, "method": "PUT"})

    assert updated.body_content is None
    assert updated.method == "PUT"


async def test_delete_request_cascades_runs():
    request = await RequestRepository.add(user_id="u1", name="r", method="GET", url="https://a.test")
    await RunRepository.add(request_id=request.id, user_id="u1", status_code=200)

    assert await RequestRepository.delete(request.id, "u2") is False
    assert await RequestRepository.delete(request.id, "u1") is True
    assert await RunRepository.list_by_request(request.id, "u1") == []


async def test_runs_listed_most_recent_first():
    request = await RequestRepository.add(user_id="u1", name="r", method="GET", url="https://a.test")
    base = datetime.datetime(2024, 5, 1, 12, 0, tzinfo=datetime.timezone.utc)
    older = await RunRepository.add(request_id=request.id, user_id="u1", started_at=base)
    newer = await RunRepository.add(
        request_id=request.id, user_id="u1", started_at=base + datetime.timedelta(minutes=5)
    )

    runs = await RunRepository.list_by_request(request.id, "u1")

    assert [r.id for r in runs] == [newer.id, older.id]


async def test_run_defaults_started_at_and_keeps_snapshots():
    request = await RequestRepository.add(user_id="u1", name="r", method="GET", url="https://a.test")

    run = await RunRepository.add(
        request_id=request.id,
        user_id="u1",
        status_code=404,
        status_text="Not Found",
        duration_ms=87,
        response_headers_json='{"server": "nginx"}',
        response_body="nope",
    )

    assert isinstance(run, RequestRun)
    assert run.started_at is not None
    assert run.completed_at is None
    assert run.status_code == 404
    assert run.duration_ms == 87
    assert run.response_body == "nope"


async def test_naive_datetimes_are_stored_as_utc():
    request = await RequestRepository.add(user_id="u1", name="r", method="GET", url="https://a.test")

    run = await RunRepository.add(
        request_id=request.id, user_id="u1", started_at=datetime.datetime(2024, 1, 2, 3, 4, 5)
    )

    assert run.started_at == datetime.datetime(2024, 1, 2, 3, 4, 5, tzinfo=datetime.timezone.utc)
