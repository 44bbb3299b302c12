"""Ownership lookups shared by the action handlers."""

from ..core.action import ActionError
from ..db.models import ApiRequest, Collection
from ..db.repositories import CollectionRepository, RequestRepository


async def get_owned_collection(collection_id: str, user_id: str) -> Collection:
    collection = await CollectionRepository.get_owned(collection_id, user_id)
    if collection is None:
        raise ActionError("NOT_FOUND", "API collection not found.")
    return collection


async def get_owned_request(request_id: str, user_id: str) -> ApiRequest:
    request = await RequestRepository.get_owned(request_id, user_id)
    if request is None:
        raise ActionError("NOT_FOUND", "API request not found.")
    return request


def ok(**data):
    """Build the success envelope; ``data`` is omitted when empty."""
    if not data:
        return {"success": True}
    return {"success": True, "data": data}
