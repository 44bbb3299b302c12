import logging

from ..core.action import ActionContext, ActionError, ActionRouter, require_user
from ..core.schemas import (
    CreateRequestInput,
    ListRequestsInput,
    RequestIdInput,
    UpdateRequestInput,
)
from ..db.repositories import RequestRepository
from .common import get_owned_collection, get_owned_request, ok

router = ActionRouter()
logger = logging.getLogger(__name__)


@router.action("createRequest", CreateRequestInput)
async def create_request(data: CreateRequestInput, context: ActionContext):
    user = require_user(context)

    if data.collection_id:
        await get_owned_collection(data.collection_id, user.id)

    request = await RequestRepository.add(
        user_id=user.id,
        collection_id=data.collection_id or None,
        name=data.name,
        method=data.method,
        url=data.url,
        query_params_json=data.query_params_json,
        headers_json=data.headers_json,
        body_mode=data.body_mode,
        body_content=data.body_content,
        auth_mode=data.auth_mode,
        auth_config_json=data.auth_config_json,
    )
    logger.info("Request %s created by user %s", request.id, user.id)
    return ok(request=request)


@router.action("updateRequest", UpdateRequestInput)
async def update_request(data: UpdateRequestInput, context: ActionContext):
    """Apply a partial update. An explicit null ``collectionId`` moves the request out of its collection."""
    user = require_user(context)
    await get_owned_request(data.id, user.id)

    if data.collection_id is not None:
        await get_owned_collection(data.collection_id, user.id)

    updated = await RequestRepository.update(data.id, user.id, data.changes())
    if updated is None:
        raise ActionError("NOT_FOUND", "API request not found.")
    return ok(request=updated)


@router.action("getRequest", RequestIdInput)
async def get_request(data: RequestIdInput, context: ActionContext):
    user = require_user(context)

    request = await get_owned_request(data.id, user.id)
    return ok(request=request)


@router.action("deleteRequest", RequestIdInput)
async def delete_request(data: RequestIdInput, context: ActionContext):
    user = require_user(context)
    await get_owned_request(data.id, user.id)

    if not await RequestRepository.delete(data.id, user.id):
        raise ActionError("NOT_FOUND", "API request not found.")
    logger.info("Request %s deleted by user %s", data.id, user.id)
    return ok()


@router.action("listRequests", ListRequestsInput)
async def list_requests(data: ListRequestsInput, context: ActionContext):
    user = require_user(context)

    if data.collection_id:
        await get_owned_collection(data.collection_id, user.id)

    requests = await RequestRepository.list_by_user(user.id, collection_id=data.collection_id or None)
    return ok(items=requests, total=len(requests))
