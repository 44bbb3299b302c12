import logging

from ..core.action import ActionContext, ActionError, ActionRouter, require_user
from ..core.schemas import (
    CollectionIdInput,
    CreateCollectionInput,
    ListCollectionsInput,
    UpdateCollectionInput,
)
from ..db.repositories import CollectionRepository
from .common import get_owned_collection, ok

router = ActionRouter()
logger = logging.getLogger(__name__)


@router.action("createCollection", CreateCollectionInput)
async def create_collection(data: CreateCollectionInput, context: ActionContext):
    user = require_user(context)

    collection = await CollectionRepository.add(
        user_id=user.id,
        name=data.name,
        description=data.description,
        icon=data.icon,
    )
    logger.info("Collection %s created by user %s", collection.id, user.id)
    return ok(collection=collection)


@router.action("updateCollection", UpdateCollectionInput)
async def update_collection(data: UpdateCollectionInput, context: ActionContext):
    user = require_user(context)
    await get_owned_collection(data.id, user.id)

    collection = await CollectionRepository.update(data.id, user.id, data.changes())
    if collection is None:
        raise ActionError("NOT_FOUND", "API collection not found.")
    return ok(collection=collection)


@router.action("listCollections", ListCollectionsInput)
async def list_collections(data: ListCollectionsInput, context: ActionContext):
    user = require_user(context)

    collections = await CollectionRepository.list_by_user(user.id)
    return ok(items=collections, total=len(collections))


@router.action("deleteCollection", CollectionIdInput)
async def delete_collection(data: CollectionIdInput, context: ActionContext):
    """Delete a collection; its requests are kept and become unfiled."""
    user = require_user(context)
    await get_owned_collection(data.id, user.id)

    if not await CollectionRepository.delete(data.id, user.id):
        raise ActionError("NOT_FOUND", "API collection not found.")
    logger.info("Collection %s deleted by user %s", data.id, user.id)
    return ok()
