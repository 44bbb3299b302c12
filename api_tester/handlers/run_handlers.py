import logging

from ..config import get_settings
from ..core.action import ActionContext, ActionRouter, require_user
from ..core.schemas import ListRequestRunsInput, LogRequestRunInput
from ..db.repositories import RunRepository
from ..utils.formatters import truncate_text
from .common import get_owned_request, ok

router = ActionRouter()
logger = logging.getLogger(__name__)


@router.action("logRequestRun", LogRequestRunInput)
async def log_request_run(data: LogRequestRunInput, context: ActionContext):
    """Record the outcome of a run performed by the client against a saved request."""
    user = require_user(context)
    await get_owned_request(data.request_id, user.id)

    limit = get_settings().runs.max_response_body_chars
    response_body = truncate_text(data.response_body, limit)
    if response_body is not data.response_body:
        logger.debug(
            "Response body for request %s truncated from %d to %d chars",
            data.request_id,
            len(data.response_body or ""),
            limit,
        )

    run = await RunRepository.add(
        request_id=data.request_id,
        user_id=user.id,
        started_at=data.started_at,
        completed_at=data.completed_at,
        status_code=data.status_code,
        status_text=data.status_text,
        duration_ms=data.duration_ms,
        request_headers_json=data.request_headers_json,
        response_headers_json=data.response_headers_json,
        response_body=response_body,
        error_message=data.error_message,
    )
    return ok(run=run)


@router.action("listRequestRuns", ListRequestRunsInput)
async def list_request_runs(data: ListRequestRunsInput, context: ActionContext):
    user = require_user(context)
    await get_owned_request(data.request_id, user.id)

    runs = await RunRepository.list_by_request(data.request_id, user.id)
    return ok(items=runs, total=len(runs))
