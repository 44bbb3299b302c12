import logging
from typing import Any, Optional

from ..config import get_settings
from ..core.action import ActionContext, Handler
from ..db.models import User

logger = logging.getLogger(__name__)


class UserMiddleware:
    """
    Resolves the signed-in user for every action call.

    Sessions are owned by the fronting web layer; it forwards the user id in a
    trusted header. A user already placed in ``context.locals`` wins over the
    header. Missing identity is not an error here: handlers call
    ``require_user`` themselves.
    """

    def __init__(self, header_name: Optional[str] = None):
        self.header_name = (header_name or get_settings().server.user_header).lower()

    def resolve(self, context: ActionContext) -> Optional[User]:
        for key, value in context.headers.items():
            if key.lower() == self.header_name:
                user_id = value.strip()
                if user_id:
                    return User(id=user_id)
        return None

    async def __call__(self, handler: Handler, data: Any, context: ActionContext) -> Any:
        if context.user is None:
            user = self.resolve(context)
            if user is not None:
                context.locals["user"] = user
                logger.debug("Resolved user %s from %s header", user.id, self.header_name)
        return await handler(data, context)
