import logging
import uuid
import time
import contextvars
from typing import Any, Dict

from ..core.action import ActionContext, ActionError, Handler

correlation_id_ctx: contextvars.ContextVar[str] = contextvars.ContextVar("correlation_id", default="")


class CorrelationIdFilter(logging.Filter):
    """
    Logging filter to inject the correlation_id into log records.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_ctx.get()
        return True


logger = logging.getLogger(__name__)
logger.addFilter(CorrelationIdFilter())


def _fmt_ctx(ctx: Dict[str, Any]) -> str:
    """Return a deterministic key=value string used in log messages."""
    return " ".join(f"{k}={v}" for k, v in ctx.items() if v is not None)


class LoggingMiddleware:
    """
    Logs every action call with a correlation id, the caller, the outcome
    and the execution time.
    """

    async def __call__(self, handler: Handler, data: Any, context: ActionContext) -> Any:
        cid = context.correlation_id or str(uuid.uuid4())
        correlation_id_ctx.set(cid)
        context.correlation_id = cid

        user = context.user
        user_id = getattr(user, "id", None)

        incoming_ctx = {
            "correlation_id": cid,
            "user_id": user_id,
            "action": context.action,
        }
        logger.info(f"Incoming action {_fmt_ctx(incoming_ctx)}", extra=incoming_ctx)

        start_time = time.monotonic()
        outcome = "ok"
        try:
            return await handler(data, context)

        except ActionError as e:
            outcome = e.code
            warn_ctx = {
                "correlation_id": cid,
                "user_id": user_id,
                "action": context.action,
                "code": e.code,
                "description": e.message,
            }
            logger.warning(f"Action rejected {_fmt_ctx(warn_ctx)}", extra=warn_ctx)
            raise

        except Exception as e:
            outcome = "INTERNAL_SERVER_ERROR"
            exc_ctx = {
                "correlation_id": cid,
                "user_id": user_id,
                "action": context.action,
                "error": str(e),
            }
            logger.exception(f"Exception caught in action {_fmt_ctx(exc_ctx)}", extra=exc_ctx)
            raise

        finally:
            elapsed_ms = int((time.monotonic() - start_time) * 1000)
            processed_ctx = {
                "correlation_id": cid,
                "user_id": user_id,
                "action": context.action,
                "outcome": outcome,
                "execution_time_ms": elapsed_ms,
            }
            logger.info(f"Action processed {_fmt_ctx(processed_ctx)}", extra=processed_ctx)
