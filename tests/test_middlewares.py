import logging

import pytest
from unittest.mock import AsyncMock

from api_tester.core.action import ActionContext, ActionError
from api_tester.db.models import User
from api_tester.middlewares.logging_middleware import CorrelationIdFilter, LoggingMiddleware, correlation_id_ctx
from api_tester.middlewares.user_middleware import UserMiddleware

pytestmark = pytest.mark.asyncio


class TestLoggingMiddleware:
    """Structured logging around action calls."""

    async def test_logs_incoming_and_processed(self, caplog):
        handler = AsyncMock(return_value={"success": True})
        context = ActionContext(locals={"user": User(id="u1")}, action="listCollections")

        with caplog.at_level(logging.INFO):
            result = await LoggingMiddleware()(handler, {}, context)

        assert result == {"success": True}
        messages = [record.getMessage() for record in caplog.records]
        assert messages[0].startswith("Incoming action")
        assert "action=listCollections" in messages[0]
        assert "user_id=u1" in messages[0]
        assert "outcome=ok" in messages[-1]
        assert "execution_time_ms=" in messages[-1]

    async def test_assigns_correlation_id(self):
        handler = AsyncMock(return_value={})
        context = ActionContext(action="listCollections")

        await LoggingMiddleware()(handler, {}, context)

        assert context.correlation_id
        assert correlation_id_ctx.get() == context.correlation_id

    async def test_action_error_is_logged_as_warning_and_reraised(self, caplog):
        handler = AsyncMock(side_effect=ActionError("NOT_FOUND", "API request not found."))
        context = ActionContext(action="getRequest")

        with caplog.at_level(logging.INFO):
            with pytest.raises(ActionError):
                await LoggingMiddleware()(handler, {}, context)

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "code=NOT_FOUND" in warnings[0].getMessage()
        assert "outcome=NOT_FOUND" in caplog.records[-1].getMessage()

    async def test_unexpected_error_is_logged_with_traceback(self, caplog):
        handler = AsyncMock(side_effect=RuntimeError("disk full"))
        context = ActionContext(action="createRequest")

        with caplog.at_level(logging.INFO):
            with pytest.raises(RuntimeError):
                await LoggingMiddleware()(handler, {}, context)

        errors = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert errors and errors[0].exc_info is not None
        assert "error=disk full" in errors[0].getMessage()


class TestUserMiddleware:
    """User resolution from the trusted header."""

    async def test_resolves_user_from_header(self):
        handler = AsyncMock(return_value={})
        context = ActionContext(headers={"x-user-id": " u42 "})

        await UserMiddleware("X-User-Id")(handler, {}, context)

        assert context.user == User(id="u42")
        handler.assert_awaited_once_with({}, context)

    async def test_existing_user_wins(self):
        handler = AsyncMock(return_value={})
        context = ActionContext(locals={"user": User(id="session")}, headers={"X-User-Id": "header"})

        await UserMiddleware("X-User-Id")(handler, {}, context)

        assert context.user.id == "session"

    async def test_blank_header_leaves_context_anonymous(self):
        handler = AsyncMock(return_value={})
        context = ActionContext(headers={"X-User-Id": "  "})

        await UserMiddleware("X-User-Id")(handler, {}, context)

        assert context.user is None


class TestCorrelationIdFilter:
    LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] %(message)s"

    def _record(self):
        return logging.LogRecord("api_tester.test", logging.INFO, __file__, 1, "hello", None, None)

    async def test_formats_record_with_current_correlation_id(self):
        token = correlation_id_ctx.set("abc123")
        try:
            record = self._record()
            assert CorrelationIdFilter().filter(record) is True
        finally:
            correlation_id_ctx.reset(token)

        line = logging.Formatter(self.LOG_FORMAT).format(record)
        assert line.endswith("- api_tester.test - INFO - [abc123] hello")

    async def test_record_outside_an_action_gets_default_id(self):
        record = self._record()
        CorrelationIdFilter().filter(record)

        assert record.correlation_id == correlation_id_ctx.get()
        logging.Formatter(self.LOG_FORMAT).format(record)
