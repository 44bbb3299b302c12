"""HTTP surface: every action is served at ``POST /_actions/{name}``."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import AppSettings, get_settings
from .core.action import ActionContext, ActionDispatcher, ActionError
from .db.connection import close_pool, get_connection
from .handlers.collection_handlers import router as collection_router
from .handlers.request_handlers import router as request_router
from .handlers.run_handlers import router as run_router
from .middlewares.logging_middleware import LoggingMiddleware
from .middlewares.user_middleware import UserMiddleware

logger = logging.getLogger(__name__)


def build_dispatcher(settings: Optional[AppSettings] = None) -> ActionDispatcher:
    settings = settings or get_settings()
    dp = ActionDispatcher()

    dp.outer_middleware(UserMiddleware(settings.server.user_header))
    dp.outer_middleware(LoggingMiddleware())

    dp.include_router(collection_router)
    dp.include_router(request_router)
    dp.include_router(run_router)
    return dp


def _error_response(error: ActionError) -> JSONResponse:
    return JSONResponse(status_code=error.status, content={"success": False, "error": error.to_dict()})


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with get_connection():
        pass
    logger.info("API tester actions ready: %s", ", ".join(sorted(app.state.dispatcher.actions)))
    yield
    await close_pool()


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(title="API Tester Actions", version="0.1.0", debug=settings.debug, lifespan=lifespan)
    app.state.dispatcher = build_dispatcher(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ActionError)
    async def handle_action_error(request: Request, exc: ActionError):
        return _error_response(exc)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.post("/_actions/{name}")
    async def run_action(name: str, request: Request):
        body = await request.body()
        payload = None
        if body:
            try:
                payload = await request.json()
            except ValueError:
                raise ActionError("BAD_REQUEST", "Request body is not valid JSON.")

        context = ActionContext(headers=dict(request.headers))
        try:
            result = await app.state.dispatcher.dispatch(name, payload, context)
        except ActionError:
            raise
        except Exception:
            # Already logged with its traceback by the logging middleware.
            return _error_response(ActionError("INTERNAL_SERVER_ERROR", "Something went wrong."))

        response = JSONResponse(content=jsonable_encoder(result, by_alias=True))
        if context.correlation_id:
            response.headers["X-Correlation-Id"] = context.correlation_id
        return response

    return app
