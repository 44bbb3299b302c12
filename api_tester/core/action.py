"""Action framework: typed inputs, authenticated context and middleware chaining.

An action is an async handler paired with a pydantic input model. Routers group
actions by concern and the dispatcher resolves a name to an action, running it
through the registered outer middlewares.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import partial
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional, Type

from pydantic import BaseModel, ValidationError

from ..db.models import User


ErrorCode = Literal["BAD_REQUEST", "UNAUTHORIZED", "FORBIDDEN", "NOT_FOUND", "INTERNAL_SERVER_ERROR"]

HTTP_STATUS: Dict[str, int] = {
    "BAD_REQUEST": 400,
    "UNAUTHORIZED": 401,
    "FORBIDDEN": 403,
    "NOT_FOUND": 404,
    "INTERNAL_SERVER_ERROR": 500,
}

Handler = Callable[[Any, "ActionContext"], Awaitable[Dict[str, Any]]]
Middleware = Callable[[Handler, Any, "ActionContext"], Awaitable[Dict[str, Any]]]


class ActionError(Exception):
    """A failure reported back to the caller with a stable code."""

    def __init__(self, code: ErrorCode, message: str, issues: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.issues = issues

    @property
    def status(self) -> int:
        return HTTP_STATUS.get(self.code, 500)

    def to_dict(self) -> Dict[str, Any]:
        error: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.issues:
            error["issues"] = self.issues
        return error


@dataclass
class ActionContext:
    """Per-call state: resolved locals (``user``), request headers, action name and correlation id."""

    locals: Dict[str, Any] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    action: str = ""
    correlation_id: str = ""

    @property
    def user(self) -> Optional[User]:
        return self.locals.get("user")


def require_user(context: ActionContext) -> User:
    """Return the signed-in user or raise ``UNAUTHORIZED``."""
    user = context.user if context is not None else None
    if not user:
        raise ActionError("UNAUTHORIZED", "You must be signed in to perform this action.")
    return user


def _issues(exc: ValidationError) -> List[Dict[str, Any]]:
    issues = []
    for err in exc.errors(include_url=False):
        message = err["msg"]
        # Drop pydantic's "Value error, " prefix for errors raised by our validators.
        if err["type"] == "value_error" and "error" in err.get("ctx", {}):
            message = str(err["ctx"]["error"])
        issues.append({"path": [str(part) for part in err["loc"]], "message": message})
    return issues


class Action:
    """A named handler with a validated input model."""

    def __init__(self, name: str, input_model: Type[BaseModel], handler: Handler):
        self.name = name
        self.input_model = input_model
        self.handler = handler

    def parse_input(self, raw: Any) -> BaseModel:
        if raw is None:
            raw = {}
        if isinstance(raw, self.input_model):
            return raw
        try:
            return self.input_model.model_validate(raw)
        except ValidationError as e:
            issues = _issues(e)
            message = issues[0]["message"] if issues else "Invalid input."
            raise ActionError("BAD_REQUEST", message, issues=issues) from e

    async def __call__(self, raw: Any, context: ActionContext) -> Dict[str, Any]:
        data = self.parse_input(raw)
        return await self.handler(data, context)

    def __repr__(self) -> str:
        return f"<Action {self.name}>"


class ActionRouter:
    """Collects actions declared in one handler module."""

    def __init__(self) -> None:
        self.actions: Dict[str, Action] = {}

    def action(self, name: str, input_model: Type[BaseModel]) -> Callable[[Handler], Handler]:
        def decorator(handler: Handler) -> Handler:
            if name in self.actions:
                raise ValueError(f"Action {name!r} is already registered")
            self.actions[name] = Action(name, input_model, handler)
            return handler

        return decorator


class ActionDispatcher:
    """Resolves action names and runs them through the outer middlewares."""

    def __init__(self) -> None:
        self.actions: Dict[str, Action] = {}
        self._middlewares: List[Middleware] = []

    def include_router(self, router: ActionRouter) -> None:
        for name, action in router.actions.items():
            if name in self.actions:
                raise ValueError(f"Action {name!r} is already registered")
            self.actions[name] = action

    def outer_middleware(self, middleware: Middleware) -> None:
        """Register a middleware; the first registered is the outermost."""
        self._middlewares.append(middleware)

    async def dispatch(self, name: str, raw_input: Any, context: ActionContext) -> Dict[str, Any]:
        action = self.actions.get(name)
        if action is None:
            raise ActionError("NOT_FOUND", f"Unknown action: {name}")
        context.action = name

        handler: Handler = action
        for middleware in reversed(self._middlewares):
            handler = partial(middleware, handler)
        return await handler(raw_input, context)
