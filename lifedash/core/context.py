"""Per-request context shared with the structured logger."""
from __future__ import annotations

import uuid
from contextvars import ContextVar
from dataclasses import dataclass

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)
_request_method: ContextVar[str | None] = ContextVar("request_method", default=None)
_request_path: ContextVar[str | None] = ContextVar("request_path", default=None)
_user_id: ContextVar[str | None] = ContextVar("user_id", default=None)


@dataclass(frozen=True)
class RequestContext:
    request_id: str | None
    method: str | None
    path: str | None
    user_id: str | None


def generate_id() -> str:
    return uuid.uuid4().hex


def begin_request(method: str, path: str, request_id: str | None = None) -> str:
    """Bind request metadata to the current async context and return the id."""
    request_id = request_id or generate_id()
    _request_id.set(request_id)
    _request_method.set(method)
    _request_path.set(path)
    _user_id.set(None)
    return request_id


def set_user_id(user_id: str | None) -> None:
    _user_id.set(user_id)


def current_request() -> RequestContext:
    return RequestContext(
        request_id=_request_id.get(),
        method=_request_method.get(),
        path=_request_path.get(),
        user_id=_user_id.get(),
    )
