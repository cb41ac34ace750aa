"""Request dependencies shared by the API routers."""
from __future__ import annotations

from fastapi import Header, HTTPException, Request, status

from lifedash.core import context as request_context
from lifedash.core.structured_logger import StructuredLogger
from lifedash.services.google_services import GoogleServices


async def get_optional_user_id(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> str | None:
    """Return the user id forwarded by the auth proxy, if any."""

    user_id = (x_user_id or "").strip() or None
    request_context.set_user_id(user_id)
    return user_id


async def get_current_user_id(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> str:
    """Return the authenticated user id or reject the request."""

    user_id = await get_optional_user_id(x_user_id)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "UNAUTHORIZED", "message": "Authentication required"},
        )
    return user_id


def get_logger(request: Request) -> StructuredLogger:
    return request.app.state.logger


def get_google_services(request: Request) -> GoogleServices:
    return request.app.state.google
