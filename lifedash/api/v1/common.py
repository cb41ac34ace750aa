"""Common helpers for API responses."""
from __future__ import annotations

from typing import TypeVar

from fastapi import HTTPException, status

from lifedash.core.oauth_google import (
    GoogleNotConfiguredError,
    GoogleOAuthError,
    GoogleTokenError,
    NotConnectedError,
)
from lifedash.services.calendar_client import CalendarUnauthorizedError

T = TypeVar("T")


def data_response(payload: T) -> dict[str, T]:
    """Wrap a payload in the standard data envelope."""

    return {"data": payload}


def google_http_error(exc: GoogleOAuthError) -> HTTPException:
    """Translate a Google failure into a reconnect or retry response."""

    if isinstance(exc, GoogleNotConfiguredError):
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"code": "GOOGLE_NOT_CONFIGURED", "message": "Google OAuth is not configured"},
        )
    if isinstance(exc, NotConnectedError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "code": "GOOGLE_RECONNECT_REQUIRED",
                "message": "Google account is not connected",
                "kind": exc.kind.value,
            },
        )
    if isinstance(exc, CalendarUnauthorizedError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "code": "GOOGLE_RECONNECT_REQUIRED",
                "message": "Google Calendar rejected the stored credentials",
                "kind": "CALENDAR_UNAUTHORIZED",
            },
        )
    if isinstance(exc, GoogleTokenError) and exc.requires_reconnect:
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "code": "GOOGLE_RECONNECT_REQUIRED",
                "message": "Google access was revoked, please reconnect your calendar",
                "kind": exc.kind.value,
            },
        )
    if isinstance(exc, GoogleTokenError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "code": "GOOGLE_TEMPORARILY_UNAVAILABLE",
                "message": "Google Calendar is temporarily unavailable, please retry",
                "kind": exc.kind.value,
            },
        )
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail={"code": "GOOGLE_API_ERROR", "message": "Google Calendar request failed"},
    )
