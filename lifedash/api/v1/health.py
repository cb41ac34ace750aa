"""Service health reporting."""
from __future__ import annotations

import os
import platform
import time
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from lifedash.api.deps import get_google_services, get_optional_user_id
from lifedash.api.v1.common import data_response
from lifedash.core.config import Settings, get_settings
from lifedash.core.db import get_session, probe_database
from lifedash.core.oauth_google import GoogleTokenError
from lifedash.services.google_services import GoogleServices
from lifedash.services.token_validator import (
    ConnectionStatus,
    connection_status,
    minutes_until_expiry,
)

router = APIRouter(tags=["health"])

_STARTED_AT = time.monotonic()

CALENDAR_MESSAGES = {
    ConnectionStatus.UP: "Connected",
    ConnectionStatus.EXPIRING: "Token expiring soon",
    ConnectionStatus.EXPIRED: "Token expired, needs refresh",
    ConnectionStatus.DISCONNECTED: "Calendar not connected",
    ConnectionStatus.NOT_APPLICABLE: "No user authenticated",
}


@router.get("/health")
async def health_check(
    response: Response,
    user_id: str | None = Depends(get_optional_user_id),
    session: AsyncSession = Depends(get_session),
    google: GoogleServices = Depends(get_google_services),
    settings: Settings = Depends(get_settings),
) -> dict[str, dict[str, Any]]:
    """Report database, calendar connection and process status."""

    started = time.perf_counter()
    overall = "healthy"
    services: dict[str, dict[str, Any]] = {}

    probe = await probe_database(session)
    if probe.ok:
        services["database"] = {"status": "up", "latency_ms": probe.latency_ms, "message": "Connected"}
    else:
        services["database"] = {
            "status": "down",
            "latency_ms": probe.latency_ms,
            "message": probe.error,
        }
        overall = "down"

    calendar = await _calendar_status(google, user_id)
    services["google_calendar"] = calendar
    calendar_failed = calendar["status"] == ConnectionStatus.EXPIRED.value or "error" in calendar
    if calendar_failed and overall == "healthy":
        overall = "degraded"

    services["system"] = {
        "status": "up",
        "uptime_seconds": int(time.monotonic() - _STARTED_AT),
        "platform": platform.system().lower() or "unknown",
        "pid": os.getpid(),
    }

    if overall == "down":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"

    return data_response(
        {
            "status": overall,
            "timestamp": datetime.now(UTC).isoformat(),
            "response_time_ms": int((time.perf_counter() - started) * 1000),
            "services": services,
            "metadata": {"version": settings.version, "environment": settings.app_env},
        }
    )


@router.head("/health")
async def health_ping() -> Response:
    """Answer load balancer probes without touching dependencies."""

    return Response(status_code=status.HTTP_200_OK)


async def _calendar_status(google: GoogleServices, user_id: str | None) -> dict[str, Any]:
    now = datetime.now(UTC)
    if user_id is None:
        state = connection_status(None, now, authenticated=False)
        return {"status": state.value, "message": CALENDAR_MESSAGES[state], "connected": False}

    try:
        token = await google.store.get(user_id)
    except GoogleTokenError as exc:
        state = ConnectionStatus.DISCONNECTED
        return {
            "status": state.value,
            "message": "Token store unavailable",
            "connected": False,
            "error": {"kind": exc.kind.value, "message": str(exc)},
        }

    state = connection_status(token, now)
    payload: dict[str, Any] = {
        "status": state.value,
        "message": CALENDAR_MESSAGES[state],
        "connected": token is not None,
    }
    if token is not None:
        payload["expires_in_minutes"] = minutes_until_expiry(token, now)
    return payload
