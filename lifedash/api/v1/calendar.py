"""Calendar API routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from lifedash.api.deps import get_current_user_id, get_google_services
from lifedash.api.v1.common import data_response, google_http_error
from lifedash.core.oauth_google import GoogleOAuthError
from lifedash.schemas import CalendarEvent
from lifedash.services.google_services import GoogleServices

router = APIRouter(prefix="/calendar", tags=["calendar"])


@router.get("/events")
async def list_events(
    user_id: str = Depends(get_current_user_id),
    google: GoogleServices = Depends(get_google_services),
) -> dict[str, list[CalendarEvent]]:
    """List the user's events for the coming week."""

    try:
        events = await google.calendar.list_upcoming_events(user_id)
    except GoogleOAuthError as exc:
        raise google_http_error(exc) from exc
    return data_response(events)
