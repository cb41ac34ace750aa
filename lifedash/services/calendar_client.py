"""Google Calendar event listing for the dashboard."""
from __future__ import annotations

from datetime import timedelta
from typing import Any

import httpx

from lifedash.core.oauth_google import GoogleOAuthError
from lifedash.core.structured_logger import StructuredLogger
from lifedash.schemas.calendar import CalendarEvent
from lifedash.services.token_refresher import Clock, utcnow
from lifedash.services.token_validator import TokenValidator

CALENDAR_EVENTS_URL = "https://www.googleapis.com/calendar/v3/calendars/primary/events"
LISTING_WINDOW = timedelta(days=7)
MAX_RESULTS = 50


class GoogleCalendarError(GoogleOAuthError):
    """Raised when the Calendar API returns an error response."""

    def __init__(self, message: str, *, status_code: int | None = None, body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class CalendarUnauthorizedError(GoogleCalendarError):
    """The Calendar API refused the access token; the user must reconnect."""

    requires_reconnect = True


class GoogleCalendarClient:
    """List upcoming events with an access token from the validator."""

    def __init__(
        self,
        validator: TokenValidator,
        logger: StructuredLogger,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 10.0,
        clock: Clock = utcnow,
    ) -> None:
        self._validator = validator
        self._logger = logger
        self._http_client = http_client
        self._timeout = timeout_seconds
        self._clock = clock

    async def list_upcoming_events(self, user_id: str) -> list[CalendarEvent]:
        """Return events in the next seven days ordered by start time."""

        access_token = await self._validator.get_valid_access_token(user_id)
        now = self._clock()
        params = {
            "timeMin": now.isoformat(),
            "timeMax": (now + LISTING_WINDOW).isoformat(),
            "maxResults": str(MAX_RESULTS),
            "singleEvents": "true",
            "orderBy": "startTime",
        }
        data = await self._authorized_get(CALENDAR_EVENTS_URL, access_token, params, user_id)
        items = data.get("items") if isinstance(data, dict) else None
        return [_to_event(item) for item in items or [] if isinstance(item, dict)]

    async def _authorized_get(
        self, url: str, access_token: str, params: dict[str, str], user_id: str
    ) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {access_token}"}
        try:
            if self._http_client is not None:
                response = await self._http_client.get(
                    url, params=params, headers=headers, timeout=self._timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(url, params=params, headers=headers)
        except httpx.HTTPError as exc:
            await self._logger.error(
                "Google Calendar request failed", user_id=user_id, exc=exc
            )
            raise GoogleCalendarError("Failed to communicate with Google Calendar") from exc

        if response.status_code == 401:
            await self._logger.warn(
                "Google Calendar rejected the access token",
                user_id=user_id,
                code="CALENDAR_UNAUTHORIZED",
            )
            raise CalendarUnauthorizedError(
                "Google Calendar rejected the access token",
                status_code=response.status_code,
                body=response.text,
            )
        if response.status_code >= 400:
            await self._logger.error(
                "Google Calendar API error",
                user_id=user_id,
                code=f"HTTP_{response.status_code}",
                body=response.text,
            )
            raise GoogleCalendarError(
                "Google Calendar API error",
                status_code=response.status_code,
                body=response.text,
            )
        return response.json()


def _to_event(item: dict[str, Any]) -> CalendarEvent:
    start = item.get("start") or {}
    end = item.get("end") or {}
    return CalendarEvent(
        id=str(item.get("id", "")),
        summary=item.get("summary") or "(No title)",
        description=item.get("description"),
        location=item.get("location"),
        start=start.get("dateTime") or start.get("date"),
        end=end.get("dateTime") or end.get("date"),
        all_day="date" in start and "dateTime" not in start,
        html_link=item.get("htmlLink"),
        status=item.get("status"),
    )
