"""Construction of the long-lived Google token and calendar components."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lifedash.core.config import Settings
from lifedash.core.oauth_google import GoogleClientConfig, GoogleOAuthClient
from lifedash.core.structured_logger import StructuredLogger
from lifedash.services.calendar_client import GoogleCalendarClient
from lifedash.services.token_refresher import TokenRefresher
from lifedash.services.token_store import TokenStore
from lifedash.services.token_validator import TokenValidator


@dataclass
class GoogleServices:
    oauth_client: GoogleOAuthClient
    store: TokenStore
    refresher: TokenRefresher
    validator: TokenValidator
    calendar: GoogleCalendarClient


def build_google_services(
    settings: Settings,
    logger: StructuredLogger,
    session_factory: async_sessionmaker[AsyncSession],
    *,
    http_client: httpx.AsyncClient | None = None,
) -> GoogleServices:
    """Wire the token components once for the lifetime of the process."""

    oauth_client = GoogleOAuthClient(
        GoogleClientConfig.from_settings(settings), http_client=http_client
    )
    store = TokenStore(session_factory, timeout_seconds=settings.store_timeout_seconds)
    refresher = TokenRefresher(oauth_client, store, logger.child("google-token-refresh"))
    validator = TokenValidator(
        store,
        refresher,
        logger.child("google-token"),
        guard_window=timedelta(seconds=settings.token_guard_window_seconds),
    )
    calendar = GoogleCalendarClient(
        validator,
        logger.child("google-calendar"),
        http_client=http_client,
        timeout_seconds=settings.google_http_timeout_seconds,
    )
    return GoogleServices(
        oauth_client=oauth_client,
        store=store,
        refresher=refresher,
        validator=validator,
        calendar=calendar,
    )
