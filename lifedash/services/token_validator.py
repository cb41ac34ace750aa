"""Decide whether a stored Google token is usable and refresh it when not.

Freshness is evaluated at call time::

    NO_TOKEN             -> NotConnectedError
    VALID                -> stored access token, no further I/O
    EXPIRING_OR_EXPIRED  -> refresh, return the new access token

A token counts as expiring once ``now + guard_window`` reaches its expiry, so
a token judged valid cannot lapse while the calendar call that uses it is
still in flight.

Concurrent validations for the same user share one refresh: the first caller
starts it and registers the task, later callers await that task, and the
entry is dropped when it finishes.
"""
from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from enum import Enum

from lifedash.core.oauth_google import NotConnectedError
from lifedash.core.structured_logger import StructuredLogger
from lifedash.models import GoogleToken
from lifedash.services.token_refresher import Clock, RefreshedToken, TokenRefresher, utcnow
from lifedash.services.token_store import TokenStore

GUARD_WINDOW = timedelta(minutes=5)


class TokenFreshness(str, Enum):
    NO_TOKEN = "no_token"
    VALID = "valid"
    EXPIRING_OR_EXPIRED = "expiring_or_expired"


class ConnectionStatus(str, Enum):
    UP = "up"
    EXPIRING = "expiring"
    EXPIRED = "expired"
    DISCONNECTED = "disconnected"
    NOT_APPLICABLE = "n/a"


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps (as SQLite returns them) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def classify_token(
    token: GoogleToken | None, now: datetime, guard_window: timedelta = GUARD_WINDOW
) -> TokenFreshness:
    if token is None:
        return TokenFreshness.NO_TOKEN
    if token.expiry_date is None:
        return TokenFreshness.EXPIRING_OR_EXPIRED
    if as_utc(now) + guard_window < as_utc(token.expiry_date):
        return TokenFreshness.VALID
    return TokenFreshness.EXPIRING_OR_EXPIRED


def minutes_until_expiry(token: GoogleToken, now: datetime) -> int | None:
    if token.expiry_date is None:
        return None
    remaining = as_utc(token.expiry_date) - as_utc(now)
    return int(remaining.total_seconds() // 60)


def connection_status(
    token: GoogleToken | None, now: datetime, *, authenticated: bool = True
) -> ConnectionStatus:
    """Project a stored token onto the health vocabulary without refreshing it."""
    if not authenticated:
        return ConnectionStatus.NOT_APPLICABLE
    if token is None:
        return ConnectionStatus.DISCONNECTED
    if token.expiry_date is None or as_utc(token.expiry_date) < as_utc(now):
        return ConnectionStatus.EXPIRED
    remaining = minutes_until_expiry(token, now)
    if remaining is not None and remaining < GUARD_WINDOW.total_seconds() // 60:
        return ConnectionStatus.EXPIRING
    return ConnectionStatus.UP


class TokenValidator:
    """Hand out access tokens that will outlive the guard window."""

    def __init__(
        self,
        store: TokenStore,
        refresher: TokenRefresher,
        logger: StructuredLogger,
        *,
        guard_window: timedelta = GUARD_WINDOW,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._refresher = refresher
        self._logger = logger
        self._guard_window = guard_window
        self._clock = clock
        self._in_flight: dict[str, asyncio.Task[RefreshedToken]] = {}

    @property
    def guard_window(self) -> timedelta:
        return self._guard_window

    def refresh_in_progress(self, user_id: str) -> bool:
        return user_id in self._in_flight

    async def get_valid_access_token(self, user_id: str) -> str:
        token = await self._store.get(user_id)
        freshness = classify_token(token, self._clock(), self._guard_window)

        if freshness is TokenFreshness.NO_TOKEN:
            await self._logger.warn("No Google token stored", user_id=user_id)
            raise NotConnectedError("Google account is not connected")

        assert token is not None
        if freshness is TokenFreshness.VALID:
            return token.access_token

        if not token.refresh_token:
            await self._logger.warn(
                "Google token expiring without a refresh token", user_id=user_id
            )
            raise NotConnectedError(
                "Stored Google token cannot be refreshed", detail="missing refresh token"
            )

        await self._logger.info(
            "Google token expired or expiring soon, refreshing", user_id=user_id
        )
        refreshed = await self._refresh_once(user_id, token.refresh_token)
        return refreshed.access_token

    async def _refresh_once(self, user_id: str, refresh_token: str) -> RefreshedToken:
        task = self._in_flight.get(user_id)
        if task is None:
            task = asyncio.ensure_future(self._refresher.refresh(user_id, refresh_token))
            self._in_flight[user_id] = task
            task.add_done_callback(lambda done: self._forget(user_id, done))
        else:
            await self._logger.debug("Joining in-flight Google token refresh", user_id=user_id)
        # Shielded so a cancelled caller does not cancel the shared refresh.
        return await asyncio.shield(task)

    def _forget(self, user_id: str, task: asyncio.Task[RefreshedToken]) -> None:
        if self._in_flight.get(user_id) is task:
            del self._in_flight[user_id]
        if not task.cancelled():
            # Mark the outcome retrieved when every waiter has gone away.
            task.exception()
