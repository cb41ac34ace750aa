"""Refresh-token exchange and persistence of the renewed access token."""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from lifedash.core.oauth_google import (
    GoogleOAuthClient,
    GoogleTokenError,
    PersistenceFailedError,
)
from lifedash.core.structured_logger import StructuredLogger
from lifedash.services.token_store import TokenStore

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class RefreshedToken:
    access_token: str
    expiry_date: datetime


class TokenRefresher:
    """Exchange a stored refresh token for a new access token.

    One provider attempt per call. The provider response is persisted before
    the new token is handed back; if that write fails the call fails with
    :class:`PersistenceFailedError` and the fresh token is discarded.
    """

    def __init__(
        self,
        oauth_client: GoogleOAuthClient,
        store: TokenStore,
        logger: StructuredLogger,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self._oauth = oauth_client
        self._store = store
        self._logger = logger
        self._clock = clock

    async def refresh(self, user_id: str, refresh_token: str) -> RefreshedToken:
        try:
            grant = await self._oauth.refresh_access_token(refresh_token)
        except GoogleTokenError as exc:
            await self._logger.error(
                "Google token refresh failed",
                user_id=user_id,
                error_type=exc.kind.value,
                code=getattr(exc, "error", None),
                detail=exc.detail,
            )
            raise

        now = self._clock()
        expiry_date = now + timedelta(seconds=grant.expires_in)
        fields: dict[str, Any] = {
            "access_token": grant.access_token,
            "expiry_date": expiry_date,
            "updated_at": now,
        }
        if grant.refresh_token:
            # Google only returns a refresh token here when it rotated it.
            fields["refresh_token"] = grant.refresh_token

        try:
            await self._store.upsert(user_id, **fields)
        except PersistenceFailedError as exc:
            await self._logger.error(
                "Failed to persist refreshed Google token",
                user_id=user_id,
                error_type=exc.kind.value,
                detail=exc.detail,
            )
            raise

        await self._logger.info(
            "Google token refreshed",
            user_id=user_id,
            expiry_date=expiry_date.isoformat(),
            rotated_refresh_token=bool(grant.refresh_token),
        )
        return RefreshedToken(access_token=grant.access_token, expiry_date=expiry_date)
