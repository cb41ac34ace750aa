"""Google OAuth configuration, token endpoint access and error types."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import urlencode

import httpx

from lifedash.core.config import Settings

AUTH_BASE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
DEFAULT_EXPIRES_IN = 3600


class TokenErrorKind(str, Enum):
    NOT_CONNECTED = "NOT_CONNECTED"
    PROVIDER_REJECTED = "PROVIDER_REJECTED"
    PROVIDER_UNREACHABLE = "PROVIDER_UNREACHABLE"
    PERSISTENCE_FAILED = "PERSISTENCE_FAILED"


class GoogleOAuthError(Exception):
    """Base error for Google OAuth operations."""


class GoogleNotConfiguredError(GoogleOAuthError):
    """Raised when OAuth credentials are not configured."""


class GoogleTokenError(GoogleOAuthError):
    """A token lifecycle failure; ``kind`` is fixed per subclass."""

    kind: TokenErrorKind
    requires_reconnect: bool = False

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        super().__init__(message)
        self.detail = detail


class NotConnectedError(GoogleTokenError):
    """No stored token, or no refresh token to renew an expiring one."""

    kind = TokenErrorKind.NOT_CONNECTED
    requires_reconnect = True


class ProviderRejectedError(GoogleTokenError):
    """The token endpoint answered with an error response."""

    kind = TokenErrorKind.PROVIDER_REJECTED
    requires_reconnect = True

    def __init__(
        self,
        message: str,
        *,
        detail: str | None = None,
        error: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, detail=detail)
        self.error = error
        self.status_code = status_code


class ProviderUnreachableError(GoogleTokenError):
    """The token endpoint could not be reached or timed out."""

    kind = TokenErrorKind.PROVIDER_UNREACHABLE


class PersistenceFailedError(GoogleTokenError):
    """The token store read or write failed."""

    kind = TokenErrorKind.PERSISTENCE_FAILED


@dataclass(frozen=True)
class GoogleClientConfig:
    """Long-lived OAuth client settings shared by the connect and refresh flows."""

    client_id: str
    client_secret: str
    redirect_uri: str = ""
    scopes: tuple[str, ...] = field(default_factory=tuple)
    token_url: str = TOKEN_URL
    timeout_seconds: float = 10.0

    @classmethod
    def from_settings(cls, settings: Settings) -> GoogleClientConfig:
        return cls(
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            redirect_uri=settings.google_redirect_uri,
            scopes=tuple(settings.google_scopes),
            timeout_seconds=settings.google_http_timeout_seconds,
        )

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.redirect_uri and self.scopes)


@dataclass(frozen=True)
class TokenGrant:
    """Parsed body of a successful token endpoint response."""

    access_token: str
    expires_in: int
    refresh_token: str | None = None
    scope: str | None = None
    token_type: str | None = None


class GoogleOAuthClient:
    """Build consent URLs and talk to the Google token endpoint."""

    def __init__(self, config: GoogleClientConfig, *, http_client: httpx.AsyncClient | None = None):
        self.config = config
        self._http_client = http_client

    def require_configured(self) -> None:
        if not self.config.configured:
            raise GoogleNotConfiguredError("Google OAuth credentials are not fully configured")

    def build_authorize_url(self, *, state: str | None = None) -> str:
        """Return the Google OAuth authorization URL."""

        self.require_configured()
        params: dict[str, Any] = {
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.config.scopes),
            "access_type": "offline",
            "prompt": "consent",
        }
        if state is not None:
            params["state"] = state
        return f"{AUTH_BASE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> TokenGrant:
        """Exchange an authorization code for a token grant."""

        self.require_configured()
        return await self.request_token(
            {
                "code": code,
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
                "redirect_uri": self.config.redirect_uri,
                "grant_type": "authorization_code",
            }
        )

    async def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        """Mint a new access token from ``refresh_token``."""

        return await self.request_token(
            {
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            }
        )

    async def request_token(self, payload: dict[str, str]) -> TokenGrant:
        """POST ``payload`` to the token endpoint and classify the outcome."""

        try:
            if self._http_client is not None:
                response = await self._http_client.post(
                    self.config.token_url, data=payload, timeout=self.config.timeout_seconds
                )
            else:
                async with httpx.AsyncClient(timeout=self.config.timeout_seconds) as client:
                    response = await client.post(self.config.token_url, data=payload)
        except httpx.TimeoutException as exc:
            raise ProviderUnreachableError(
                "Timed out waiting for the Google OAuth token endpoint", detail=str(exc)
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderUnreachableError(
                "Unable to reach Google OAuth token endpoint", detail=str(exc)
            ) from exc

        if response.status_code >= 400:
            error, description = _parse_error_body(response)
            raise ProviderRejectedError(
                "Google OAuth token exchange failed",
                detail=description or error or response.text,
                error=error,
                status_code=response.status_code,
            )
        return _parse_grant(response)


def _parse_error_body(response: httpx.Response) -> tuple[str | None, str | None]:
    try:
        body = response.json()
    except ValueError:
        return None, None
    if not isinstance(body, dict):
        return None, None
    error = body.get("error")
    description = body.get("error_description")
    return (str(error) if error else None, str(description) if description else None)


def _parse_grant(response: httpx.Response) -> TokenGrant:
    try:
        body = response.json()
    except ValueError as exc:
        raise ProviderRejectedError(
            "Google token response was not JSON",
            detail=response.text,
            status_code=response.status_code,
        ) from exc

    access_token = body.get("access_token") if isinstance(body, dict) else None
    if not access_token:
        raise ProviderRejectedError(
            "Google token response missing access_token",
            detail="missing access_token",
            status_code=response.status_code,
        )

    return TokenGrant(
        access_token=str(access_token),
        expires_in=_coerce_expires_in(body.get("expires_in")),
        refresh_token=body.get("refresh_token") or None,
        scope=body.get("scope"),
        token_type=body.get("token_type"),
    )


def _coerce_expires_in(value: Any) -> int:
    try:
        seconds = int(value)
    except (TypeError, ValueError):
        return DEFAULT_EXPIRES_IN
    return seconds if seconds > 0 else DEFAULT_EXPIRES_IN
