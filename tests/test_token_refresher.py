from __future__ import annotations

from datetime import timedelta

import httpx
import pytest

from lifedash.core.oauth_google import (
    GoogleClientConfig,
    GoogleNotConfiguredError,
    GoogleOAuthClient,
    PersistenceFailedError,
    ProviderRejectedError,
    ProviderUnreachableError,
)
from lifedash.core.structured_logger import StructuredLogger
from lifedash.services.token_refresher import TokenRefresher
from lifedash.services.token_validator import as_utc

from conftest import NOW, USER_ID, GoogleStub, RecordingSink


def _oauth_client(http_client: httpx.AsyncClient) -> GoogleOAuthClient:
    return GoogleOAuthClient(
        GoogleClientConfig(client_id="client-id", client_secret="client-secret"),
        http_client=http_client,
    )


class _BrokenStore:
    def __init__(self) -> None:
        self.upserts: list[dict] = []

    async def upsert(self, user_id: str, **fields) -> None:
        self.upserts.append(fields)
        raise PersistenceFailedError("Token store write failed", detail="disk I/O error")


@pytest.mark.anyio("asyncio")
async def test_refresh_keeps_refresh_token_when_not_rotated(token_store, google_stub) -> None:
    await token_store.upsert(
        USER_ID, access_token="at1", refresh_token="rt1", expiry_date=NOW - timedelta(minutes=1)
    )
    sink = RecordingSink()

    async with google_stub.client() as http_client:
        refresher = TokenRefresher(
            _oauth_client(http_client),
            token_store,
            StructuredLogger(persistent_sink=sink),
            clock=lambda: NOW,
        )
        refreshed = await refresher.refresh(USER_ID, "rt1")

    assert refreshed.access_token == "at2"
    assert refreshed.expiry_date == NOW + timedelta(hours=1)

    stored = await token_store.get(USER_ID)
    assert stored is not None
    assert stored.access_token == "at2"
    assert stored.refresh_token == "rt1"
    assert as_utc(stored.updated_at) == NOW
    # Success is logged at info level and never reaches the persistent sink.
    assert sink.records == []


@pytest.mark.anyio("asyncio")
async def test_refresh_defaults_missing_expires_in(token_store, google_stub) -> None:
    google_stub.token_body = {"access_token": "at2"}

    async with google_stub.client() as http_client:
        refresher = TokenRefresher(
            _oauth_client(http_client), token_store, StructuredLogger(), clock=lambda: NOW
        )
        refreshed = await refresher.refresh(USER_ID, "rt1")

    assert refreshed.expiry_date == NOW + timedelta(seconds=3600)


@pytest.mark.anyio("asyncio")
async def test_rejected_refresh_is_logged_and_raised(token_store, google_stub) -> None:
    google_stub.token_status = 400
    google_stub.token_body = {
        "error": "invalid_grant",
        "error_description": "Token has been expired or revoked.",
    }
    sink = RecordingSink()

    async with google_stub.client() as http_client:
        refresher = TokenRefresher(
            _oauth_client(http_client),
            token_store,
            StructuredLogger(persistent_sink=sink),
            clock=lambda: NOW,
        )
        with pytest.raises(ProviderRejectedError) as excinfo:
            await refresher.refresh(USER_ID, "rt1")

    assert excinfo.value.detail == "Token has been expired or revoked."
    assert excinfo.value.error == "invalid_grant"
    assert await token_store.get(USER_ID) is None

    assert len(sink.records) == 1
    record = sink.records[0]
    assert record.level == "error"
    assert record.error_type == "PROVIDER_REJECTED"
    assert record.error_code == "invalid_grant"
    assert record.user_id == USER_ID


@pytest.mark.anyio("asyncio")
async def test_non_json_error_body_uses_text(token_store, google_stub) -> None:
    google_stub.token_status = 500
    google_stub.token_body = "upstream exploded"

    async with google_stub.client() as http_client:
        refresher = TokenRefresher(
            _oauth_client(http_client), token_store, StructuredLogger(), clock=lambda: NOW
        )
        with pytest.raises(ProviderRejectedError) as excinfo:
            await refresher.refresh(USER_ID, "rt1")

    assert excinfo.value.detail == "upstream exploded"
    assert excinfo.value.status_code == 500


@pytest.mark.anyio("asyncio")
async def test_success_without_access_token_is_rejected(token_store, google_stub) -> None:
    google_stub.token_body = {"expires_in": 3600}

    async with google_stub.client() as http_client:
        refresher = TokenRefresher(
            _oauth_client(http_client), token_store, StructuredLogger(), clock=lambda: NOW
        )
        with pytest.raises(ProviderRejectedError):
            await refresher.refresh(USER_ID, "rt1")

    assert await token_store.get(USER_ID) is None


@pytest.mark.anyio("asyncio")
async def test_timeout_is_reported_as_unreachable(token_store, google_stub) -> None:
    google_stub.token_error = httpx.ReadTimeout("timed out")

    async with google_stub.client() as http_client:
        refresher = TokenRefresher(
            _oauth_client(http_client), token_store, StructuredLogger(), clock=lambda: NOW
        )
        with pytest.raises(ProviderUnreachableError):
            await refresher.refresh(USER_ID, "rt1")

    assert len(google_stub.token_requests) == 1


@pytest.mark.anyio("asyncio")
async def test_persistence_failure_discards_new_token(google_stub) -> None:
    store = _BrokenStore()
    sink = RecordingSink()

    async with google_stub.client() as http_client:
        refresher = TokenRefresher(
            _oauth_client(http_client),
            store,
            StructuredLogger(persistent_sink=sink),
            clock=lambda: NOW,
        )
        with pytest.raises(PersistenceFailedError):
            await refresher.refresh(USER_ID, "rt1")

    assert store.upserts[0]["access_token"] == "at2"
    assert "refresh_token" not in store.upserts[0]
    assert [record.error_type for record in sink.records] == ["PERSISTENCE_FAILED"]


@pytest.mark.anyio("asyncio")
async def test_exchange_code_requires_configuration(google_stub) -> None:
    async with google_stub.client() as http_client:
        client = _oauth_client(http_client)
        with pytest.raises(GoogleNotConfiguredError):
            await client.exchange_code("auth-code")

    assert google_stub.token_requests == []


def test_authorize_url_requests_offline_access() -> None:
    client = GoogleOAuthClient(
        GoogleClientConfig(
            client_id="client-id",
            client_secret="client-secret",
            redirect_uri="http://localhost/callback",
            scopes=("scope-one", "scope-two"),
        )
    )

    url = httpx.URL(client.build_authorize_url(state="user-1"))

    assert url.host == "accounts.google.com"
    assert url.params["access_type"] == "offline"
    assert url.params["prompt"] == "consent"
    assert url.params["scope"] == "scope-one scope-two"
    assert url.params["state"] == "user-1"
