from __future__ import annotations

import asyncio
import json
import os
import sys
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from urllib.parse import parse_qsl

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import httpx  # noqa: E402
import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from lifedash.core.config import Settings, get_settings  # noqa: E402

TEST_DB_PATH = ROOT / "test.db"
if TEST_DB_PATH.exists():
    TEST_DB_PATH.unlink()
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
get_settings.cache_clear()

NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)
USER_ID = "user-1"
OTHER_USER_ID = "user-2"


class RecordingSink:
    """Persistent log sink that keeps records in memory."""

    def __init__(self) -> None:
        self.records: list[Any] = []

    async def write(self, record: Any) -> None:
        self.records.append(record)


class FailingSink:
    def __init__(self) -> None:
        self.attempts = 0

    async def write(self, record: Any) -> None:
        self.attempts += 1
        raise RuntimeError("log store unavailable")


class SlowSink:
    def __init__(self) -> None:
        self.attempts = 0

    async def write(self, record: Any) -> None:
        self.attempts += 1
        await asyncio.sleep(3600)


class GoogleStub:
    """``httpx.MockTransport`` handler for the token endpoint and Calendar API."""

    def __init__(self) -> None:
        self.token_status = 200
        self.token_body: Any = {
            "access_token": "at2",
            "expires_in": 3600,
            "token_type": "Bearer",
            "scope": "scope-one",
        }
        self.token_error: Exception | None = None
        self.token_requests: list[dict[str, str]] = []
        self.calendar_status = 200
        self.calendar_body: Any = {"items": []}
        self.calendar_requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "oauth2.googleapis.com":
            self.token_requests.append(dict(parse_qsl(request.content.decode())))
            if self.token_error is not None:
                raise self.token_error
            return _response(self.token_status, self.token_body)
        if request.url.host == "www.googleapis.com":
            self.calendar_requests.append(request)
            return _response(self.calendar_status, self.calendar_body)
        return httpx.Response(404, json={"error": "unexpected url"})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def _response(status_code: int, body: Any) -> httpx.Response:
    if isinstance(body, (dict, list)):
        return httpx.Response(status_code, content=json.dumps(body).encode(),
                              headers={"Content-Type": "application/json"})
    return httpx.Response(status_code, text=str(body))


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
async def database() -> AsyncIterator[None]:
    from lifedash.core.db import engine
    from lifedash.models import Base

    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.drop_all)
        await connection.run_sync(Base.metadata.create_all)
    yield


@pytest.fixture()
def session_factory(database):
    from lifedash.core.db import AsyncSessionLocal

    return AsyncSessionLocal


@pytest.fixture()
def token_store(session_factory):
    from lifedash.services.token_store import TokenStore

    return TokenStore(session_factory)


@pytest.fixture()
def google_stub() -> GoogleStub:
    return GoogleStub()


@pytest.fixture()
def log_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
def test_settings() -> Settings:
    return Settings(
        database_url=os.environ["DATABASE_URL"],
        google_client_id="client-id",
        google_client_secret="client-secret",
        google_redirect_uri="http://testserver/api/v1/integrations/google/callback",
        google_scopes=["scope-one", "scope-two"],
    )


@pytest.fixture()
async def client(database, google_stub, log_sink, test_settings) -> AsyncIterator[AsyncClient]:
    from lifedash.main import create_app

    async with google_stub.client() as http_client:
        application = create_app(test_settings, log_sink=log_sink, http_client=http_client)
        transport = ASGITransport(app=application)
        async with AsyncClient(
            transport=transport,
            base_url="http://testserver",
            headers={"X-User-Id": USER_ID},
        ) as client:
            yield client
