from __future__ import annotations

import asyncio
import json
import logging

import pytest
from sqlalchemy import select

from lifedash.core import context as request_context
from lifedash.core.config import Settings
from lifedash.core.logging import JSONLogFormatter
from lifedash.core.structured_logger import LogLevel, StructuredLogger, build_logger
from lifedash.models import LogEntry
from lifedash.services.log_store import DatabaseLogSink

from conftest import USER_ID, FailingSink, RecordingSink, SlowSink


@pytest.mark.anyio("asyncio")
async def test_level_filter_drops_less_severe_messages(caplog) -> None:
    caplog.set_level(logging.DEBUG)
    sink = RecordingSink()
    logger = StructuredLogger(min_level="warn", persistent_sink=sink)

    await logger.debug("debug message")
    await logger.info("info message")
    await logger.warn("warn message")
    await logger.error("error message")

    messages = [record.getMessage() for record in caplog.records]
    assert messages == ["warn message", "error message"]
    assert [record.level for record in sink.records] == ["warn", "error"]


@pytest.mark.anyio("asyncio")
async def test_info_and_debug_stay_on_console(caplog) -> None:
    caplog.set_level(logging.DEBUG)
    sink = RecordingSink()
    logger = StructuredLogger(min_level=LogLevel.DEBUG, persistent_sink=sink)

    await logger.debug("debug message")
    await logger.info("info message", attempt=1)

    assert [record.levelno for record in caplog.records] == [logging.DEBUG, logging.INFO]
    assert caplog.records[1].context == {"attempt": 1}
    assert sink.records == []


@pytest.mark.anyio("asyncio")
async def test_persistent_record_fields() -> None:
    sink = RecordingSink()
    logger = StructuredLogger(
        persistent_sink=sink, environment="test", version="9.9.9", session_id="session-1"
    )

    await logger.child("google-token").error(
        "Refresh failed",
        user_id=USER_ID,
        error_type="PROVIDER_REJECTED",
        code="invalid_grant",
        stack="line 1\nline 2",
    )

    record = sink.records[0]
    assert record.level == "error"
    assert record.service == "google-token"
    assert record.session_id == "session-1"
    assert record.error_type == "PROVIDER_REJECTED"
    assert record.error_code == "invalid_grant"
    assert record.stack_trace == "line 1\nline 2"
    assert record.user_id == USER_ID
    assert record.request_context["request_id"]
    assert record.request_context["timestamp"]
    assert record.metadata["environment"] == "test"
    assert record.metadata["version"] == "9.9.9"


@pytest.mark.anyio("asyncio")
async def test_request_context_is_attached() -> None:
    sink = RecordingSink()
    logger = StructuredLogger(persistent_sink=sink)

    async def handle_request() -> str:
        request_id = request_context.begin_request("GET", "/api/v1/calendar/events", "req-42")
        request_context.set_user_id("user-from-request")
        await logger.warn("Calendar slow")
        return request_id

    # Run in its own task so the context variables do not outlive the test.
    request_id = await asyncio.create_task(handle_request())

    record = sink.records[0]
    assert request_id == "req-42"
    assert record.user_id == "user-from-request"
    assert record.request_context["request_id"] == "req-42"
    assert record.request_context["method"] == "GET"
    assert record.request_context["path"] == "/api/v1/calendar/events"


@pytest.mark.anyio("asyncio")
async def test_log_exception_captures_stack() -> None:
    sink = RecordingSink()
    logger = StructuredLogger(persistent_sink=sink)

    try:
        raise RuntimeError("calendar exploded")
    except RuntimeError as exc:
        await logger.log_exception(exc)

    record = sink.records[0]
    assert record.message == "calendar exploded"
    assert "RuntimeError: calendar exploded" in record.stack_trace
    assert record.metadata["error_name"] == "RuntimeError"


@pytest.mark.anyio("asyncio")
async def test_sink_failure_is_reported_on_console_only(caplog) -> None:
    caplog.set_level(logging.INFO)
    sink = FailingSink()
    logger = StructuredLogger(persistent_sink=sink)

    await logger.error("Something broke")

    assert sink.attempts == 1
    failures = [
        record for record in caplog.records if record.name == "lifedash.logger"
    ]
    assert len(failures) == 1
    assert failures[0].getMessage() == "Failed to write log to persistent sink"
    assert failures[0].original_message == "Something broke"


@pytest.mark.anyio("asyncio")
async def test_slow_sink_write_is_abandoned(caplog) -> None:
    caplog.set_level(logging.INFO)
    sink = SlowSink()
    logger = StructuredLogger(persistent_sink=sink, sink_timeout_seconds=0.05)

    await asyncio.wait_for(logger.warn("Calendar slow"), timeout=2)

    assert sink.attempts == 1
    timeouts = [record for record in caplog.records if record.name == "lifedash.logger"]
    assert [record.getMessage() for record in timeouts] == [
        "Timed out writing log to persistent sink"
    ]
    assert timeouts[0].timeout_seconds == 0.05


@pytest.mark.anyio("asyncio")
async def test_children_share_session_and_sink() -> None:
    sink = RecordingSink()
    logger = StructuredLogger(persistent_sink=sink)
    first = logger.child("google-token")
    second = first.child("google-calendar")

    await first.warn("one")
    await second.warn("two")

    assert first.session_id == second.session_id == logger.session_id
    assert second.min_level is logger.min_level
    assert [record.service for record in sink.records] == ["google-token", "google-calendar"]


@pytest.mark.anyio("asyncio")
async def test_service_falls_back_to_context_then_default() -> None:
    sink = RecordingSink()
    logger = StructuredLogger(persistent_sink=sink)

    await logger.warn("tagged", service="client")
    await logger.warn("untagged")

    assert [record.service for record in sink.records] == ["client", "system"]


def test_build_logger_honours_settings() -> None:
    sink = RecordingSink()

    enabled = build_logger(Settings(log_level="WARNING", store_timeout_seconds=2.5), sink)
    disabled = build_logger(Settings(enable_db_logging="false"), sink)
    still_enabled = build_logger(Settings(enable_db_logging="0"), sink)

    assert enabled.min_level is LogLevel.WARN
    assert enabled._core.sink_timeout_seconds == 2.5
    assert enabled._core.persistent_sink is sink
    assert disabled._core.persistent_sink is None
    assert still_enabled._core.persistent_sink is sink


def test_invalid_log_level_is_rejected() -> None:
    with pytest.raises(ValueError):
        Settings(log_level="verbose")


def test_json_formatter_includes_extra_fields() -> None:
    formatter = JSONLogFormatter("test")
    record = logging.LogRecord("lifedash.http", logging.INFO, __file__, 1, "hello", None, None)
    record.service = "http"
    record.context = {"status": 200}

    payload = json.loads(formatter.format(record))

    assert payload["message"] == "hello"
    assert payload["level"] == "INFO"
    assert payload["environment"] == "test"
    assert payload["service"] == "http"
    assert payload["context"] == {"status": 200}


@pytest.mark.anyio("asyncio")
async def test_database_sink_appends_entries(session_factory) -> None:
    logger = StructuredLogger(persistent_sink=DatabaseLogSink(session_factory))

    await logger.child("google-token").error(
        "Refresh failed", user_id=USER_ID, error_type="PROVIDER_REJECTED", attempt=1
    )

    async with session_factory() as session:
        entries = list((await session.execute(select(LogEntry))).scalars())

    assert len(entries) == 1
    entry = entries[0]
    assert entry.service == "google-token"
    assert entry.user_id == USER_ID
    assert entry.error_type == "PROVIDER_REJECTED"
    assert entry.metadata_["attempt"] == 1
    assert entry.request_context["request_id"]
