"""Structured application logger with console and persistent sinks.

Every emitted call goes to the console (the stdlib ``logging`` hierarchy,
rendered as JSON by :class:`lifedash.core.logging.JSONLogFormatter`).
Warnings and errors are additionally written to a persistent sink such as
:class:`lifedash.services.log_store.DatabaseLogSink`.

A persistent sink failure or a write that outlasts ``sink_timeout_seconds`` is
reported on the console and never raised to the caller: logging must not
fail or stall the operation that is being logged.

The logger is built once per process by :func:`build_logger` and handed to
components explicitly; :meth:`StructuredLogger.child` gives a view bound to a
service tag that shares the sinks, the level filter and the session id.
"""
from __future__ import annotations

import asyncio
import json
import logging
import traceback
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol

from lifedash.core import context as request_context
from lifedash.core.config import Settings
from lifedash.core.logging import STDLIB_LEVELS

DEFAULT_SERVICE = "system"
CONSOLE_LOGGER_PREFIX = "lifedash"
DEFAULT_SINK_TIMEOUT_SECONDS = 5.0


class LogLevel(str, Enum):
    """Severity levels; a lower priority number is more severe."""

    ERROR = "error"
    WARN = "warn"
    INFO = "info"
    DEBUG = "debug"

    @property
    def priority(self) -> int:
        return _PRIORITIES[self]

    @property
    def stdlib_level(self) -> int:
        return STDLIB_LEVELS[self.value]

    @property
    def persisted(self) -> bool:
        return self in (LogLevel.ERROR, LogLevel.WARN)


_PRIORITIES = {
    LogLevel.ERROR: 0,
    LogLevel.WARN: 1,
    LogLevel.INFO: 2,
    LogLevel.DEBUG: 3,
}


@dataclass
class PersistentLogRecord:
    """Payload handed to a persistent sink."""

    level: str
    service: str
    message: str
    session_id: str
    error_type: str | None = None
    stack_trace: str | None = None
    error_code: str | None = None
    user_id: str | None = None
    request_context: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)


class LogSink(Protocol):
    async def write(self, record: PersistentLogRecord) -> None: ...


@dataclass
class _LoggerCore:
    min_level: LogLevel
    session_id: str
    environment: str
    version: str
    persistent_sink: LogSink | None
    sink_timeout_seconds: float = DEFAULT_SINK_TIMEOUT_SECONDS


class StructuredLogger:
    """Level-filtered logger writing to the console and a persistent sink."""

    def __init__(
        self,
        *,
        min_level: LogLevel | str = LogLevel.INFO,
        persistent_sink: LogSink | None = None,
        environment: str = "dev",
        version: str = "1.0.0",
        session_id: str | None = None,
        sink_timeout_seconds: float = DEFAULT_SINK_TIMEOUT_SECONDS,
        service: str | None = None,
        _core: _LoggerCore | None = None,
    ) -> None:
        if _core is None:
            _core = _LoggerCore(
                min_level=LogLevel(min_level),
                session_id=session_id or request_context.generate_id(),
                environment=environment,
                version=version,
                persistent_sink=persistent_sink,
                sink_timeout_seconds=sink_timeout_seconds,
            )
        self._core = _core
        self.service = service

    @property
    def session_id(self) -> str:
        return self._core.session_id

    @property
    def min_level(self) -> LogLevel:
        return self._core.min_level

    def child(self, service: str) -> StructuredLogger:
        """Return a view of this logger bound to ``service``."""
        return StructuredLogger(service=service, _core=self._core)

    def should_log(self, level: LogLevel | str) -> bool:
        return LogLevel(level).priority <= self._core.min_level.priority

    async def log(self, level: LogLevel | str, message: str, **context: Any) -> None:
        level = LogLevel(level)
        if not self.should_log(level):
            return

        service = self._resolve_service(context)
        self._write_console(level, service, message, context)

        if level.persisted and self._core.persistent_sink is not None:
            await self._write_persistent(level, service, message, context)

    async def error(self, message: str, **context: Any) -> None:
        await self.log(LogLevel.ERROR, message, **context)

    async def warn(self, message: str, **context: Any) -> None:
        await self.log(LogLevel.WARN, message, **context)

    async def info(self, message: str, **context: Any) -> None:
        await self.log(LogLevel.INFO, message, **context)

    async def debug(self, message: str, **context: Any) -> None:
        await self.log(LogLevel.DEBUG, message, **context)

    async def log_exception(
        self, exc: BaseException, message: str | None = None, **context: Any
    ) -> None:
        """Log a caught exception at error level with its traceback."""
        context.setdefault("error_name", type(exc).__name__)
        context.setdefault("error_message", str(exc))
        await self.error(message or str(exc) or type(exc).__name__, exc=exc, **context)

    def _resolve_service(self, context: dict[str, Any]) -> str:
        return self.service or context.get("service") or DEFAULT_SERVICE

    def _write_console(
        self, level: LogLevel, service: str, message: str, context: dict[str, Any]
    ) -> None:
        console = logging.getLogger(f"{CONSOLE_LOGGER_PREFIX}.{service}")
        current = request_context.current_request()
        extra = {
            "service": service,
            "session_id": self._core.session_id,
            "request_id": current.request_id,
            "user_id": current.user_id,
            "context": _jsonable({k: v for k, v in context.items() if k != "exc"}),
        }
        exc = context.get("exc")
        exc_info = exc if isinstance(exc, BaseException) else None
        console.log(level.stdlib_level, message, extra=extra, exc_info=exc_info)

    async def _write_persistent(
        self, level: LogLevel, service: str, message: str, context: dict[str, Any]
    ) -> None:
        sink = self._core.persistent_sink
        assert sink is not None
        console = logging.getLogger(f"{CONSOLE_LOGGER_PREFIX}.logger")
        try:
            record = self._build_record(level, service, message, context)
            await asyncio.wait_for(sink.write(record), timeout=self._core.sink_timeout_seconds)
        except asyncio.TimeoutError:
            console.error(
                "Timed out writing log to persistent sink",
                extra={
                    "service": service,
                    "original_message": message,
                    "timeout_seconds": self._core.sink_timeout_seconds,
                },
            )
        except Exception as exc:
            console.error(
                "Failed to write log to persistent sink",
                extra={"service": service, "original_message": message},
                exc_info=exc,
            )

    def _build_record(
        self, level: LogLevel, service: str, message: str, context: dict[str, Any]
    ) -> PersistentLogRecord:
        current = request_context.current_request()
        metadata = {key: value for key, value in context.items() if key != "exc"}
        metadata.update({"environment": self._core.environment, "version": self._core.version})
        return PersistentLogRecord(
            level=level.value,
            service=service,
            message=message,
            session_id=self._core.session_id,
            error_type=_first_text(context, "error_type"),
            stack_trace=_stack_text(context),
            error_code=_first_text(context, "code", "error_code"),
            user_id=current.user_id or _first_text(context, "user_id"),
            request_context={
                "request_id": current.request_id or request_context.generate_id(),
                "method": current.method,
                "path": current.path,
                "timestamp": datetime.now(UTC).isoformat(),
            },
            metadata=_jsonable(metadata),
        )


def build_logger(settings: Settings, persistent_sink: LogSink | None = None) -> StructuredLogger:
    """Construct the process-wide logger from settings."""
    return StructuredLogger(
        min_level=settings.log_level,
        persistent_sink=persistent_sink if settings.enable_db_logging else None,
        environment=settings.app_env,
        version=settings.version,
        sink_timeout_seconds=settings.store_timeout_seconds,
    )


def _first_text(context: dict[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = context.get(key)
        if value is not None and value != "":
            return str(value)
    return None


def _stack_text(context: dict[str, Any]) -> str | None:
    explicit = _first_text(context, "stack", "stack_trace")
    if explicit:
        return explicit
    exc = context.get("exc")
    if isinstance(exc, BaseException):
        return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return None


def _jsonable(value: dict[str, Any]) -> dict[str, Any]:
    return json.loads(json.dumps(value, default=str))
