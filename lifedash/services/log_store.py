"""Persistent sink writing structured log records to the database."""
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lifedash.core.structured_logger import PersistentLogRecord
from lifedash.models import LogEntry


class DatabaseLogSink:
    """Append log records to the ``error_logs`` table.

    Each write uses its own session so that a failing insert cannot disturb
    the transaction of the operation being logged.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def write(self, record: PersistentLogRecord) -> None:
        async with self._session_factory() as session:
            session.add(
                LogEntry(
                    level=record.level,
                    service=record.service,
                    error_type=record.error_type,
                    message=record.message,
                    stack_trace=record.stack_trace,
                    error_code=record.error_code,
                    user_id=record.user_id,
                    session_id=record.session_id,
                    request_context=record.request_context,
                    metadata_=record.metadata,
                )
            )
            await session.commit()


async def list_recent_entries(
    session: AsyncSession, user_id: str, *, limit: int = 50
) -> list[LogEntry]:
    """Return the newest log entries recorded for ``user_id``."""

    stmt = (
        select(LogEntry)
        .where(LogEntry.user_id == user_id)
        .order_by(LogEntry.created_at.desc(), LogEntry.id.desc())
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars())
