"""Client error report endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from lifedash.api.deps import get_current_user_id, get_logger
from lifedash.api.v1.common import data_response
from lifedash.core.db import get_session
from lifedash.core.structured_logger import StructuredLogger
from lifedash.schemas import ClientLogReport, LogEntryRead
from lifedash.services.log_store import list_recent_entries

router = APIRouter(prefix="/logs", tags=["logs"])

RESERVED_CONTEXT_KEYS = frozenset({"self", "level", "message", "exc", "service", "user_id"})


@router.post("", status_code=status.HTTP_202_ACCEPTED)
async def report_client_error(
    payload: ClientLogReport,
    _: str = Depends(get_current_user_id),
    logger: StructuredLogger = Depends(get_logger),
) -> dict[str, dict[str, bool]]:
    """Record an error or warning reported by the browser."""

    context = {
        key: value
        for key, value in payload.metadata.items()
        if key not in RESERVED_CONTEXT_KEYS
    }
    context.update(
        error_type=payload.error_type or "CLIENT_ERROR",
        code=payload.code,
        stack=payload.stack,
        origin="client",
    )
    await logger.child(payload.service).log(payload.level, payload.message, **context)
    return data_response({"accepted": True})


@router.get("")
async def list_logs(
    limit: int = Query(50, ge=1, le=200),
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> dict[str, list[LogEntryRead]]:
    """List the newest warnings and errors recorded for the current user."""

    entries = await list_recent_entries(session, user_id, limit=limit)
    return data_response([LogEntryRead.model_validate(entry) for entry in entries])
