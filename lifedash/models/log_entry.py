"""Append-only application log records."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from lifedash.models.base import Base


class LogEntry(Base):
    """A warning or error recorded by the structured logger."""

    __tablename__ = "error_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    level: Mapped[str] = mapped_column(String(16), index=True, nullable=False)
    service: Mapped[str] = mapped_column(String(100), index=True, nullable=False)
    error_type: Mapped[str | None] = mapped_column(String(100))
    message: Mapped[str] = mapped_column(Text(), nullable=False)
    stack_trace: Mapped[str | None] = mapped_column(Text())
    error_code: Mapped[str | None] = mapped_column(String(100))
    user_id: Mapped[str | None] = mapped_column(String(255), index=True)
    session_id: Mapped[str] = mapped_column(String(64), nullable=False)
    request_context: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    # "metadata" is reserved on declarative classes.
    metadata_: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
