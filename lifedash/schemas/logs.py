"""Pydantic schemas for client error reports and stored log entries."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ClientLogReport(BaseModel):
    level: Literal["error", "warn"] = "error"
    message: str = Field(min_length=1, max_length=2000)
    service: str = Field(default="client", min_length=1, max_length=100)
    error_type: str | None = Field(default=None, max_length=100)
    code: str | None = Field(default=None, max_length=100)
    stack: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class LogEntryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    level: str
    service: str
    message: str
    error_type: str | None = None
    error_code: str | None = None
    session_id: str
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="metadata_")
    created_at: datetime
