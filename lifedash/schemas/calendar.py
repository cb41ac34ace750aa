"""Pydantic schemas for calendar resources."""
from __future__ import annotations

from pydantic import BaseModel


class CalendarEvent(BaseModel):
    id: str
    summary: str
    description: str | None = None
    location: str | None = None
    start: str | None = None
    end: str | None = None
    all_day: bool = False
    html_link: str | None = None
    status: str | None = None
