"""Pydantic schemas for the life dashboard API."""

from .calendar import CalendarEvent
from .grocery import GroceryItemCreate, GroceryItemRead, GroceryItemUpdate
from .logs import ClientLogReport, LogEntryRead
from .todo import (
    CategoryCreate,
    CategoryRead,
    CategoryUpdate,
    TodoCreate,
    TodoRead,
    TodoUpdate,
)

__all__ = [
    "CalendarEvent",
    "CategoryCreate",
    "CategoryRead",
    "CategoryUpdate",
    "ClientLogReport",
    "GroceryItemCreate",
    "GroceryItemRead",
    "GroceryItemUpdate",
    "LogEntryRead",
    "TodoCreate",
    "TodoRead",
    "TodoUpdate",
]
