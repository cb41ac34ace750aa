"""Database models package for the life dashboard."""

from .base import Base
from .google import GoogleToken
from .grocery import GroceryItem
from .log_entry import LogEntry
from .todo import Category, Todo

__all__ = [
    "Base",
    "Category",
    "GoogleToken",
    "GroceryItem",
    "LogEntry",
    "Todo",
]
