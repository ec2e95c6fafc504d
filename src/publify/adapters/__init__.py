"""Adapters - I/O implementations of ports."""

from .file_preferences import FilePreferenceStore
from .google_calendar import GoogleCalendarProvider
from .kanban_api import InMemoryBookTaskSource, KanbanApiAdapter
from .memory_calendar import InMemoryCalendarProvider
from .notifiers import LoggingNotifier, TelegramNotifier

__all__ = [
    "FilePreferenceStore",
    "GoogleCalendarProvider",
    "InMemoryBookTaskSource",
    "InMemoryCalendarProvider",
    "KanbanApiAdapter",
    "LoggingNotifier",
    "TelegramNotifier",
]
