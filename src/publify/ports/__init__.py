"""Ports - interfaces/protocols for external dependencies."""

from .book_task_source import BookTaskSource
from .calendar_provider import CalendarSyncProvider
from .id_provider import IdProvider
from .notifier import Notifier
from .preference_store import PreferenceStore

__all__ = [
    "BookTaskSource",
    "CalendarSyncProvider",
    "IdProvider",
    "Notifier",
    "PreferenceStore",
]
