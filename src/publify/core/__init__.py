"""Functional core - pure business logic with no I/O."""

from .events import (
    ClampWarning,
    ChecklistItem,
    Event,
    EventFormData,
    EventKind,
    EventOrigin,
    EventPriority,
    EventStatus,
    Reminder,
    ReminderChannel,
    Tag,
    ValidationError,
)
from .filters import CalendarFilters, QuickFilter, filter_events, sort_events
from .generator import generate_for_year, generate_for_years
from .book_tasks import BookTask, book_tasks_to_events
from .reminders import UpcomingReminder, due_reminders, upcoming_reminders
from .sync import (
    AuthError,
    CalendarInfo,
    ConflictResolution,
    Connection,
    RemoteEvent,
    SyncAction,
    SyncError,
    SyncLogEntry,
    SyncStatus,
)
from .templates import SYSTEM_EVENT_TEMPLATES, FixedOffsetFromDate, NthWeekdayOfMonth, SystemEventTemplate

__all__ = [
    # Events
    "ClampWarning",
    "ChecklistItem",
    "Event",
    "EventFormData",
    "EventKind",
    "EventOrigin",
    "EventPriority",
    "EventStatus",
    "Reminder",
    "ReminderChannel",
    "Tag",
    "ValidationError",
    # Filters
    "CalendarFilters",
    "QuickFilter",
    "filter_events",
    "sort_events",
    # Generator
    "generate_for_year",
    "generate_for_years",
    "SYSTEM_EVENT_TEMPLATES",
    "FixedOffsetFromDate",
    "NthWeekdayOfMonth",
    "SystemEventTemplate",
    # Book tasks
    "BookTask",
    "book_tasks_to_events",
    # Reminders
    "UpcomingReminder",
    "due_reminders",
    "upcoming_reminders",
    # Sync
    "AuthError",
    "CalendarInfo",
    "ConflictResolution",
    "Connection",
    "RemoteEvent",
    "SyncAction",
    "SyncError",
    "SyncLogEntry",
    "SyncStatus",
]
