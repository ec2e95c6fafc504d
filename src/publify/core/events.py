"""Pure event domain model - no I/O dependencies."""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum

END_OF_DAY = time(23, 59, 59)

MARKETPLACES = ("ES", "US", "DE", "FR", "IT", "UK", "CA", "AU", "MX", "BR", "JP")


class ValidationError(ValueError):
    """Raised when event input is rejected before any state change."""

    pass


class ClampWarning(UserWarning):
    """Issued when an end time earlier than the start was clamped."""

    pass


class EventKind(Enum):
    SYSTEM = "system"
    USER = "user"


class EventOrigin(Enum):
    """Where an event came from. Drives filtering and editability."""

    LOCAL = "local"
    EXTERNAL_SYNC = "external_sync"
    BOOK_TASK = "book_task"


class EventStatus(Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    DONE = "done"
    CANCELLED = "cancelled"


class EventPriority(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        """Position in the total order low < medium < high < urgent."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    EventPriority.LOW: 0,
    EventPriority.MEDIUM: 1,
    EventPriority.HIGH: 2,
    EventPriority.URGENT: 3,
}


class ReminderChannel(Enum):
    IN_APP = "in_app"
    EMAIL = "email"
    PUSH = "push"


@dataclass(frozen=True)
class Tag:
    id: str
    name: str
    color: str = ""


@dataclass(frozen=True)
class ChecklistItem:
    id: str
    text: str
    done: bool = False
    section: str | None = None


@dataclass(frozen=True)
class Reminder:
    """Fire `offset_minutes` before the event starts."""

    id: str
    offset_minutes: int
    channel: ReminderChannel = ReminderChannel.IN_APP
    enabled: bool = True


DEFAULT_TAGS = (
    Tag("launch", "Launch", "hsl(24 94% 59%)"),
    Tag("promo", "Promotion", "hsl(217 91% 60%)"),
    Tag("marketing", "Marketing", "hsl(142 71% 45%)"),
    Tag("content", "Content", "hsl(262 83% 58%)"),
    Tag("deadline", "Deadline", "hsl(0 84% 60%)"),
    Tag("meeting", "Meeting", "hsl(38 92% 50%)"),
)

# (label, offset in minutes)
REMINDER_PRESETS = (
    ("10 minutes before", 10),
    ("30 minutes before", 30),
    ("1 hour before", 60),
    ("2 hours before", 120),
    ("1 day before", 1440),
    ("2 days before", 2880),
    ("1 week before", 10080),
)


@dataclass
class Event:
    """A calendar entry from any of the unified sources."""

    id: str
    kind: EventKind
    title: str
    start_at: datetime
    end_at: datetime
    origin: EventOrigin = EventOrigin.LOCAL
    all_day: bool = False
    status: EventStatus = EventStatus.PENDING
    priority: EventPriority = EventPriority.MEDIUM
    description: str = ""
    tags: list[Tag] = field(default_factory=list)
    book_ids: list[str] = field(default_factory=list)
    marketplaces: list[str] = field(default_factory=list)
    checklist_items: list[ChecklistItem] = field(default_factory=list)
    reminders: list[Reminder] = field(default_factory=list)
    assigned_to: str | None = None
    # External calendar linkage (origin=external_sync only)
    external_id: str | None = None
    external_calendar_id: str | None = None
    synced_at: datetime | None = None
    # System template linkage
    system_key: str | None = None
    campaign_type: str | None = None
    campaign_window_days: int | None = None
    recommended_niches: list[str] = field(default_factory=list)
    # Book-task provenance, used for deep links only
    book_id: str | None = None
    task_id: str | None = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def is_editable(self) -> bool:
        """Only locally authored user events accept update/move/delete."""
        return self.kind is EventKind.USER and self.origin is EventOrigin.LOCAL

    def duration(self) -> timedelta:
        return self.end_at - self.start_at

    def format_time(self) -> str:
        """Format the event time for display."""
        if self.all_day:
            return "All day"
        return self.start_at.strftime("%H:%M")

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """Check whether this event touches the inclusive range [start, end].

        Event bounds are widened to whole days, so an event on a given date
        always matches a range covering any part of that date.
        """
        event_start = start_of_day(self.start_at)
        event_end = end_of_day(self.end_at)
        return (
            start <= event_start <= end
            or start <= event_end <= end
            or (event_start <= start and event_end >= end)
        )


@dataclass
class EventFormData:
    """Input for creating a user event."""

    title: str
    start_at: datetime | None
    end_at: datetime | None = None
    all_day: bool = False
    status: EventStatus = EventStatus.PENDING
    priority: EventPriority = EventPriority.MEDIUM
    description: str = ""
    tags: list[Tag] = field(default_factory=list)
    book_ids: list[str] = field(default_factory=list)
    marketplaces: list[str] = field(default_factory=list)
    checklist_items: list[ChecklistItem] = field(default_factory=list)
    reminders: list[Reminder] = field(default_factory=list)
    assigned_to: str | None = None


def start_of_day(value: datetime | date) -> datetime:
    d = value.date() if isinstance(value, datetime) else value
    return datetime.combine(d, time.min)


def end_of_day(value: datetime | date) -> datetime:
    d = value.date() if isinstance(value, datetime) else value
    return datetime.combine(d, END_OF_DAY)


def clamp_end(start_at: datetime, end_at: datetime | None) -> tuple[datetime, bool]:
    """
    Enforce end >= start.

    Returns (end, clamped). A missing end defaults to start without counting
    as a clamp.
    """
    if end_at is None:
        return start_at, False
    if end_at < start_at:
        return start_at, True
    return end_at, False


def unique_tags(tags: list[Tag]) -> list[Tag]:
    """Drop tags with a repeated id, keeping the first occurrence."""
    seen: set[str] = set()
    result = []
    for tag in tags:
        if tag.id in seen:
            continue
        seen.add(tag.id)
        result.append(tag)
    return result
