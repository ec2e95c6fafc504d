"""External calendar sync domain types and mapping - no I/O dependencies."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

from .events import Event, EventKind, EventOrigin, EventPriority, EventStatus


class SyncError(Exception):
    """Raised when the external calendar provider fails."""

    pass


class AuthError(SyncError):
    """Raised when the provider rejects authentication."""

    pass


class SyncInProgressError(SyncError):
    """Raised when a sync call starts while another one is running."""

    pass


class SyncAction(Enum):
    IMPORT = "import"
    EXPORT = "export"
    SYNC = "sync"


class SyncStatus(Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    ERROR = "error"


class ConflictResolution(Enum):
    KEEP_LOCAL = "keep_local"
    KEEP_GOOGLE = "keep_google"


@dataclass
class CalendarInfo:
    """A remote calendar the account can read or write."""

    id: str
    name: str
    color: str = ""
    primary: bool = False
    selected: bool = False


@dataclass
class Connection:
    """State of the link to the external calendar account."""

    is_connected: bool = False
    account: str | None = None
    last_sync_at: datetime | None = None
    sync_enabled: bool = False
    available_calendars: list[CalendarInfo] = field(default_factory=list)

    @property
    def selected_calendar_ids(self) -> list[str]:
        return [c.id for c in self.available_calendars if c.selected]

    @property
    def primary_calendar_id(self) -> str | None:
        for cal in self.available_calendars:
            if cal.primary:
                return cal.id
        return None

    def copy(self) -> "Connection":
        return replace(
            self,
            available_calendars=[replace(c) for c in self.available_calendars],
        )


@dataclass(frozen=True)
class SyncLogEntry:
    """Immutable record of one import, export or sync run."""

    id: str
    action: SyncAction
    status: SyncStatus
    timestamp: datetime
    events_processed: int = 0
    events_created: int = 0
    events_updated: int = 0
    events_failed: int = 0
    errors: tuple[str, ...] = ()


@dataclass
class RemoteEvent:
    """
    Provider-neutral shape of an event in the external calendar.

    Times are naive local datetimes with inclusive ends; adapters convert from
    their provider's representation.
    """

    id: str
    calendar_id: str
    title: str
    start: datetime
    end: datetime
    all_day: bool = False
    description: str = ""
    location: str = ""
    updated: datetime | None = None


def external_event_id(external_id: str) -> str:
    return f"external-{external_id}"


def remote_to_event(remote: RemoteEvent, synced_at: datetime) -> Event:
    """Map a remote event onto the local Event shape."""
    end = remote.end if remote.end >= remote.start else remote.start
    return Event(
        id=external_event_id(remote.id),
        kind=EventKind.USER,
        title=remote.title or "Untitled",
        start_at=remote.start,
        end_at=end,
        origin=EventOrigin.EXTERNAL_SYNC,
        all_day=remote.all_day,
        status=EventStatus.PENDING,
        priority=EventPriority.MEDIUM,
        description=remote.description,
        external_id=remote.id,
        external_calendar_id=remote.calendar_id,
        synced_at=synced_at,
        created_at=synced_at,
        updated_at=remote.updated or synced_at,
    )


def event_to_remote(event: Event, calendar_id: str, external_id: str | None = None) -> RemoteEvent:
    """Map a local event onto the provider-neutral remote shape."""
    return RemoteEvent(
        id=external_id or event.external_id or "",
        calendar_id=calendar_id,
        title=event.title,
        start=event.start_at,
        end=event.end_at,
        all_day=event.all_day,
        description=event.description,
        updated=event.updated_at,
    )


# Fields an import overwrites on an already-known external event
SYNCED_FIELDS = (
    "title",
    "description",
    "start_at",
    "end_at",
    "all_day",
    "external_calendar_id",
)
