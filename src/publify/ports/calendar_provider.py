"""External calendar provider interface."""

from datetime import datetime
from typing import Protocol

from publify.core.sync import CalendarInfo, RemoteEvent


class CalendarSyncProvider(Protocol):
    """Interface the sync engine needs from any external calendar backend.

    Implementations raise AuthError when credentials are rejected and
    SyncError for any other provider failure.
    """

    def authenticate(self) -> str:
        """Authenticate and return the account identifier."""
        ...

    def list_calendars(self) -> list[CalendarInfo]:
        """List calendars visible to the account."""
        ...

    def list_events(self, calendar_ids: list[str], start: datetime, end: datetime) -> list[RemoteEvent]:
        """List events of the given calendars overlapping [start, end]."""
        ...

    def upsert_event(self, calendar_id: str, event: RemoteEvent) -> str:
        """Create the event (empty id) or update it. Returns the remote id."""
        ...
