"""In-memory calendar provider for tests and offline demos."""

import itertools
from dataclasses import replace
from datetime import datetime

from publify.core.sync import AuthError, CalendarInfo, RemoteEvent, SyncError


class InMemoryCalendarProvider:
    """
    Implements CalendarSyncProvider against a dict of calendars.

    Set `fail_with` to an exception to make the next calls raise it, or
    `authorized = False` to reject authentication.
    """

    def __init__(
        self,
        account: str = "author@example.com",
        calendars: list[CalendarInfo] | None = None,
        events: list[RemoteEvent] | None = None,
    ):
        self.account = account
        self.authorized = True
        self.fail_with: Exception | None = None
        self.calendars = calendars or [CalendarInfo(id="primary", name="Primary", primary=True)]
        self.events: dict[str, RemoteEvent] = {e.id: e for e in events or []}
        self.upserts: list[tuple[str, RemoteEvent]] = []
        self._ids = itertools.count(1)

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def authenticate(self) -> str:
        self._check()
        if not self.authorized:
            raise AuthError("Credentials rejected")
        return self.account

    def list_calendars(self) -> list[CalendarInfo]:
        self._check()
        return [replace(c) for c in self.calendars]

    def list_events(self, calendar_ids: list[str], start: datetime, end: datetime) -> list[RemoteEvent]:
        self._check()
        return [
            replace(e)
            for e in self.events.values()
            if e.calendar_id in calendar_ids and e.start <= end and e.end >= start
        ]

    def upsert_event(self, calendar_id: str, event: RemoteEvent) -> str:
        self._check()
        if event.id and event.id not in self.events:
            raise SyncError(f"Remote event {event.id} not found")
        remote_id = event.id or f"remote-{next(self._ids)}"
        self.events[remote_id] = replace(event, id=remote_id, calendar_id=calendar_id)
        self.upserts.append((calendar_id, self.events[remote_id]))
        return remote_id

    def add_event(self, event: RemoteEvent) -> None:
        """Simulate a change made directly in the remote calendar."""
        self.events[event.id] = event
