"""Shared fixtures."""

from datetime import datetime, timedelta

import pytest

from publify.core.events import Event, EventKind, EventOrigin, Reminder
from publify.core.ids import SequentialIdProvider
from publify.repository import EventRepository


class FakeClock:
    """Settable clock for injecting into components."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def now():
    # A Monday
    return datetime(2024, 6, 3, 9, 0)


@pytest.fixture
def clock(now):
    return FakeClock(now)


@pytest.fixture
def ids():
    return SequentialIdProvider()


@pytest.fixture
def repo(clock, ids):
    return EventRepository(id_provider=ids, clock=clock)


@pytest.fixture
def make_event(now):
    """Factory for creating events."""

    def _make(
        event_id: str = "evt-x",
        title: str = "Event",
        start: datetime | None = None,
        hours: float = 1,
        kind: EventKind = EventKind.USER,
        origin: EventOrigin = EventOrigin.LOCAL,
        **kwargs,
    ) -> Event:
        start = start or now
        return Event(
            id=event_id,
            kind=kind,
            title=title,
            start_at=start,
            end_at=start + timedelta(hours=hours),
            origin=origin,
            created_at=now,
            updated_at=now,
            **kwargs,
        )

    return _make


@pytest.fixture
def reminder():
    def _make(reminder_id: str = "r1", offset: int = 30, enabled: bool = True) -> Reminder:
        return Reminder(reminder_id, offset, enabled=enabled)

    return _make
