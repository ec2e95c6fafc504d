"""Event filtering, range helpers and list sorting - no I/O dependencies."""

import calendar
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from enum import Enum

from .events import (
    Event,
    EventKind,
    EventOrigin,
    EventPriority,
    EventStatus,
    end_of_day,
    start_of_day,
)


@dataclass
class CalendarFilters:
    """
    Composable AND-predicate over events.

    Every axis is optional: an empty list (or None date range) imposes no
    constraint. Values inside one axis are OR-ed.
    """

    show_system_events: bool = True
    show_user_events: bool = True
    show_external_events: bool = True
    show_book_task_events: bool = True
    search_query: str = ""
    tags: list[str] = field(default_factory=list)
    statuses: list[EventStatus] = field(default_factory=list)
    priorities: list[EventPriority] = field(default_factory=list)
    marketplaces: list[str] = field(default_factory=list)
    book_ids: list[str] = field(default_factory=list)
    origins: list[EventOrigin] = field(default_factory=list)
    assigned_to: list[str] = field(default_factory=list)
    date_range: tuple[date, date] | None = None

    def to_dict(self) -> dict:
        """Serialize to plain JSON-compatible values."""
        return {
            "show_system_events": self.show_system_events,
            "show_user_events": self.show_user_events,
            "show_external_events": self.show_external_events,
            "show_book_task_events": self.show_book_task_events,
            "search_query": self.search_query,
            "tags": list(self.tags),
            "statuses": [s.value for s in self.statuses],
            "priorities": [p.value for p in self.priorities],
            "marketplaces": list(self.marketplaces),
            "book_ids": list(self.book_ids),
            "origins": [o.value for o in self.origins],
            "assigned_to": list(self.assigned_to),
            "date_range": (
                [self.date_range[0].isoformat(), self.date_range[1].isoformat()]
                if self.date_range
                else None
            ),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CalendarFilters":
        """Build filters from `to_dict` output. Missing keys keep defaults."""
        date_range = None
        if data.get("date_range"):
            start, end = data["date_range"]
            date_range = (date.fromisoformat(start), date.fromisoformat(end))
        return cls(
            show_system_events=data.get("show_system_events", True),
            show_user_events=data.get("show_user_events", True),
            show_external_events=data.get("show_external_events", True),
            show_book_task_events=data.get("show_book_task_events", True),
            search_query=data.get("search_query", ""),
            tags=list(data.get("tags", [])),
            statuses=[EventStatus(s) for s in data.get("statuses", [])],
            priorities=[EventPriority(p) for p in data.get("priorities", [])],
            marketplaces=list(data.get("marketplaces", [])),
            book_ids=list(data.get("book_ids", [])),
            origins=[EventOrigin(o) for o in data.get("origins", [])],
            assigned_to=list(data.get("assigned_to", [])),
            date_range=date_range,
        )


def _source_visible(event: Event, filters: CalendarFilters) -> bool:
    if event.kind is EventKind.SYSTEM:
        return filters.show_system_events
    if event.origin is EventOrigin.EXTERNAL_SYNC:
        return filters.show_external_events
    if event.origin is EventOrigin.BOOK_TASK:
        return filters.show_book_task_events
    return filters.show_user_events


def _matches_search(event: Event, query: str) -> bool:
    query = query.lower()
    return (
        query in event.title.lower()
        or query in event.description.lower()
        or any(query in t.name.lower() for t in event.tags)
    )


def matches_filters(event: Event, filters: CalendarFilters) -> bool:
    """Check a single event against every filter axis."""
    if not _source_visible(event, filters):
        return False

    if filters.search_query.strip() and not _matches_search(event, filters.search_query.strip()):
        return False

    if filters.tags and not {t.id for t in event.tags} & set(filters.tags):
        return False

    if filters.statuses and event.status not in filters.statuses:
        return False

    if filters.priorities and event.priority not in filters.priorities:
        return False

    if filters.marketplaces and not set(event.marketplaces) & set(filters.marketplaces):
        return False

    if filters.book_ids and not set(event.book_ids) & set(filters.book_ids):
        return False

    if filters.origins and event.origin not in filters.origins:
        return False

    if filters.assigned_to and event.assigned_to not in filters.assigned_to:
        return False

    if filters.date_range:
        range_start, range_end = filters.date_range
        if not event.overlaps(start_of_day(range_start), end_of_day(range_end)):
            return False

    return True


def filter_events(events: list[Event], filters: CalendarFilters | None) -> list[Event]:
    """
    Filter events, preserving input order.

    Pure function - no I/O.
    """
    if filters is None:
        return list(events)
    return [e for e in events if matches_filters(e, filters)]


def events_overlapping(events: list[Event], start: datetime, end: datetime) -> list[Event]:
    """Events touching the inclusive range [start, end]."""
    return [e for e in events if e.overlaps(start, end)]


def week_bounds(day: date) -> tuple[datetime, datetime]:
    """Monday 00:00 through Sunday 23:59:59 of the week containing `day`."""
    monday = day - timedelta(days=day.weekday())
    return start_of_day(monday), end_of_day(monday + timedelta(days=6))


def month_bounds(day: date) -> tuple[datetime, datetime]:
    last = calendar.monthrange(day.year, day.month)[1]
    return start_of_day(day.replace(day=1)), end_of_day(day.replace(day=last))


class QuickFilter(Enum):
    SYSTEM = "system"
    USER = "user"
    HIGH_PRIORITY = "high_priority"
    THIS_WEEK = "this_week"


def apply_quick_filter(
    filters: CalendarFilters,
    quick: QuickFilter,
    as_of: date | None = None,
) -> CalendarFilters:
    """Return a copy of `filters` with a quick filter chip switched on."""
    match quick:
        case QuickFilter.SYSTEM:
            return replace(filters, show_system_events=True, show_user_events=False)
        case QuickFilter.USER:
            return replace(filters, show_system_events=False, show_user_events=True)
        case QuickFilter.HIGH_PRIORITY:
            return replace(filters, priorities=[EventPriority.HIGH, EventPriority.URGENT])
        case QuickFilter.THIS_WEEK:
            start, end = week_bounds(as_of or date.today())
            return replace(filters, date_range=(start.date(), end.date()))
    return filters


def remove_quick_filter(filters: CalendarFilters, quick: QuickFilter) -> CalendarFilters:
    """Return a copy of `filters` with a quick filter chip switched off."""
    match quick:
        case QuickFilter.SYSTEM:
            return replace(filters, show_user_events=True)
        case QuickFilter.USER:
            return replace(filters, show_system_events=True)
        case QuickFilter.HIGH_PRIORITY:
            return replace(filters, priorities=[])
        case QuickFilter.THIS_WEEK:
            return replace(filters, date_range=None)
    return filters


def has_active_filters(filters: CalendarFilters) -> bool:
    """True when the filters hide anything compared to the defaults."""
    return filters != CalendarFilters()


_SORT_KEYS = {
    "start_at": lambda e: e.start_at,
    "end_at": lambda e: e.end_at,
    "title": lambda e: e.title.lower(),
    "status": lambda e: e.status.value,
    # Urgent first when ascending
    "priority": lambda e: -e.priority.rank,
    "kind": lambda e: e.kind.value,
    "origin": lambda e: e.origin.value,
}


def sort_events(events: list[Event], column: str = "start_at", descending: bool = False) -> list[Event]:
    """
    Stable sort for list views.

    Raises ValueError for an unknown column.
    """
    if column not in _SORT_KEYS:
        raise ValueError(f"Cannot sort by {column!r}")
    return sorted(events, key=_SORT_KEYS[column], reverse=descending)


def sort_events_by_start(events: list[Event]) -> list[Event]:
    """Sort events by start time, ties keep input order."""
    return sorted(events, key=lambda e: e.start_at)
