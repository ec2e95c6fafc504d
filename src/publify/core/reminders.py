"""Pure reminder timing logic - no I/O dependencies."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable

from .events import Event, Reminder


@dataclass(frozen=True)
class UpcomingReminder:
    """A reminder with its computed fire time."""

    event: Event
    reminder: Reminder
    trigger_time: datetime


def trigger_time(event: Event, reminder: Reminder) -> datetime:
    return event.start_at - timedelta(minutes=reminder.offset_minutes)


def due_reminders(
    events: Iterable[Event],
    now: datetime,
    window_minutes: int = 1,
    triggered: set[tuple[str, str]] | frozenset[tuple[str, str]] = frozenset(),
) -> list[UpcomingReminder]:
    """
    Enabled reminders whose fire time lies within ±window of `now`.

    Pairs already in `triggered` are excluded. Pure function - no I/O.
    """
    window = timedelta(minutes=window_minutes)
    due = []
    for event in events:
        for reminder in event.reminders:
            if not reminder.enabled:
                continue
            if (event.id, reminder.id) in triggered:
                continue
            fire_at = trigger_time(event, reminder)
            if abs(fire_at - now) <= window:
                due.append(UpcomingReminder(event, reminder, fire_at))
    return due


def upcoming_reminders(
    events: Iterable[Event],
    now: datetime,
    within_minutes: int = 60,
) -> list[UpcomingReminder]:
    """
    Enabled reminders firing in (now, now + within], soonest first.

    Pure function - no I/O.
    """
    horizon = now + timedelta(minutes=within_minutes)
    results = []
    for event in events:
        for reminder in event.reminders:
            if not reminder.enabled:
                continue
            fire_at = trigger_time(event, reminder)
            if now < fire_at <= horizon:
                results.append(UpcomingReminder(event, reminder, fire_at))
    return sorted(results, key=lambda r: r.trigger_time)


def format_reminder_message(event: Event, reminder: Reminder) -> str:
    """Human-readable notification text for a reminder."""
    if event.all_day:
        when = event.start_at.strftime("%A, %B %d")
    else:
        when = event.start_at.strftime("%A, %B %d at %H:%M")
    return f"Reminder: {event.title} - {when}"
