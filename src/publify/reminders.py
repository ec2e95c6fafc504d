"""Reminder scheduler - periodic scan that fires due event reminders."""

import logging
from datetime import datetime
from typing import Callable, Iterable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .core.events import Event
from .core.reminders import UpcomingReminder, due_reminders, upcoming_reminders
from .ports import Notifier

logger = logging.getLogger(__name__)

JOB_ID = "reminder_scan"


class ReminderScheduler:
    """
    Fires each enabled reminder at most once per process.

    `events_source` is called on every scan, so the scheduler always sees
    the repository's current events.
    """

    def __init__(
        self,
        events_source: Callable[[], Iterable[Event]],
        notifier: Notifier,
        clock: Callable[[], datetime] | None = None,
        interval_seconds: int = 60,
        window_minutes: int = 1,
    ):
        self._events_source = events_source
        self._notifier = notifier
        self._clock = clock or datetime.now
        self.interval_seconds = interval_seconds
        self.window_minutes = window_minutes
        self._triggered: set[tuple[str, str]] = set()
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def triggered(self) -> frozenset[tuple[str, str]]:
        return frozenset(self._triggered)

    async def check_reminders(self) -> list[UpcomingReminder]:
        """Scan once and notify every due reminder not fired yet."""
        due = due_reminders(
            self._events_source(),
            self._clock(),
            window_minutes=self.window_minutes,
            triggered=self._triggered,
        )
        # Record all pairs first so an overlapping scan skips them
        for item in due:
            self._triggered.add((item.event.id, item.reminder.id))

        for item in due:
            try:
                await self._notifier.notify(item.event, item.reminder, item.trigger_time)
            except Exception as e:
                logger.error(f"Failed to deliver reminder {item.reminder.id} for {item.event.id}: {e}")

        if due:
            logger.info(f"Fired {len(due)} reminder(s)")
        return due

    def get_upcoming_reminders(self, within_minutes: int = 60) -> list[UpcomingReminder]:
        return upcoming_reminders(self._events_source(), self._clock(), within_minutes=within_minutes)

    def clear_triggered_reminder(self, event_id: str, reminder_id: str) -> None:
        """Re-arm one reminder so the next scan may fire it again."""
        self._triggered.discard((event_id, reminder_id))

    def start(self, scheduler: AsyncIOScheduler | None = None) -> AsyncIOScheduler:
        """Register the scan job and start the scheduler. Needs a running event loop."""
        if self._scheduler is not None:
            return self._scheduler

        scheduler = scheduler or AsyncIOScheduler()
        scheduler.add_job(
            self.check_reminders,
            IntervalTrigger(seconds=self.interval_seconds),
            id=JOB_ID,
            next_run_time=datetime.now(),
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        if not scheduler.running:
            scheduler.start()
        self._scheduler = scheduler
        logger.info(f"Reminder scan scheduled every {self.interval_seconds}s")
        return scheduler

    def shutdown(self) -> None:
        if self._scheduler is None:
            return
        if self._scheduler.get_job(JOB_ID):
            self._scheduler.remove_job(JOB_ID)
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Reminder scheduler stopped")
