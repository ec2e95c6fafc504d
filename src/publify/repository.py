"""In-memory event store that unifies user, system, book-task and synced events."""

import logging
from copy import deepcopy
import warnings
from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum
from typing import Callable

from .core.book_tasks import BookTask, book_tasks_to_events
from .core.events import (
    ClampWarning,
    Event,
    EventFormData,
    EventKind,
    EventOrigin,
    EventStatus,
    ValidationError,
    clamp_end,
    end_of_day,
    start_of_day,
    unique_tags,
)
from .core.filters import (
    CalendarFilters,
    events_overlapping,
    filter_events,
    month_bounds,
    sort_events_by_start,
    week_bounds,
)
from .core.generator import generate_for_years
from .core.ids import UuidIdProvider
from .core.sync import SYNCED_FIELDS
from .core.templates import SYSTEM_EVENT_TEMPLATES, SystemEventTemplate
from .ports import BookTaskSource, IdProvider

logger = logging.getLogger(__name__)

_PROTECTED_FIELDS = frozenset({"id", "kind", "origin", "external_id", "created_at", "updated_at"})

COPY_SUFFIX = " (copy)"


class SaveStatus(Enum):
    IDLE = "idle"
    SAVING = "saving"
    SAVED = "saved"


@dataclass(frozen=True)
class MergeResult:
    """Outcome of merging a batch of external events."""

    created: int = 0
    updated: int = 0


Subscriber = Callable[[str, Event | None], None]


class EventRepository:
    """
    Event store for the editorial calendar.

    Holds user-authored and imported events; system events are re-derived
    from the template catalog on every read and book-task events come from
    the last `refresh_book_tasks()` snapshot. Only locally authored user
    events can be updated, moved or deleted.
    """

    def __init__(
        self,
        id_provider: IdProvider | None = None,
        clock: Callable[[], datetime] | None = None,
        templates: tuple[SystemEventTemplate, ...] | list[SystemEventTemplate] = SYSTEM_EVENT_TEMPLATES,
        book_task_source: BookTaskSource | None = None,
        events: list[Event] | None = None,
    ):
        self._ids = id_provider or UuidIdProvider()
        self._clock = clock or datetime.now
        self._templates = templates
        self._book_task_source = book_task_source
        self._user_events: list[Event] = list(events or [])
        self._book_task_events: list[Event] = []
        self._subscribers: list[Subscriber] = []
        self.save_status = SaveStatus.IDLE

    # ============== Unified event set ==============

    @property
    def user_events(self) -> list[Event]:
        """Copies of local and imported events, in insertion order."""
        return deepcopy(self._user_events)

    @property
    def system_events(self) -> list[Event]:
        """System events for the current and next year."""
        return generate_for_years(self._clock().year, 2, self._templates)

    @property
    def book_task_events(self) -> list[Event]:
        return deepcopy(self._book_task_events)

    @property
    def events(self) -> list[Event]:
        """
        All events: user + system + book tasks.

        Returned events are copies; changes go through update, move and delete.
        """
        return self.user_events + self.system_events + self.book_task_events

    def get(self, event_id: str) -> Event | None:
        for event in self.events:
            if event.id == event_id:
                return event
        return None

    def events_by_book(self, book_id: str) -> list[Event]:
        return [e for e in self.events if book_id in e.book_ids]

    def local_events(self) -> list[Event]:
        """Copies of the editable (locally authored) events."""
        return [deepcopy(e) for e in self._user_events if e.is_editable]

    def external_ids(self) -> set[str]:
        return {e.external_id for e in self._user_events if e.external_id}

    # ============== Subscriptions ==============

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a change callback. Returns a function that unsubscribes."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self, change: str, event: Event | None = None) -> None:
        for callback in list(self._subscribers):
            try:
                callback(change, event)
            except Exception as e:
                logger.error(f"Subscriber failed on {change}: {e}")

    def _set_save_status(self, status: SaveStatus) -> None:
        self.save_status = status
        self._publish(f"save_status:{status.value}")

    def _record_save(self) -> None:
        # Writes complete synchronously, so the whole lifecycle runs here
        self._set_save_status(SaveStatus.SAVING)
        self._set_save_status(SaveStatus.SAVED)
        self._set_save_status(SaveStatus.IDLE)

    # ============== Helpers ==============

    def _taken_ids(self) -> set[str]:
        stored = self._user_events + self._book_task_events
        return {e.id for e in stored} | {e.id for e in self.system_events}

    def _fresh_id(self, prefix: str) -> str:
        taken = self._taken_ids()
        new_id = self._ids.new_id(prefix)
        while new_id in taken:
            new_id = self._ids.new_id(prefix)
        return new_id

    def _editable_index(self, event_id: str) -> int | None:
        for i, event in enumerate(self._user_events):
            if event.id == event_id:
                return i if event.is_editable else None
        return None

    @staticmethod
    def _clamped(start_at: datetime, end_at: datetime | None) -> datetime:
        end, clamped = clamp_end(start_at, end_at)
        if clamped:
            warnings.warn(
                f"End {end_at:%Y-%m-%d %H:%M} is before start {start_at:%Y-%m-%d %H:%M}; "
                "end was set to the start",
                ClampWarning,
                stacklevel=3,
            )
        return end

    # ============== Mutations ==============

    def create(self, form: EventFormData) -> Event:
        """
        Create a local user event.

        Raises ValidationError when the title is blank or the start is missing.
        An end before the start is clamped to the start with a ClampWarning.
        """
        title = (form.title or "").strip()
        if not title:
            raise ValidationError("Title is required")
        if form.start_at is None:
            raise ValidationError("Start date is required")

        end_at = self._clamped(form.start_at, form.end_at)
        now = self._clock()

        event = Event(
            id=self._fresh_id("evt"),
            kind=EventKind.USER,
            title=title,
            start_at=form.start_at,
            end_at=end_at,
            origin=EventOrigin.LOCAL,
            all_day=form.all_day,
            status=form.status,
            priority=form.priority,
            description=form.description,
            tags=unique_tags(list(form.tags)),
            book_ids=list(form.book_ids),
            marketplaces=list(form.marketplaces),
            checklist_items=list(form.checklist_items),
            reminders=list(form.reminders),
            assigned_to=form.assigned_to,
            created_at=now,
            updated_at=now,
        )

        self._user_events.append(event)
        logger.debug(f"Created event {event.id}")
        self._record_save()
        self._publish("created", event)
        return event

    def update(self, event_id: str, **changes) -> Event | None:
        """
        Apply a partial update to a local user event.

        Returns the updated event, or None when the id is unknown or belongs
        to a system, external or book-task event.
        """
        protected = _PROTECTED_FIELDS & changes.keys()
        if protected:
            raise ValueError(f"Cannot update protected field(s): {', '.join(sorted(protected))}")

        index = self._editable_index(event_id)
        if index is None:
            logger.debug(f"Ignoring update of non-editable or unknown event {event_id}")
            return None

        if "title" in changes:
            title = (changes["title"] or "").strip()
            if not title:
                raise ValidationError("Title is required")
            changes["title"] = title
        if "tags" in changes:
            changes["tags"] = unique_tags(list(changes["tags"]))

        updated = replace(self._user_events[index], **changes)
        updated = replace(
            updated,
            end_at=self._clamped(updated.start_at, updated.end_at),
            updated_at=self._clock(),
        )

        self._user_events[index] = updated
        self._record_save()
        self._publish("updated", updated)
        return updated

    def delete(self, event_id: str) -> bool:
        """Delete a local user event. Anything else is a no-op."""
        index = self._editable_index(event_id)
        if index is None:
            logger.debug(f"Ignoring delete of non-editable or unknown event {event_id}")
            return False

        removed = self._user_events.pop(index)
        self._record_save()
        self._publish("deleted", removed)
        return True

    def move(self, event_id: str, new_start: datetime) -> Event | None:
        """Reschedule a local user event, keeping its duration."""
        index = self._editable_index(event_id)
        if index is None:
            logger.debug(f"Ignoring move of non-editable or unknown event {event_id}")
            return None

        current = self._user_events[index]
        moved = replace(
            current,
            start_at=new_start,
            end_at=new_start + current.duration(),
            updated_at=self._clock(),
        )

        self._user_events[index] = moved
        self._record_save()
        self._publish("moved", moved)
        return moved

    def duplicate(self, event_id: str) -> Event | None:
        """
        Fork any event into a new local user event.

        This is the only way a system event becomes editable.
        """
        source = self.get(event_id)
        if source is None:
            return None

        now = self._clock()
        copy = replace(
            source,
            id=self._fresh_id("evt"),
            kind=EventKind.USER,
            origin=EventOrigin.LOCAL,
            title=f"{source.title}{COPY_SUFFIX}",
            tags=list(source.tags),
            book_ids=list(source.book_ids),
            marketplaces=list(source.marketplaces),
            checklist_items=list(source.checklist_items),
            reminders=list(source.reminders),
            recommended_niches=list(source.recommended_niches),
            external_id=None,
            external_calendar_id=None,
            synced_at=None,
            system_key=None,
            book_id=None,
            task_id=None,
            created_at=now,
            updated_at=now,
        )

        self._user_events.append(copy)
        self._publish("duplicated", copy)
        return copy

    def mark_done(self, event_id: str) -> Event | None:
        return self.update(event_id, status=EventStatus.DONE)

    def import_external(self, events: list[Event]) -> MergeResult:
        """
        Merge events coming from the external calendar.

        Events whose external_id is already known overwrite the synced fields
        (remote wins); unknown ones are appended with origin=external_sync.
        Re-applying the same batch changes nothing.
        """
        index_by_external = {
            e.external_id: i for i, e in enumerate(self._user_events) if e.external_id
        }

        batch: dict[str, Event] = {}
        for incoming in events:
            if not incoming.external_id:
                logger.warning(f"Skipping imported event {incoming.id} without external id")
                continue
            batch[incoming.external_id] = incoming

        now = self._clock()
        taken = self._taken_ids()
        created = updated = 0

        for external_id, incoming in batch.items():
            index = index_by_external.get(external_id)

            if index is not None:
                current = self._user_events[index]
                changes = {
                    name: getattr(incoming, name)
                    for name in SYNCED_FIELDS
                    if getattr(incoming, name) != getattr(current, name)
                }
                if not changes:
                    continue
                merged = replace(current, **changes)
                end_at, _ = clamp_end(merged.start_at, merged.end_at)
                merged = replace(
                    merged,
                    end_at=end_at,
                    synced_at=incoming.synced_at or now,
                    updated_at=now,
                )
                self._user_events[index] = merged
                updated += 1
                continue

            event_id = incoming.id
            if not event_id or event_id in taken:
                event_id = self._fresh_id("external")
            end_at, _ = clamp_end(incoming.start_at, incoming.end_at)
            new_event = replace(
                incoming,
                id=event_id,
                kind=EventKind.USER,
                origin=EventOrigin.EXTERNAL_SYNC,
                end_at=end_at,
                tags=list(incoming.tags),
                reminders=list(incoming.reminders),
                synced_at=incoming.synced_at or now,
            )
            self._user_events.append(new_event)
            taken.add(event_id)
            index_by_external[external_id] = len(self._user_events) - 1
            created += 1

        if created or updated:
            logger.info(f"Merged external events: {created} created, {updated} updated")
            self._publish("imported", None)
        return MergeResult(created=created, updated=updated)

    # ============== Book tasks ==============

    def set_book_tasks(self, tasks: list[BookTask]) -> list[Event]:
        """Replace the book-task snapshot."""
        self._book_task_events = book_tasks_to_events(tasks, self._clock())
        self._publish("book_tasks", None)
        return self.book_task_events

    def refresh_book_tasks(self) -> list[Event]:
        """Pull tasks from the source. On failure the previous snapshot stays."""
        if self._book_task_source is None:
            return self.book_task_events
        try:
            tasks = self._book_task_source.fetch_tasks()
        except Exception as e:
            logger.warning(f"Failed to fetch book tasks: {e}")
            return self.book_task_events
        return self.set_book_tasks(tasks)

    # ============== Queries ==============

    def filter(self, events: list[Event], filters: CalendarFilters | None) -> list[Event]:
        return filter_events(events, filters)

    def events_in_range(
        self,
        start: datetime,
        end: datetime,
        filters: CalendarFilters | None = None,
    ) -> list[Event]:
        """Events overlapping the inclusive range [start, end]."""
        return events_overlapping(filter_events(self.events, filters), start, end)

    def events_for_day(self, day: date | datetime, filters: CalendarFilters | None = None) -> list[Event]:
        return self.events_in_range(start_of_day(day), end_of_day(day), filters)

    def events_for_month(self, month: date | datetime, filters: CalendarFilters | None = None) -> list[Event]:
        d = month.date() if isinstance(month, datetime) else month
        start, end = month_bounds(d)
        return self.events_in_range(start, end, filters)

    def this_week(self, filters: CalendarFilters | None = None) -> list[Event]:
        start, end = week_bounds(self._clock().date())
        return self.events_in_range(start, end, filters)

    def upcoming(self, count: int = 5, filters: CalendarFilters | None = None) -> list[Event]:
        """The next `count` events starting now or later, soonest first."""
        now = self._clock()
        future = [e for e in filter_events(self.events, filters) if e.start_at >= now]
        return sort_events_by_start(future)[:count]
