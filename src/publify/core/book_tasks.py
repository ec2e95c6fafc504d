"""Book production tasks surfaced from the kanban backlog."""

from dataclasses import dataclass, field
from datetime import date, datetime

from .events import (
    Event,
    EventKind,
    EventOrigin,
    EventPriority,
    EventStatus,
    Tag,
    end_of_day,
    start_of_day,
)

_STATUS_MAP = {
    "pending": EventStatus.PENDING,
    "todo": EventStatus.PENDING,
    "in_progress": EventStatus.IN_PROGRESS,
    "doing": EventStatus.IN_PROGRESS,
    "review": EventStatus.REVIEW,
    "done": EventStatus.DONE,
    "completed": EventStatus.DONE,
    "cancelled": EventStatus.CANCELLED,
}


def _parse_date(value: str | None) -> date | None:
    if not value:
        return None
    return date.fromisoformat(value.split("T")[0])


@dataclass
class BookTask:
    """A kanban card belonging to a book."""

    id: str
    book_id: str
    title: str
    status: str = "pending"
    priority: EventPriority | None = None
    due_date: date | None = None
    start_date: date | None = None
    description: str = ""
    tags: list[Tag] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict) -> "BookTask":
        """Create BookTask from a kanban API payload."""
        priority = None
        if data.get("priority"):
            try:
                priority = EventPriority(data["priority"])
            except ValueError:
                priority = None
        return cls(
            id=str(data["id"]),
            book_id=str(data["bookId"]),
            title=data.get("title") or "Untitled",
            status=data.get("status") or "pending",
            priority=priority,
            due_date=_parse_date(data.get("dueDate")),
            start_date=_parse_date(data.get("startDate")),
            description=data.get("description") or "",
            tags=[
                Tag(t["id"], t.get("name", t["id"]), t.get("color", ""))
                for t in data.get("tags") or []
            ],
        )


def map_task_status(status: str) -> EventStatus:
    """Map a free-form kanban status onto the event workflow."""
    return _STATUS_MAP.get(status.lower(), EventStatus.PENDING)


def book_task_event_id(task_id: str) -> str:
    return f"book-task-{task_id}"


def book_task_to_event(task: BookTask, stamp: datetime | None = None) -> Event | None:
    """
    Convert a kanban task to a read-only calendar event.

    Tasks without a due date have no place on the calendar and return None.
    """
    if task.due_date is None:
        return None

    stamp = stamp or datetime.now()
    start = task.start_date or task.due_date
    # A start after the due date collapses to the due date
    if start > task.due_date:
        start = task.due_date

    return Event(
        id=book_task_event_id(task.id),
        kind=EventKind.USER,
        title=task.title,
        start_at=start_of_day(start),
        end_at=end_of_day(task.due_date),
        origin=EventOrigin.BOOK_TASK,
        all_day=True,
        status=map_task_status(task.status),
        priority=task.priority or EventPriority.MEDIUM,
        description=task.description,
        tags=list(task.tags),
        book_ids=[task.book_id],
        book_id=task.book_id,
        task_id=task.id,
        created_at=stamp,
        updated_at=stamp,
    )


def book_tasks_to_events(tasks: list[BookTask], stamp: datetime | None = None) -> list[Event]:
    """Convert tasks, dropping the ones without a due date."""
    events = []
    for task in tasks:
        event = book_task_to_event(task, stamp)
        if event is not None:
            events.append(event)
    return events
