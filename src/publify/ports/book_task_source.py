"""Book task source interface."""

from typing import Protocol

from publify.core.book_tasks import BookTask


class BookTaskSource(Protocol):
    """Interface for fetching kanban tasks from any backend."""

    def fetch_tasks(self) -> list[BookTask]:
        """Fetch all tasks across books."""
        ...
