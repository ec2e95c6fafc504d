"""Kanban API adapter - HTTP client for book production tasks."""

import logging

import requests

from publify.core.book_tasks import BookTask

logger = logging.getLogger(__name__)


class KanbanApiAdapter:
    """
    Kanban board API adapter.

    Implements BookTaskSource. Fetches task cards across all books. No
    business logic - just I/O. Failures degrade to an empty list.
    """

    def __init__(self, api_base: str, token: str = "", timeout: float = 30.0):
        self.api_base = api_base.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._session = requests.Session()

    def _api_request(self, endpoint: str) -> dict | list:
        """Make authenticated API request."""
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        resp = self._session.get(f"{self.api_base}{endpoint}", headers=headers, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def fetch_tasks(self) -> list[BookTask]:
        """Fetch all tasks across books."""
        try:
            data = self._api_request("/tasks")
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Kanban API error: {e}")
            return []

        # Accept a bare list or an envelope {"tasks": [...]}
        items = data.get("tasks", []) if isinstance(data, dict) else data

        tasks = []
        for item in items:
            try:
                tasks.append(BookTask.from_api(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed kanban task {item!r}: {e}")
        return tasks


class InMemoryBookTaskSource:
    """Implements BookTaskSource over a fixed list of tasks."""

    def __init__(self, tasks: list[BookTask] | None = None):
        self.tasks = list(tasks or [])

    def fetch_tasks(self) -> list[BookTask]:
        return list(self.tasks)
