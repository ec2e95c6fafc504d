"""Reminder notification interface."""

from datetime import datetime
from typing import Protocol

from publify.core.events import Event, Reminder


class Notifier(Protocol):
    """Interface for delivering a fired reminder."""

    async def notify(self, event: Event, reminder: Reminder, trigger_time: datetime) -> None:
        """Deliver one reminder notification."""
        ...
