"""Id provider interface."""

from typing import Protocol


class IdProvider(Protocol):
    """Interface for generating unique ids."""

    def new_id(self, prefix: str) -> str:
        """Return a fresh id starting with `prefix`."""
        ...
