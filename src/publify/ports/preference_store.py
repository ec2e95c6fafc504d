"""Preference storage interface."""

from typing import Protocol


class PreferenceStore(Protocol):
    """Durable key-value slot for presentation preferences."""

    def load(self, key: str) -> dict | None:
        """Load a stored value. Returns None if not found."""
        ...

    def save(self, key: str, value: dict) -> None:
        """Write/overwrite a value."""
        ...

    def delete(self, key: str) -> None:
        """Remove a value if present."""
        ...
