"""File-based preference storage adapter."""

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class FilePreferenceStore:
    """
    File-based preference storage.

    Implements PreferenceStore protocol. Each key gets a JSON file.
    """

    def __init__(self, directory: Path | str):
        self.directory = Path(directory).expanduser()
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path_for_key(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def load(self, key: str) -> dict | None:
        """Load a stored value. Returns None if missing or unreadable."""
        path = self._path_for_key(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text())
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring corrupt preference file {path}: {e}")
            return None

    def save(self, key: str, value: dict) -> None:
        self._path_for_key(key).write_text(json.dumps(value, indent=2, sort_keys=True))

    def delete(self, key: str) -> None:
        self._path_for_key(key).unlink(missing_ok=True)
