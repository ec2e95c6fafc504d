"""Id providers for new events and log entries."""

import itertools
import uuid


class UuidIdProvider:
    """Random UUID-based ids, e.g. ``evt-1b4e28ba2fa1``."""

    def new_id(self, prefix: str) -> str:
        return f"{prefix}-{uuid.uuid4().hex[:12]}"


class SequentialIdProvider:
    """Monotonic ids (``evt-1``, ``evt-2``, ...). Deterministic for tests."""

    def __init__(self, start: int = 1):
        self._counter = itertools.count(start)

    def new_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._counter)}"
