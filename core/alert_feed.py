import threading
from typing import List, Sequence, Tuple

from config.settings import ALERT_FEED_CAPACITY
from models.types import Alert


class AlertFeed:
    """
    Bounded newest-first alert list. Each pass's batch goes in front of the
    existing entries as one block and the oldest tail is dropped.
    No deduplication: the same pattern seen in two passes is two entries.
    """

    def __init__(self, capacity: int = ALERT_FEED_CAPACITY):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._alerts: List[Alert] = []
        self._lock = threading.Lock()

    def prepend(self, batch: Sequence[Alert]) -> int:
        """Commit one pass's alerts atomically. Returns the new feed length."""
        if not batch:
            return len(self)
        with self._lock:
            self._alerts = (list(batch) + self._alerts)[: self.capacity]
            return len(self._alerts)

    def snapshot(self) -> Tuple[Alert, ...]:
        with self._lock:
            return tuple(self._alerts)

    def clear(self):
        with self._lock:
            self._alerts = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._alerts)
