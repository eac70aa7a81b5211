"""Infrastructure Monitoring: Bounded Metrics Buffer."""

import threading
from collections import deque
from datetime import datetime
from typing import List, Optional

from .models import InfrastructureMetrics


class MetricsBuffer:
    """Fixed-capacity ring buffer of metric snapshots.

    Appending beyond capacity evicts the oldest snapshot, so memory use is
    bounded regardless of how long the monitor runs.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._items: deque = deque(maxlen=capacity)
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._items.maxlen

    def __len__(self) -> int:
        return len(self._items)

    def append(self, snapshot: InfrastructureMetrics) -> None:
        with self._lock:
            self._items.append(snapshot)

    def latest(self) -> Optional[InfrastructureMetrics]:
        with self._lock:
            return self._items[-1] if self._items else None

    def range(self, start: datetime, end: datetime) -> List[InfrastructureMetrics]:
        """Snapshots with start <= timestamp <= end, oldest first."""
        with self._lock:
            items = [m for m in self._items if start <= m.timestamp <= end]
        return sorted(items, key=lambda m: m.timestamp)

    def snapshot(self) -> List[InfrastructureMetrics]:
        with self._lock:
            return list(self._items)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()
