"""Infrastructure Monitoring: Metrics Sources.

The monitor never samples the host itself; it pulls snapshots from a
MetricsSource adapter supplied by the embedding process.
"""

import copy
import logging
from typing import Optional, Protocol, runtime_checkable

from .models import InfrastructureMetrics, _utcnow

logger = logging.getLogger(__name__)


@runtime_checkable
class MetricsSource(Protocol):
    """Supplies a snapshot of the four metric groups on request."""

    async def sample(self) -> InfrastructureMetrics: ...


class StaticMetricsSource:
    """Metrics source that returns a fixed, externally updated snapshot.

    Useful for wiring tests, demos, and push-style integrations where another
    component writes the latest values via `update()`.

    Example:
        source = StaticMetricsSource()
        source.update("system_health", error_rate=2.0)
        snapshot = await source.sample()
    """

    def __init__(self, metrics: Optional[InfrastructureMetrics] = None):
        self._metrics = metrics or InfrastructureMetrics()

    def update(self, group: str, **values: float) -> None:
        target = getattr(self._metrics, group, None)
        if target is None:
            raise KeyError(f"Unknown metric group: {group}")
        for name, value in values.items():
            if not hasattr(target, name):
                raise KeyError(f"Unknown metric {group}.{name}")
            setattr(target, name, float(value))

    async def sample(self) -> InfrastructureMetrics:
        snapshot = copy.deepcopy(self._metrics)
        snapshot.timestamp = _utcnow()
        return snapshot
