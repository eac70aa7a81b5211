"""Pytest configuration and shared fakes."""

import asyncio
import sys
from pathlib import Path
from typing import Dict, List, Tuple

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.infra_monitoring import HealthRecord, HealthStatus  # noqa: E402


class FakeHealthChecker:
    """HealthChecker stand-in with scripted results per endpoint.

    Endpoints default to healthy. `script(endpoint, [True, False, ...])`
    queues outcomes; the last scripted outcome repeats once the queue is
    exhausted.
    """

    def __init__(self, latency_ms: float = 5.0):
        self.latency_ms = latency_ms
        self.probes: List[str] = []
        self._scripts: Dict[str, List[bool]] = {}

    def script(self, endpoint: str, outcomes: List[bool]) -> None:
        self._scripts[endpoint] = list(outcomes)

    async def check(self, endpoint: str) -> HealthRecord:
        self.probes.append(endpoint)
        outcomes = self._scripts.get(endpoint)
        healthy = True
        if outcomes:
            healthy = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        await asyncio.sleep(0)
        return HealthRecord(
            endpoint=endpoint,
            status=HealthStatus.HEALTHY if healthy else HealthStatus.UNHEALTHY,
            response_time_ms=self.latency_ms,
            error=None if healthy else "HTTP 503",
            status_code=200 if healthy else 503,
        )


class RecordingChannel:
    """Notification channel that records every send."""

    def __init__(self, fail_on: Tuple[str, ...] = ()):
        self.sent: List[tuple] = []
        self.fail_on = set(fail_on)

    async def send(self, channel_name, payload) -> None:
        if channel_name in self.fail_on:
            raise ConnectionError(f"{channel_name} unreachable")
        self.sent.append((channel_name, payload))

    def channels(self) -> List[str]:
        return [name for name, _ in self.sent]


@pytest.fixture
def health_checker():
    return FakeHealthChecker()


@pytest.fixture
def channel():
    return RecordingChannel()
