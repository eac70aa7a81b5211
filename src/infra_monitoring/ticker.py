"""Infrastructure Monitoring: Ticker & Cancellation Primitives.

PeriodicTicker is the scoped timer resource used by the monitor loop and
by the deployment monitoring phase: acquiring it starts a background task,
leaving the `async with` block cancels that task on every exit path.
"""

import asyncio
import contextlib
import logging
import time
from typing import Awaitable, Optional, TypeVar

from src.api_errors import DeploymentCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PeriodicTicker:
    """Emits a tick every `interval` seconds until stopped.

    Ticks are coalesced: if the consumer is still busy when the next tick
    fires, the pending tick is kept and the new one dropped.

    Example:
        async with PeriodicTicker(30.0) as ticker:
            while True:
                await ticker.wait()
                ...
    """

    def __init__(self, interval: float):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._task: Optional[asyncio.Task] = None
        self.ticks_emitted = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def wait(self) -> float:
        """Wait for the next tick; returns its monotonic timestamp."""
        return await self._queue.get()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if self._queue.empty():
                self._queue.put_nowait(time.monotonic())
                self.ticks_emitted += 1

    async def __aenter__(self) -> "PeriodicTicker":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()


class CancellationToken:
    """Cooperative cancellation signal for a deployment run."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str = ""

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "Cancelled by operator") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await `awaitable` unless the token fires first.

        Raises DeploymentCancelledError when cancelled; the pending
        awaitable is cancelled in that case.
        """
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise DeploymentCancelledError(self.reason)

        work = asyncio.ensure_future(awaitable)
        signal = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, signal}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            signal.cancel()
        if not work.done():
            work.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await work
            raise DeploymentCancelledError(self.reason)
        return work.result()

    async def sleep(self, seconds: float) -> None:
        """Sleep for `seconds`, raising DeploymentCancelledError if cancelled meanwhile."""
        await self.guard(asyncio.sleep(seconds))
