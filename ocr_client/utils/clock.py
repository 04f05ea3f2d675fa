"""
Time and cancellation primitives for orchestrator runs.

Orchestrators never call time.monotonic() or asyncio.sleep() directly; they
go through a Clock so tests can simulate minutes of polling instantly, and
every wait goes through a CancellationToken so reset() can interrupt it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional, Protocol

from ocr_client.core.exceptions import OperationCancelledError

logger = logging.getLogger(__name__)


class Ticker(Protocol):
    def cancel(self) -> None: ...


class Clock(Protocol):
    """Source of "now" plus timed waits and a cancellable periodic tick."""

    def now(self) -> float: ...

    async def sleep(self, seconds: float) -> None: ...

    def start_ticker(self, interval: float, callback: Callable[[], None]) -> Ticker: ...


class _TaskTicker:
    def __init__(self, task: asyncio.Task) -> None:
        self._task = task

    def cancel(self) -> None:
        if not self._task.done():
            self._task.cancel()


class SystemClock:
    """Clock backed by the monotonic timer and the running event loop."""

    def now(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(seconds, 0))

    def start_ticker(self, interval: float, callback: Callable[[], None]) -> Ticker:
        async def _run() -> None:
            while True:
                await asyncio.sleep(interval)
                try:
                    callback()
                except Exception:
                    logger.exception("Progress tick callback failed")

        return _TaskTicker(asyncio.get_running_loop().create_task(_run()))


class CancellationToken:
    """Idempotent cancel signal shared by one run's waits and callbacks."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError()

    async def sleep(self, clock: Clock, seconds: float) -> None:
        """Wait on the clock, waking early and raising if cancelled meanwhile."""
        self.raise_if_cancelled()
        sleeper = asyncio.ensure_future(clock.sleep(seconds))
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            pending = [task for task in (sleeper, waiter) if not task.done()]
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
        self.raise_if_cancelled()


def elapsed_seconds(clock: Clock, started_at: Optional[float]) -> int:
    """Whole seconds since ``started_at`` (0 when the run has not started)."""
    if started_at is None:
        return 0
    return max(0, int(clock.now() - started_at))
