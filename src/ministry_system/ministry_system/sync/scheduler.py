from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Optional, Protocol


class Cancellable(Protocol):
    def cancel(self) -> None:
        raise NotImplementedError


class Scheduler(Protocol):
    """Clock, delayed callbacks and background work.

    Everything time-based or blocking in the sync engine goes through this
    interface so tests can drive it by hand.
    """

    def now(self) -> float:
        raise NotImplementedError

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable:
        raise NotImplementedError

    def submit(
        self,
        work: Callable[[], Any],
        on_result: Callable[[Any], None],
        on_error: Callable[[Exception], None],
    ) -> None:
        """Run blocking ``work`` off the loop; report back on the loop."""
        raise NotImplementedError


class AsyncioScheduler:
    """Scheduler backed by the asyncio event loop.

    Callbacks run on the loop thread, one at a time, which is what serializes
    every subscription callback of a session. Blocking work goes to the
    loop's default executor.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def now(self) -> float:
        # loop.time() uses the same monotonic clock by default.
        return time.monotonic()

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable:
        return self._get_loop().call_later(max(float(delay), 0.0), callback)

    def submit(
        self,
        work: Callable[[], Any],
        on_result: Callable[[Any], None],
        on_error: Callable[[Exception], None],
    ) -> None:
        future = self._get_loop().run_in_executor(None, work)

        # Done callbacks of an asyncio future are scheduled on its loop.
        def done(fut: asyncio.Future) -> None:
            if fut.cancelled():
                return
            exc = fut.exception()
            if exc is None:
                on_result(fut.result())
            elif isinstance(exc, Exception):
                on_error(exc)
            else:
                raise exc

        future.add_done_callback(done)
