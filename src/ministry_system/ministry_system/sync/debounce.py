from __future__ import annotations

from typing import Callable, Generic, Optional, TypeVar

from .scheduler import Cancellable, Scheduler

T = TypeVar("T")

_EMPTY = object()


class CoalescingQueue(Generic[T]):
    """Collapse a burst of payloads into one delivery.

    Each ``schedule`` replaces the pending payload and restarts the timer, so
    only the latest payload of a burst reaches ``on_flush``.
    """

    def __init__(self, scheduler: Scheduler, delay: float, on_flush: Callable[[T], None]):
        self._scheduler = scheduler
        self._delay = float(delay)
        self._on_flush = on_flush
        self._payload: object = _EMPTY
        self._timer: Optional[Cancellable] = None

    @property
    def pending(self) -> bool:
        return self._payload is not _EMPTY

    def schedule(self, payload: T) -> None:
        self._payload = payload
        self._cancel_timer()
        if self._delay <= 0:
            self.flush()
            return
        self._timer = self._scheduler.call_later(self._delay, self.flush)

    def flush(self) -> None:
        self._cancel_timer()
        if self._payload is _EMPTY:
            return
        payload, self._payload = self._payload, _EMPTY
        self._on_flush(payload)  # type: ignore[arg-type]

    def cancel(self) -> None:
        self._cancel_timer()
        self._payload = _EMPTY

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
