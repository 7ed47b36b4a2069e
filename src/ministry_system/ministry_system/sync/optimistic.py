from __future__ import annotations

from typing import Callable, Iterable, Sequence

from ..common.keys import entity_id
from ..core.constants import DEFAULT_OPTIMISTIC_WINDOW_SECONDS
from ..tenants.repository import Entity


class OptimisticWriteGuard:
    """In-flight set of entity ids written locally but not yet acknowledged.

    A mark shields the local value from remote snapshots until it is cleared
    or ``window_seconds`` have elapsed on ``clock``.
    """

    def __init__(self, clock: Callable[[], float], *, window_seconds: float = DEFAULT_OPTIMISTIC_WINDOW_SECONDS):
        self._clock = clock
        self._window = float(window_seconds)
        self._expires_at: dict[str, float] = {}

    def mark(self, record_id: str) -> None:
        now = self._clock()
        self._expires_at = {k: t for k, t in self._expires_at.items() if t > now}
        self._expires_at[str(record_id)] = now + self._window

    def clear(self, record_id: str) -> None:
        self._expires_at.pop(str(record_id), None)

    def is_in_flight(self, record_id: str) -> bool:
        key = str(record_id)
        expires_at = self._expires_at.get(key)
        if expires_at is None:
            return False
        if self._clock() >= expires_at:
            del self._expires_at[key]
            return False
        return True

    @property
    def in_flight(self) -> frozenset[str]:
        return frozenset(k for k in list(self._expires_at) if self.is_in_flight(k))

    def filter_snapshot(self, incoming: Iterable[Entity], previous: Sequence[Entity]) -> list[Entity]:
        """Build the replacement batch for one tenant.

        Incoming records that are in flight are dropped; the previously known
        record with the same id is kept in their place.
        """

        kept = [r for r in previous if entity_id(r) is not None and self.is_in_flight(entity_id(r))]
        fresh = [r for r in incoming if entity_id(r) is None or not self.is_in_flight(entity_id(r))]
        return kept + fresh
