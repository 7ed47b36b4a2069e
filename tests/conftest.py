from __future__ import annotations

import itertools
from collections import defaultdict
from typing import Any, Callable, Optional

import pytest


class _Timer:
    _seq = itertools.count()

    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.seq = next(self._seq)
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler whose clock only moves when a test calls ``advance``."""

    def __init__(self):
        self.current = 0.0
        self._timers: list[_Timer] = []
        self._jobs: list[tuple] = []

    def now(self) -> float:
        return self.current

    def call_later(self, delay: float, callback: Callable[[], None]) -> _Timer:
        timer = _Timer(self.current + max(float(delay), 0.0), callback)
        self._timers.append(timer)
        return timer

    def submit(self, work, on_result, on_error) -> None:
        self._jobs.append((work, on_result, on_error))

    @property
    def queued_jobs(self) -> int:
        return len(self._jobs)

    def run_pending(self) -> None:
        """Run queued background work, then its callbacks, like a worker thread would."""
        jobs, self._jobs = self._jobs, []
        for work, on_result, on_error in jobs:
            try:
                result = work()
            except Exception as e:
                on_error(e)
            else:
                on_result(result)

    @property
    def pending(self) -> int:
        return sum(1 for t in self._timers if not t.cancelled)

    def advance(self, seconds: float) -> None:
        target = self.current + seconds
        while True:
            due = [t for t in self._timers if not t.cancelled and t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.due, t.seq))
            self._timers.remove(timer)
            self.current = max(self.current, timer.due)
            timer.callback()
        self._timers = [t for t in self._timers if not t.cancelled]
        self.current = target


class _Subscription:
    def __init__(self, tenant_id, collection, field, value, on_snapshot, on_error):
        self.tenant_id = tenant_id
        self.collection = collection
        self.field = field
        self.value = value
        self.on_snapshot = on_snapshot
        self.on_error = on_error


class InMemoryStore:
    """Partition store fake: subscriptions fire synchronously on every write.

    ``failing`` holds ``(tenant_id, op)`` pairs, op in exists/fetch/subscribe/write.
    """

    def __init__(self):
        self.docs: dict[tuple[str, str], dict[str, dict]] = defaultdict(dict)
        self.tenants: list[str] = []
        self.failing: set[tuple[str, str]] = set()
        self.subscriptions: list[_Subscription] = []
        self.unsubscribe_calls = 0

    # helpers for tests
    def add(self, tenant_id: str, collection: str, **doc: Any) -> dict:
        doc_id = str(doc.pop("id"))
        self.put(tenant_id, collection, doc_id, doc)
        return self.docs[(tenant_id, collection)][doc_id]

    def fail_listeners(self, tenant_id: str, collection: str, exc: Exception) -> None:
        for sub in [s for s in self.subscriptions if s.tenant_id == tenant_id and s.collection == collection]:
            self.subscriptions.remove(sub)
            sub.on_error(exc)

    def _check(self, tenant_id: str, op: str) -> None:
        if (tenant_id, op) in self.failing:
            raise RuntimeError(f"{op} failed for {tenant_id}")

    def _rows(self, tenant_id: str, collection: str, field: Optional[str] = None, value: Any = None) -> list[dict]:
        rows = [dict(d) for d in self.docs[(tenant_id, collection)].values()]
        if field is None:
            return rows
        return [r for r in rows if r.get(field) == value]

    def _notify(self, tenant_id: str, collection: str) -> None:
        for sub in list(self.subscriptions):
            if sub.tenant_id == tenant_id and sub.collection == collection:
                sub.on_snapshot(self._rows(tenant_id, collection, sub.field, sub.value))

    def _subscribe(self, sub: _Subscription):
        self._check(sub.tenant_id, "subscribe")
        self.subscriptions.append(sub)
        sub.on_snapshot(self._rows(sub.tenant_id, sub.collection, sub.field, sub.value))

        def unsubscribe() -> None:
            self.unsubscribe_calls += 1
            if sub in self.subscriptions:
                self.subscriptions.remove(sub)

        return unsubscribe

    # PartitionStore
    def list_tenants(self):
        return list(self.tenants)

    def exists_where(self, tenant_id, collection, field, value):
        self._check(tenant_id, "exists")
        return bool(self._rows(tenant_id, collection, field, value))

    def fetch_where(self, tenant_id, collection, field, value):
        self._check(tenant_id, "fetch")
        return self._rows(tenant_id, collection, field, value)

    def fetch_all(self, tenant_id, collection):
        self._check(tenant_id, "fetch")
        return self._rows(tenant_id, collection)

    def subscribe_where(self, tenant_id, collection, field, value, on_snapshot, on_error):
        return self._subscribe(_Subscription(tenant_id, collection, field, value, on_snapshot, on_error))

    def subscribe_all(self, tenant_id, collection, on_snapshot, on_error):
        return self._subscribe(_Subscription(tenant_id, collection, None, None, on_snapshot, on_error))

    def put(self, tenant_id, collection, doc_id, data):
        self._check(tenant_id, "write")
        self.docs[(tenant_id, collection)][str(doc_id)] = {**data, "id": str(doc_id)}
        self._notify(tenant_id, collection)

    def delete(self, tenant_id, collection, doc_id):
        self._check(tenant_id, "write")
        removed = self.docs[(tenant_id, collection)].pop(str(doc_id), None) is not None
        if removed:
            self._notify(tenant_id, collection)
        return removed


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()
