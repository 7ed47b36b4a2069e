from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Optional, Sequence

from ..core.constants import COLLECTION_MEMBERS, MINISTRY_FIELD, ORIGIN_TENANT_FIELD
from .repository import Entity, PartitionStore, Unsubscribe

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[list[Entity]], None]


def _noop() -> None:
    return None


def once(unsubscribe: Unsubscribe) -> Unsubscribe:
    """Wrap an unsubscribe handle so that calling it twice is a no-op."""

    called = False

    def wrapper() -> None:
        nonlocal called
        if called:
            return
        called = True
        unsubscribe()

    return wrapper


class TenantFetchAdapter:
    """One-shot fetches and live subscriptions for one collection of one tenant.

    Failures are isolated to the tenant: they are logged and surface as an
    empty result, never as an exception to the caller.
    """

    def __init__(self, store: PartitionStore):
        self._store = store

    def fetch_once(self, tenant_id: str, collection: str, ministry: Optional[str] = None) -> list[Entity]:
        try:
            if collection == COLLECTION_MEMBERS:
                rows = self._store.fetch_where(tenant_id, collection, MINISTRY_FIELD, ministry)
            else:
                rows = self._store.fetch_all(tenant_id, collection)
        except Exception:
            logger.warning("Failed to fetch %s from tenant %s", collection, tenant_id, exc_info=True)
            return []
        return self._prepare(tenant_id, collection, rows)

    def subscribe(
        self,
        tenant_id: str,
        collection: str,
        on_update: UpdateCallback,
        ministry: Optional[str] = None,
    ) -> Unsubscribe:
        def on_snapshot(rows: Sequence[Entity]) -> None:
            on_update(self._prepare(tenant_id, collection, rows))

        def on_error(exc: Exception) -> None:
            logger.warning("%s listener error for tenant %s, skipping: %s", collection, tenant_id, exc)
            on_update([])

        try:
            if collection == COLLECTION_MEMBERS:
                handle = self._store.subscribe_where(
                    tenant_id, collection, MINISTRY_FIELD, ministry, on_snapshot, on_error
                )
            else:
                handle = self._store.subscribe_all(tenant_id, collection, on_snapshot, on_error)
        except Exception:
            logger.warning("Failed to subscribe to %s in tenant %s", collection, tenant_id, exc_info=True)
            on_update([])
            return _noop
        return once(handle)

    def _prepare(self, tenant_id: str, collection: str, rows: Iterable[Entity]) -> list[Entity]:
        items = [_tag(row, tenant_id) for row in rows or []]
        if collection == COLLECTION_MEMBERS:
            # Upstream tenants do not index the active flag reliably; filter here.
            items = [m for m in items if m.get("is_active") is not False]
        return items


def _tag(row: Entity, tenant_id: str) -> dict[str, Any]:
    return {**row, ORIGIN_TENANT_FIELD: tenant_id}
