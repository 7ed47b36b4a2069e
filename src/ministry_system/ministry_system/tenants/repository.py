from __future__ import annotations

from typing import Any, Callable, Mapping, Protocol, Sequence

Entity = dict[str, Any]
Unsubscribe = Callable[[], None]
SnapshotCallback = Callable[[Sequence[Entity]], None]
ErrorCallback = Callable[[Exception], None]


class PartitionStore(Protocol):
    """Query/subscription API over isolated tenant partitions.

    The sync engine only depends on this interface; concrete stores live in
    ``mysql_store`` (and in-memory fakes in tests).
    """

    def list_tenants(self) -> Sequence[str]:
        """Tenants eligible for ministry discovery (ministry-only partitions excluded)."""

        raise NotImplementedError

    def exists_where(self, tenant_id: str, collection: str, field: str, value: Any) -> bool:
        raise NotImplementedError

    def fetch_where(self, tenant_id: str, collection: str, field: str, value: Any) -> Sequence[Entity]:
        raise NotImplementedError

    def fetch_all(self, tenant_id: str, collection: str) -> Sequence[Entity]:
        raise NotImplementedError

    def subscribe_where(
        self,
        tenant_id: str,
        collection: str,
        field: str,
        value: Any,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        raise NotImplementedError

    def subscribe_all(
        self,
        tenant_id: str,
        collection: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        raise NotImplementedError

    def put(self, tenant_id: str, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        raise NotImplementedError

    def delete(self, tenant_id: str, collection: str, doc_id: str) -> bool:
        raise NotImplementedError
