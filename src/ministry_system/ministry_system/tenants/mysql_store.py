from __future__ import annotations

import re
from typing import Any, Callable, Mapping, Optional, Sequence

from ..core.constants import DEFAULT_POLL_INTERVAL_SECONDS
from ..core.exceptions import ValidationError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json, fetchall, fetchone, load_json
from ..sync.scheduler import Cancellable, Scheduler
from .repository import Entity, ErrorCallback, PartitionStore, SnapshotCallback, Unsubscribe

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _json_path(field: str) -> str:
    if not _FIELD_RE.match(field or ""):
        raise ValidationError(f"Invalid field name: {field!r}")
    return f"$.{field}"


def _where_field(field: str, value: Any) -> tuple[str, tuple]:
    if field == "id":
        return "doc_id=%s", (str(value),)
    if isinstance(value, bool):
        return "JSON_EXTRACT(data, %s)=CAST(%s AS JSON)", (_json_path(field), "true" if value else "false")
    return "JSON_UNQUOTE(JSON_EXTRACT(data, %s))=%s", (_json_path(field), str(value))


def _to_entity(row: Mapping[str, Any]) -> Entity:
    data = load_json(row.get("data"))
    data["id"] = str(row["doc_id"])
    return data


class _PollingSubscription:
    """Emulates a live query by re-running it on the scheduler.

    Each poll runs through ``scheduler.submit`` so the query never blocks the
    loop; results only emit when they differ from the previous poll. The next
    poll is scheduled once the current one has reported back.
    """

    def __init__(
        self,
        poll: Callable[[], list[Entity]],
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
        scheduler: Scheduler,
        interval: float,
    ):
        self._poll = poll
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._scheduler = scheduler
        self._interval = float(interval)
        self._last: Optional[list[Entity]] = None
        self._timer: Optional[Cancellable] = None
        self._closed = False

    def start(self) -> Unsubscribe:
        self._tick()
        return self.close

    def close(self) -> None:
        self._closed = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _tick(self) -> None:
        self._timer = None
        if not self._closed:
            self._scheduler.submit(self._poll, self._on_rows, self._on_failure)

    def _on_rows(self, rows: list[Entity]) -> None:
        if self._closed:
            return
        if rows != self._last:
            self._last = rows
            self._on_snapshot(rows)
        if not self._closed:
            self._timer = self._scheduler.call_later(self._interval, self._tick)

    def _on_failure(self, exc: Exception) -> None:
        if self._closed:
            return
        self._closed = True
        self._on_error(exc)


class MySQLPartitionStore(PartitionStore):
    """Tenant partitions stored as JSON documents in ``tenant_documents``."""

    def __init__(
        self,
        conn_factory: DatabaseConnection,
        *,
        scheduler: Scheduler,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ):
        self._conn_factory = conn_factory
        self._scheduler = scheduler
        self._poll_interval = float(poll_interval)

    def list_tenants(self) -> Sequence[str]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT tenant_id
                FROM tenants
                WHERE is_ministry_tenant=0
                ORDER BY tenant_id
                """
            )
            return [str(r["tenant_id"]) for r in fetchall(cur)]

    def exists_where(self, tenant_id: str, collection: str, field: str, value: Any) -> bool:
        clause, params = _where_field(field, value)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT 1 AS found
                FROM tenant_documents
                WHERE tenant_id=%s AND collection=%s AND {clause}
                LIMIT 1
                """,
                (tenant_id, collection, *params),
            )
            return fetchone(cur) is not None

    def fetch_where(self, tenant_id: str, collection: str, field: str, value: Any) -> Sequence[Entity]:
        clause, params = _where_field(field, value)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT doc_id, data
                FROM tenant_documents
                WHERE tenant_id=%s AND collection=%s AND {clause}
                ORDER BY doc_id
                """,
                (tenant_id, collection, *params),
            )
            return [_to_entity(r) for r in fetchall(cur)]

    def fetch_all(self, tenant_id: str, collection: str) -> Sequence[Entity]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT doc_id, data
                FROM tenant_documents
                WHERE tenant_id=%s AND collection=%s
                ORDER BY doc_id
                """,
                (tenant_id, collection),
            )
            return [_to_entity(r) for r in fetchall(cur)]

    def subscribe_where(
        self,
        tenant_id: str,
        collection: str,
        field: str,
        value: Any,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        _where_field(field, value)

        def poll() -> list[Entity]:
            return list(self.fetch_where(tenant_id, collection, field, value))

        return _PollingSubscription(poll, on_snapshot, on_error, self._scheduler, self._poll_interval).start()

    def subscribe_all(
        self,
        tenant_id: str,
        collection: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        def poll() -> list[Entity]:
            return list(self.fetch_all(tenant_id, collection))

        return _PollingSubscription(poll, on_snapshot, on_error, self._scheduler, self._poll_interval).start()

    def put(self, tenant_id: str, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        payload = {k: v for k, v in data.items() if k != "id"}
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO tenant_documents(tenant_id, collection, doc_id, data)
                VALUES(%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE data=VALUES(data)
                """,
                (tenant_id, collection, str(doc_id), dump_json(payload)),
            )

    def delete(self, tenant_id: str, collection: str, doc_id: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "DELETE FROM tenant_documents WHERE tenant_id=%s AND collection=%s AND doc_id=%s",
                (tenant_id, collection, str(doc_id)),
            )
            return cur.rowcount > 0
