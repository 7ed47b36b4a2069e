from __future__ import annotations

import logging
from dataclasses import replace
from functools import partial
from typing import Any, Callable, Optional

from ..aggregation.merge import apply_corrections, assemble, collect_members
from ..aggregation.model import MinistryAggregate, TenantBatch
from ..aggregation.policies.base import PrecedencePolicy
from ..common.keys import entity_id
from ..common.validators import require_non_empty
from ..core.constants import (
    COLLECTION_ATTENDANCE,
    COLLECTION_BACENTAS,
    COLLECTION_CONFIRMATIONS,
    COLLECTION_GUESTS,
    COLLECTION_MEMBERS,
    COLLECTION_NEW_BELIEVERS,
    DEFAULT_ATTENDANCE_DEBOUNCE_SECONDS,
    ORIGIN_TENANT_FIELD,
)
from ..core.enums import SessionState
from ..core.exceptions import SessionStateError, ValidationError
from ..corrections.service import CorrectionsManager
from ..directory.resolver import MembershipDirectoryResolver
from ..tenants.fetch_adapter import TenantFetchAdapter
from ..tenants.repository import Entity, Unsubscribe
from .debounce import CoalescingQueue
from .optimistic import OptimisticWriteGuard
from .scheduler import Scheduler

logger = logging.getLogger(__name__)

AggregateCallback = Callable[[MinistryAggregate], None]

# TenantBatch field filled by each one-shot collection.
_STATIC_FIELDS = {
    COLLECTION_BACENTAS: "bacentas",
    COLLECTION_NEW_BELIEVERS: "new_believers",
    COLLECTION_CONFIRMATIONS: "confirmations",
    COLLECTION_GUESTS: "guests",
}


class MinistrySession:
    """Live cross-tenant view of one ministry.

    State machine: IDLE -> RESOLVING -> SUBSCRIBING -> LIVE -> TORN_DOWN.
    The session owns every subscription handle, the per-tenant snapshots and
    the correction state; nothing is shared with other sessions except the
    optimistic-write guard of the service that created it.

    All callbacks are expected on one event loop, so no locking is done.
    """

    def __init__(
        self,
        *,
        ministry_name: str,
        home_tenant_id: Optional[str],
        current_tenant_id: Optional[str],
        on_update: AggregateCallback,
        resolver: MembershipDirectoryResolver,
        adapter: TenantFetchAdapter,
        guard: OptimisticWriteGuard,
        scheduler: Scheduler,
        policy: Optional[PrecedencePolicy] = None,
        debounce_seconds: float = DEFAULT_ATTENDANCE_DEBOUNCE_SECONDS,
    ):
        self.ministry_name = require_non_empty(ministry_name, "Ministry name")
        self.home_tenant_id = home_tenant_id
        self.current_tenant_id = current_tenant_id
        self._on_update = on_update
        self._resolver = resolver
        self._adapter = adapter
        self._guard = guard
        self._scheduler = scheduler
        self._policy = policy
        self._debounce_seconds = float(debounce_seconds)

        self._state = SessionState.IDLE
        self._corrections = CorrectionsManager(adapter)
        self._snapshots: dict[str, TenantBatch] = {}
        self._queues: dict[str, CoalescingQueue] = {}
        self._unsubscribers: list[Unsubscribe] = []
        self._base: list[Entity] = []
        self._sources: list[str] = []
        self._aggregate = MinistryAggregate()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def aggregate(self) -> MinistryAggregate:
        return self._aggregate

    @property
    def ministry_tenant_id(self) -> Optional[str]:
        """Tenant hosting the ministry-scoped mirror copies and the correction feeds."""
        return self.current_tenant_id or self.home_tenant_id

    def start(self) -> "MinistrySession":
        if self._state != SessionState.IDLE:
            raise SessionStateError(f"Cannot start a session in state {self._state.value}")

        self._state = SessionState.RESOLVING
        tenants = self._resolver.resolve(
            self.ministry_name,
            current_tenant_id=self.current_tenant_id,
            home_tenant_id=self.home_tenant_id,
        )
        if not tenants:
            logger.warning("No accessible tenants resolved for ministry %r", self.ministry_name)

        self._state = SessionState.SUBSCRIBING
        if self.ministry_tenant_id:
            self._unsubscribers.append(
                self._corrections.subscribe_overrides(self.ministry_tenant_id, self._on_corrections)
            )
            self._unsubscribers.append(
                self._corrections.subscribe_exclusions(self.ministry_tenant_id, self._on_corrections)
            )
        for tenant_id in tenants:
            self._open_tenant(tenant_id)

        self._state = SessionState.LIVE
        logger.info("Ministry session %r live on %d tenant(s)", self.ministry_name, len(tenants))
        self._rebuild()
        return self

    def stop(self) -> None:
        if self._state == SessionState.TORN_DOWN:
            return
        self._state = SessionState.TORN_DOWN

        for queue in self._queues.values():
            queue.cancel()
        handles, self._unsubscribers = self._unsubscribers, []
        for unsubscribe in handles:
            try:
                unsubscribe()
            except Exception:
                logger.warning("Unsubscribe failed during teardown of %r", self.ministry_name, exc_info=True)
        logger.info("Ministry session %r torn down (%d subscriptions closed)", self.ministry_name, len(handles))

    def stage_attendance(self, record: Entity, *, tenant_id: Optional[str] = None) -> None:
        """Apply a local attendance write before the remote store confirms it."""

        if self._state == SessionState.TORN_DOWN:
            raise SessionStateError("Session is torn down")
        record_id = entity_id(record)
        if record_id is None:
            raise ValidationError("Attendance record needs an id")
        tenant_id = tenant_id or record.get(ORIGIN_TENANT_FIELD)
        if tenant_id not in self._snapshots:
            raise ValidationError(f"Tenant {tenant_id!r} is not part of this ministry session")

        self._guard.mark(record_id)
        staged = {**record, ORIGIN_TENANT_FIELD: tenant_id}
        current = [r for r in self._snapshots[tenant_id].attendance if entity_id(r) != record_id]
        self._replace(tenant_id, attendance=current + [staged])
        if self._state == SessionState.LIVE:
            self._rebuild()

    def _open_tenant(self, tenant_id: str) -> None:
        self._snapshots.setdefault(tenant_id, TenantBatch())

        self._unsubscribers.append(
            self._adapter.subscribe(
                tenant_id, COLLECTION_MEMBERS, partial(self._on_members, tenant_id), ministry=self.ministry_name
            )
        )

        queue = CoalescingQueue(self._scheduler, self._debounce_seconds, partial(self._apply_attendance, tenant_id))
        self._queues[tenant_id] = queue
        self._unsubscribers.append(
            self._adapter.subscribe(tenant_id, COLLECTION_ATTENDANCE, partial(self._on_attendance, tenant_id))
        )

        static: dict[str, Any] = {}
        for collection, field_name in _STATIC_FIELDS.items():
            static[field_name] = self._adapter.fetch_once(tenant_id, collection)
        self._replace(tenant_id, **static)

    def _on_members(self, tenant_id: str, members: list[Entity]) -> None:
        if self._state == SessionState.TORN_DOWN:
            return
        self._replace(tenant_id, members=members)
        logger.debug("Members update from %s: %d", tenant_id, len(members))
        if self._state == SessionState.LIVE:
            self._rebuild()

    def _on_attendance(self, tenant_id: str, records: list[Entity]) -> None:
        if self._state == SessionState.TORN_DOWN:
            return
        if self._state == SessionState.LIVE:
            self._queues[tenant_id].schedule(records)
        else:
            self._apply_attendance(tenant_id, records)

    def _apply_attendance(self, tenant_id: str, records: list[Entity]) -> None:
        if self._state == SessionState.TORN_DOWN:
            return
        previous = self._snapshots[tenant_id].attendance
        merged = self._guard.filter_snapshot(records, previous)
        logger.debug(
            "Attendance update from %s: %d incoming, %d kept", tenant_id, len(records), len(merged)
        )
        self._replace(tenant_id, attendance=merged)
        if self._state == SessionState.LIVE:
            self._rebuild()

    def _on_corrections(self) -> None:
        if self._state != SessionState.LIVE:
            return
        members = apply_corrections(
            self._base, self._corrections.overrides, self._corrections.exclusions, self.ministry_tenant_id
        )
        self._aggregate = replace(self._aggregate, members=members)
        self._emit()

    def _replace(self, tenant_id: str, **changes: Any) -> None:
        self._snapshots[tenant_id] = replace(self._snapshots.get(tenant_id, TenantBatch()), **changes)

    def _rebuild(self) -> None:
        self._base, self._sources = collect_members(self._snapshots, self.ministry_tenant_id, policy=self._policy)
        self._aggregate = assemble(
            self._snapshots,
            self._base,
            self._sources,
            self._corrections.overrides,
            self._corrections.exclusions,
            self.ministry_tenant_id,
        )
        self._emit()

    def _emit(self) -> None:
        try:
            self._on_update(self._aggregate)
        except Exception:
            logger.exception("Aggregate consumer failed for ministry %r", self.ministry_name)
