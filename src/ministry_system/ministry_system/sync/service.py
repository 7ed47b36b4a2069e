from __future__ import annotations

import logging
from typing import Optional

from ..aggregation.merge import merge
from ..aggregation.model import MinistryAggregate, TenantBatch
from ..aggregation.policies.base import PrecedencePolicy
from ..common.validators import require_non_empty
from ..core.constants import (
    COLLECTION_ATTENDANCE,
    COLLECTION_BACENTAS,
    COLLECTION_CONFIRMATIONS,
    COLLECTION_GUESTS,
    COLLECTION_MEMBERS,
    COLLECTION_NEW_BELIEVERS,
    DEFAULT_ATTENDANCE_DEBOUNCE_SECONDS,
    DEFAULT_OPTIMISTIC_WINDOW_SECONDS,
)
from ..corrections.service import CorrectionsManager
from ..directory.resolver import MembershipDirectoryResolver
from ..tenants.fetch_adapter import TenantFetchAdapter
from .optimistic import OptimisticWriteGuard
from .scheduler import Scheduler
from .session import AggregateCallback, MinistrySession

logger = logging.getLogger(__name__)


class MinistrySyncService:
    """Entry point used by UI/consumer code for ministry mode."""

    def __init__(
        self,
        resolver: MembershipDirectoryResolver,
        adapter: TenantFetchAdapter,
        *,
        scheduler: Scheduler,
        policy: Optional[PrecedencePolicy] = None,
        debounce_seconds: float = DEFAULT_ATTENDANCE_DEBOUNCE_SECONDS,
        optimistic_window_seconds: float = DEFAULT_OPTIMISTIC_WINDOW_SECONDS,
    ):
        self._resolver = resolver
        self._adapter = adapter
        self._scheduler = scheduler
        self._policy = policy
        self._debounce_seconds = debounce_seconds
        self._guard = OptimisticWriteGuard(scheduler.now, window_seconds=optimistic_window_seconds)

    @property
    def guard(self) -> OptimisticWriteGuard:
        return self._guard

    def start_ministry_session(
        self,
        ministry_name: str,
        home_tenant_id: Optional[str],
        current_tenant_id: Optional[str],
        on_aggregate_update: AggregateCallback,
    ) -> MinistrySession:
        session = MinistrySession(
            ministry_name=ministry_name,
            home_tenant_id=home_tenant_id,
            current_tenant_id=current_tenant_id,
            on_update=on_aggregate_update,
            resolver=self._resolver,
            adapter=self._adapter,
            guard=self._guard,
            scheduler=self._scheduler,
            policy=self._policy,
            debounce_seconds=self._debounce_seconds,
        )
        return session.start()

    def mark_optimistic(self, entity_id: str) -> None:
        self._guard.mark(entity_id)

    def clear_optimistic(self, entity_id: str) -> None:
        self._guard.clear(entity_id)

    def snapshot(
        self,
        ministry_name: str,
        *,
        home_tenant_id: Optional[str] = None,
        current_tenant_id: Optional[str] = None,
    ) -> MinistryAggregate:
        """One-shot aggregate without opening any subscription."""

        ministry_name = require_non_empty(ministry_name, "Ministry name")
        tenants = self._resolver.resolve(
            ministry_name, current_tenant_id=current_tenant_id, home_tenant_id=home_tenant_id
        )

        snapshots: dict[str, TenantBatch] = {}
        for tenant_id in tenants:
            snapshots[tenant_id] = TenantBatch(
                members=self._adapter.fetch_once(tenant_id, COLLECTION_MEMBERS, ministry_name),
                attendance=self._adapter.fetch_once(tenant_id, COLLECTION_ATTENDANCE),
                bacentas=self._adapter.fetch_once(tenant_id, COLLECTION_BACENTAS),
                new_believers=self._adapter.fetch_once(tenant_id, COLLECTION_NEW_BELIEVERS),
                confirmations=self._adapter.fetch_once(tenant_id, COLLECTION_CONFIRMATIONS),
                guests=self._adapter.fetch_once(tenant_id, COLLECTION_GUESTS),
            )

        ministry_tenant_id = current_tenant_id or home_tenant_id
        corrections = CorrectionsManager(self._adapter)
        if ministry_tenant_id:
            corrections.load_once(ministry_tenant_id)

        aggregate = merge(
            snapshots, corrections.overrides, corrections.exclusions, ministry_tenant_id, policy=self._policy
        )
        logger.info(
            "Aggregated %r: %d members from %d tenant(s)",
            ministry_name,
            len(aggregate.members),
            len(aggregate.source_tenants),
        )
        return aggregate
