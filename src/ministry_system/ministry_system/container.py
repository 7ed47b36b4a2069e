from __future__ import annotations

from dataclasses import dataclass
from types import ModuleType
from typing import Optional

from .aggregation.factory import PrecedencePolicyFactory
from .core.constants import (
    DEFAULT_ATTENDANCE_DEBOUNCE_SECONDS,
    DEFAULT_OPTIMISTIC_WINDOW_SECONDS,
    DEFAULT_POLL_INTERVAL_SECONDS,
)
from .corrections.service import CorrectionsService
from .database.connection import DBConfig, DatabaseConnection
from .directory.resolver import MembershipDirectoryResolver
from .sync.scheduler import AsyncioScheduler, Scheduler
from .sync.service import MinistrySyncService
from .tenants.fetch_adapter import TenantFetchAdapter
from .tenants.mysql_store import MySQLPartitionStore
from .tenants.repository import PartitionStore


@dataclass(frozen=True)
class Container:
    store: PartitionStore
    scheduler: Scheduler

    adapter: TenantFetchAdapter
    resolver: MembershipDirectoryResolver
    corrections_service: CorrectionsService
    sync_service: MinistrySyncService


def build_services(
    store: PartitionStore,
    *,
    scheduler: Scheduler,
    settings: Optional[ModuleType] = None,
) -> Container:
    adapter = TenantFetchAdapter(store)
    resolver = MembershipDirectoryResolver(store)
    policy = PrecedencePolicyFactory().for_name(getattr(settings, "PRECEDENCE_POLICY", None))
    sync_service = MinistrySyncService(
        resolver,
        adapter,
        scheduler=scheduler,
        policy=policy,
        debounce_seconds=float(getattr(settings, "ATTENDANCE_DEBOUNCE_SECONDS", DEFAULT_ATTENDANCE_DEBOUNCE_SECONDS)),
        optimistic_window_seconds=float(
            getattr(settings, "OPTIMISTIC_WINDOW_SECONDS", DEFAULT_OPTIMISTIC_WINDOW_SECONDS)
        ),
    )

    return Container(
        store=store,
        scheduler=scheduler,
        adapter=adapter,
        resolver=resolver,
        corrections_service=CorrectionsService(store),
        sync_service=sync_service,
    )


def build_container(*, db_config: dict, settings: Optional[ModuleType] = None) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))
    scheduler = AsyncioScheduler()
    store = MySQLPartitionStore(
        conn,
        scheduler=scheduler,
        poll_interval=float(getattr(settings, "POLL_INTERVAL_SECONDS", DEFAULT_POLL_INTERVAL_SECONDS)),
    )
    return build_services(store, scheduler=scheduler, settings=settings)
