"""Aggregation merge engine.

Pure functions: the same snapshots and corrections always produce a
deep-equal aggregate, and inputs are never mutated.
"""
from __future__ import annotations

import logging
from typing import AbstractSet, Iterable, Mapping, Optional, Sequence

from ..common.keys import MemberRef, entity_id, member_ref, origin_of
from ..core.constants import ORIGIN_TENANT_FIELD
from ..corrections.model import Override
from ..tenants.repository import Entity
from .model import MinistryAggregate, TenantBatch
from .policies.base import PrecedencePolicy
from .policies.origin_wins import OriginWinsPolicy

logger = logging.getLogger(__name__)


def collect_members(
    snapshots: Mapping[str, TenantBatch],
    ministry_tenant_id: Optional[str],
    *,
    policy: Optional[PrecedencePolicy] = None,
) -> tuple[list[Entity], list[str]]:
    """Concatenate and de-duplicate member batches.

    Returns the surviving members (fetch order) and the tenants that
    contributed at least one well-formed member.
    """

    policy = policy or OriginWinsPolicy()
    candidates: list[Entity] = []
    sources: list[str] = []
    for tenant_id, batch in snapshots.items():
        contributed = False
        for m in batch.members:
            if entity_id(m) is None:
                logger.warning("Skipping member without id from tenant %s", tenant_id)
                continue
            candidates.append({**m, ORIGIN_TENANT_FIELD: tenant_id})
            contributed = True
        if contributed:
            sources.append(tenant_id)
    return policy.dedupe(candidates, ministry_tenant_id=ministry_tenant_id), sources


def apply_corrections(
    members: Iterable[Entity],
    overrides: Mapping[MemberRef, Override],
    exclusions: AbstractSet[MemberRef],
    ministry_tenant_id: Optional[str] = None,
) -> list[Entity]:
    """Drop excluded members, lay overrides on top, then sort by last name."""

    out: list[Entity] = []
    for m in members:
        key = member_ref(origin_of(m, ministry_tenant_id), m["id"])
        if key in exclusions:
            continue
        override = overrides.get(key)
        out.append({**m, **override.fields} if override else dict(m))
    return sort_members(out)


def sort_members(members: Sequence[Entity]) -> list[Entity]:
    # sorted() is stable: equal last names keep fetch order.
    return sorted(members, key=lambda m: str(m.get("last_name") or "").lower())


def merge(
    snapshots: Mapping[str, TenantBatch],
    overrides: Mapping[MemberRef, Override],
    exclusions: AbstractSet[MemberRef],
    ministry_tenant_id: Optional[str],
    *,
    policy: Optional[PrecedencePolicy] = None,
) -> MinistryAggregate:
    base, sources = collect_members(snapshots, ministry_tenant_id, policy=policy)
    return assemble(snapshots, base, sources, overrides, exclusions, ministry_tenant_id)


def assemble(
    snapshots: Mapping[str, TenantBatch],
    base: Sequence[Entity],
    sources: Sequence[str],
    overrides: Mapping[MemberRef, Override],
    exclusions: AbstractSet[MemberRef],
    ministry_tenant_id: Optional[str],
) -> MinistryAggregate:
    """Build the aggregate from an already de-duplicated member base."""

    return MinistryAggregate(
        members=apply_corrections(base, overrides, exclusions, ministry_tenant_id),
        bacentas=_concat(snapshots, "bacentas"),
        attendance_records=_concat(snapshots, "attendance"),
        new_believers=_concat(snapshots, "new_believers"),
        confirmations=_concat(snapshots, "confirmations"),
        guests=_concat(snapshots, "guests"),
        source_tenants=list(sources),
    )


def _concat(snapshots: Mapping[str, TenantBatch], attr: str) -> list[Entity]:
    out: list[Entity] = []
    for tenant_id, batch in snapshots.items():
        for row in getattr(batch, attr):
            if entity_id(row) is None:
                logger.warning("Skipping %s entry without id from tenant %s", attr, tenant_id)
                continue
            out.append(dict(row))
    return out
