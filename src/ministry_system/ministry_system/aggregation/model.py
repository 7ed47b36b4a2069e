from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from ..tenants.repository import Entity


@dataclass(frozen=True)
class TenantBatch:
    """Latest known records of one tenant partition."""

    members: list[Entity] = field(default_factory=list)
    attendance: list[Entity] = field(default_factory=list)
    bacentas: list[Entity] = field(default_factory=list)
    new_believers: list[Entity] = field(default_factory=list)
    confirmations: list[Entity] = field(default_factory=list)
    guests: list[Entity] = field(default_factory=list)


@dataclass(frozen=True)
class MinistryAggregate:
    """Read-model: merged, corrected, de-duplicated cross-tenant view of one ministry."""

    members: list[Entity] = field(default_factory=list)
    bacentas: list[Entity] = field(default_factory=list)
    attendance_records: list[Entity] = field(default_factory=list)
    new_believers: list[Entity] = field(default_factory=list)
    confirmations: list[Entity] = field(default_factory=list)
    guests: list[Entity] = field(default_factory=list)
    source_tenants: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
