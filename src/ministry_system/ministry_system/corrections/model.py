from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from ..common.keys import MemberRef, member_ref


@dataclass(frozen=True)
class Override:
    """Ministry-scoped field correction for one member of one origin tenant."""

    tenant_id: str
    member_id: str
    fields: Mapping[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> MemberRef:
        return member_ref(self.tenant_id, self.member_id)


@dataclass(frozen=True)
class Exclusion:
    """Marker hiding one member of one origin tenant from the ministry view."""

    tenant_id: str
    member_id: str

    @property
    def key(self) -> MemberRef:
        return member_ref(self.tenant_id, self.member_id)
