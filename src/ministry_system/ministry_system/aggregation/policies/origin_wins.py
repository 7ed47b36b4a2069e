from __future__ import annotations

from typing import Optional, Sequence

from ...common.keys import MemberRef, member_ref, origin_of
from ...tenants.repository import Entity
from .base import PrecedencePolicy


class OriginWinsPolicy(PrecedencePolicy):
    """The canonical origin-tenant copy beats its ministry-tenant mirror."""

    def dedupe(self, candidates: Sequence[Entity], *, ministry_tenant_id: Optional[str]) -> list[Entity]:
        origin_ids: set[str] = set()
        for m in candidates:
            if not ministry_tenant_id or origin_of(m) != ministry_tenant_id:
                origin_ids.add(str(m["id"]))

        seen: set[MemberRef] = set()
        out: list[Entity] = []
        for m in candidates:
            source = origin_of(m, "unknown")
            is_mirror = bool(ministry_tenant_id) and source == ministry_tenant_id
            if is_mirror and str(m["id"]) in origin_ids:
                continue
            key = member_ref(source, m["id"])
            if key in seen:
                continue
            seen.add(key)
            out.append(m)
        return out
