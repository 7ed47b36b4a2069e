from __future__ import annotations

from typing import Optional, Sequence

from ...common.keys import MemberRef, member_ref, origin_of
from ...tenants.repository import Entity
from .base import PrecedencePolicy


class MinistryWinsPolicy(PrecedencePolicy):
    """The ministry-tenant copy beats origin copies with the same id."""

    def dedupe(self, candidates: Sequence[Entity], *, ministry_tenant_id: Optional[str]) -> list[Entity]:
        mirror_ids = {
            str(m["id"]) for m in candidates if ministry_tenant_id and origin_of(m) == ministry_tenant_id
        }

        seen: set[MemberRef] = set()
        out: list[Entity] = []
        for m in candidates:
            source = origin_of(m, "unknown")
            if source != ministry_tenant_id and str(m["id"]) in mirror_ids:
                continue
            key = member_ref(source, m["id"])
            if key in seen:
                continue
            seen.add(key)
            out.append(m)
        return out
