from __future__ import annotations

from typing import Any, Mapping, Optional

from ..core.constants import ORIGIN_TENANT_FIELD

# Identity of a member across tenants: (origin tenant id, member id).
MemberRef = tuple[str, str]


def member_ref(tenant_id: Optional[str], member_id: Any) -> MemberRef:
    return (str(tenant_id), str(member_id))


def member_key(tenant_id: str, member_id: str) -> str:
    """Document id of a correction: ``"{tenant_id}_{member_id}"``.

    Not unique once ids contain ``_``; compare members with ``member_ref``.
    """
    return f"{tenant_id}_{member_id}"


def entity_id(entity: Mapping[str, Any]) -> Optional[str]:
    value = entity.get("id")
    if value is None or value == "":
        return None
    return str(value)


def origin_of(entity: Mapping[str, Any], default: Optional[str] = None) -> Optional[str]:
    return entity.get(ORIGIN_TENANT_FIELD) or default
