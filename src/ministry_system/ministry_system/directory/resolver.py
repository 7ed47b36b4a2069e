from __future__ import annotations

import logging
from typing import Optional

from ..common.validators import require_non_empty
from ..core.constants import COLLECTION_MEMBERS, MINISTRY_FIELD
from ..tenants.repository import PartitionStore

logger = logging.getLogger(__name__)


class MembershipDirectoryResolver:
    """Use case: find the tenants that host members of a ministry.

    Discovery is an existence check per candidate tenant; activity filtering
    is left to the full fetch. The caller's current and home tenants are
    always included, because their index may be stale or hidden from the
    discovery query.
    """

    def __init__(self, store: PartitionStore):
        self._store = store

    def resolve(
        self,
        ministry_name: str,
        *,
        current_tenant_id: Optional[str] = None,
        home_tenant_id: Optional[str] = None,
    ) -> list[str]:
        ministry_name = require_non_empty(ministry_name, "Ministry name")

        try:
            candidates = list(self._store.list_tenants())
        except Exception:
            logger.warning("Failed to list candidate tenants for %r", ministry_name, exc_info=True)
            candidates = []

        found: list[str] = []
        for tenant_id in candidates:
            if not tenant_id or tenant_id in found:
                continue
            try:
                if self._store.exists_where(tenant_id, COLLECTION_MEMBERS, MINISTRY_FIELD, ministry_name):
                    found.append(tenant_id)
            except Exception:
                logger.warning("Failed to check tenant %s for %r members", tenant_id, ministry_name, exc_info=True)

        for tenant_id in (current_tenant_id, home_tenant_id):
            if tenant_id and tenant_id not in found:
                found.append(tenant_id)

        logger.info("Resolved %d tenant(s) for ministry %r: %s", len(found), ministry_name, found)
        return found
