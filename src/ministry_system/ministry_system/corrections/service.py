from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping, Optional

from ..common.keys import MemberRef, member_key
from ..common.validators import require_non_empty, require_subset
from ..core.constants import COLLECTION_EXCLUSIONS, COLLECTION_OVERRIDES, OVERRIDABLE_FIELDS
from ..core.exceptions import CorrectionWriteError, ValidationError
from ..tenants.fetch_adapter import TenantFetchAdapter
from ..tenants.repository import Entity, PartitionStore, Unsubscribe
from .model import Exclusion, Override

logger = logging.getLogger(__name__)


def parse_overrides(docs: Iterable[Entity]) -> dict[MemberRef, Override]:
    out: dict[MemberRef, Override] = {}
    for doc in docs:
        ref = _parse_ref(doc, COLLECTION_OVERRIDES)
        if not ref:
            continue
        fields = {k: doc[k] for k in OVERRIDABLE_FIELDS if doc.get(k) is not None}
        ov = Override(tenant_id=ref[0], member_id=ref[1], fields=fields)
        out[ov.key] = ov
    return out


def parse_exclusions(docs: Iterable[Entity]) -> frozenset[MemberRef]:
    keys = set()
    for doc in docs:
        ref = _parse_ref(doc, COLLECTION_EXCLUSIONS)
        if ref:
            keys.add(Exclusion(tenant_id=ref[0], member_id=ref[1]).key)
    return frozenset(keys)


def _parse_ref(doc: Entity, collection: str) -> Optional[tuple[str, str]]:
    member_id = doc.get("member_id")
    source = doc.get("source_tenant_id")
    if not member_id or not source:
        logger.warning("Skipping malformed %s document %r", collection, doc.get("id"))
        return None
    return str(source), str(member_id)


class CorrectionsManager:
    """Holds the live override map and exclusion set of one ministry session.

    Every feed snapshot replaces the corresponding state wholesale.
    """

    def __init__(self, adapter: TenantFetchAdapter):
        self._adapter = adapter
        self._overrides: dict[MemberRef, Override] = {}
        self._exclusions: frozenset[MemberRef] = frozenset()

    @property
    def overrides(self) -> Mapping[MemberRef, Override]:
        return self._overrides

    @property
    def exclusions(self) -> frozenset[MemberRef]:
        return self._exclusions

    def subscribe_overrides(self, ministry_tenant_id: str, on_change: Callable[[], None]) -> Unsubscribe:
        def on_update(docs: list[Entity]) -> None:
            self._overrides = parse_overrides(docs)
            logger.debug("Overrides for %s: %d", ministry_tenant_id, len(self._overrides))
            on_change()

        return self._adapter.subscribe(ministry_tenant_id, COLLECTION_OVERRIDES, on_update)

    def subscribe_exclusions(self, ministry_tenant_id: str, on_change: Callable[[], None]) -> Unsubscribe:
        def on_update(docs: list[Entity]) -> None:
            self._exclusions = parse_exclusions(docs)
            logger.debug("Exclusions for %s: %d", ministry_tenant_id, len(self._exclusions))
            on_change()

        return self._adapter.subscribe(ministry_tenant_id, COLLECTION_EXCLUSIONS, on_update)

    def load_once(self, ministry_tenant_id: str) -> None:
        """Replace both states from one-shot fetches (non-live aggregation)."""

        self._overrides = parse_overrides(self._adapter.fetch_once(ministry_tenant_id, COLLECTION_OVERRIDES))
        self._exclusions = parse_exclusions(self._adapter.fetch_once(ministry_tenant_id, COLLECTION_EXCLUSIONS))


class CorrectionsService:
    """Use case: author overrides and exclusions in a ministry tenant."""

    def __init__(self, store: PartitionStore, *, clock: Callable[[], datetime] | None = None):
        self._store = store
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def exclude_member(self, *, ministry_tenant_id: str, source_tenant_id: str, member_id: str) -> None:
        ministry_tenant_id, source_tenant_id, member_id = self._ids(ministry_tenant_id, source_tenant_id, member_id)
        self._put(
            ministry_tenant_id,
            COLLECTION_EXCLUSIONS,
            member_key(source_tenant_id, member_id),
            {"member_id": member_id, "source_tenant_id": source_tenant_id, "created_at": self._now()},
            "exclude member from ministry view",
        )

    def include_member(self, *, ministry_tenant_id: str, source_tenant_id: str, member_id: str) -> bool:
        ministry_tenant_id, source_tenant_id, member_id = self._ids(ministry_tenant_id, source_tenant_id, member_id)
        return self._delete(
            ministry_tenant_id,
            COLLECTION_EXCLUSIONS,
            member_key(source_tenant_id, member_id),
            "include member back to ministry view",
        )

    def set_override(self, *, ministry_tenant_id: str, source_tenant_id: str, member_id: str, **fields: Any) -> None:
        ministry_tenant_id, source_tenant_id, member_id = self._ids(ministry_tenant_id, source_tenant_id, member_id)
        require_subset(fields, OVERRIDABLE_FIELDS, "Override")
        patch = {k: v for k, v in fields.items() if v is not None}
        if not patch:
            raise ValidationError("Override needs at least one field")

        doc_id = member_key(source_tenant_id, member_id)
        current: dict[str, Any] = {}
        try:
            for row in self._store.fetch_where(ministry_tenant_id, COLLECTION_OVERRIDES, "id", doc_id):
                current = dict(row)
        except Exception as e:
            raise CorrectionWriteError(f"Failed to read ministry member overrides: {e}") from e

        current.update(patch)
        current.update({"member_id": member_id, "source_tenant_id": source_tenant_id, "updated_at": self._now()})
        current.pop("id", None)
        self._put(ministry_tenant_id, COLLECTION_OVERRIDES, doc_id, current, "set ministry member overrides")

    def clear_override(self, *, ministry_tenant_id: str, source_tenant_id: str, member_id: str) -> bool:
        ministry_tenant_id, source_tenant_id, member_id = self._ids(ministry_tenant_id, source_tenant_id, member_id)
        return self._delete(
            ministry_tenant_id,
            COLLECTION_OVERRIDES,
            member_key(source_tenant_id, member_id),
            "clear ministry member overrides",
        )

    def remove_member_from_ministry(self, *, ministry_tenant_id: str, source_tenant_id: str, member_id: str) -> None:
        """Hide a member permanently from the ministry view and drop its overrides.

        The origin tenant's record is left untouched.
        """

        self.exclude_member(ministry_tenant_id=ministry_tenant_id, source_tenant_id=source_tenant_id, member_id=member_id)
        try:
            self.clear_override(
                ministry_tenant_id=ministry_tenant_id, source_tenant_id=source_tenant_id, member_id=member_id
            )
        except CorrectionWriteError:
            logger.warning("Failed to clear overrides for removed member %s (%s)", member_id, source_tenant_id)

    def _ids(self, ministry_tenant_id: str, source_tenant_id: str, member_id: str) -> tuple[str, str, str]:
        return (
            require_non_empty(ministry_tenant_id, "Ministry tenant"),
            require_non_empty(source_tenant_id, "Source tenant"),
            require_non_empty(member_id, "Member id"),
        )

    def _now(self) -> str:
        return self._clock().isoformat()

    def _put(self, tenant_id: str, collection: str, doc_id: str, data: dict, action: str) -> None:
        try:
            self._store.put(tenant_id, collection, doc_id, data)
        except Exception as e:
            raise CorrectionWriteError(f"Failed to {action}: {e}") from e

    def _delete(self, tenant_id: str, collection: str, doc_id: str, action: str) -> bool:
        try:
            return bool(self._store.delete(tenant_id, collection, doc_id))
        except Exception as e:
            raise CorrectionWriteError(f"Failed to {action}: {e}") from e
