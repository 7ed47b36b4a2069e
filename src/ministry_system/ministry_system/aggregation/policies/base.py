from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from ...tenants.repository import Entity


class PrecedencePolicy(ABC):
    """Strategy Pattern: decide which copy of a member survives de-duplication.

    ``candidates`` are already tagged with their source tenant and have a
    valid id. Implementations must preserve the relative order of the
    survivors.
    """

    @abstractmethod
    def dedupe(self, candidates: Sequence[Entity], *, ministry_tenant_id: Optional[str]) -> list[Entity]:
        raise NotImplementedError
