from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.enums import PrecedenceRule
from ..core.exceptions import ValidationError
from .policies.base import PrecedencePolicy
from .policies.ministry_wins import MinistryWinsPolicy
from .policies.origin_wins import OriginWinsPolicy


@dataclass
class PrecedencePolicyFactory:
    """Factory Pattern: choose the de-duplication strategy from configuration."""

    def for_name(self, name: Optional[str]) -> PrecedencePolicy:
        if not name:
            return OriginWinsPolicy()
        try:
            rule = PrecedenceRule(str(name).strip().lower())
        except ValueError:
            raise ValidationError(f"Unknown precedence policy: {name}") from None

        if rule == PrecedenceRule.MINISTRY_WINS:
            return MinistryWinsPolicy()
        return OriginWinsPolicy()
