from __future__ import annotations

from ..core.exceptions import ValidationError


def require_non_empty(value: str, field_name: str) -> str:
    if not value or not str(value).strip():
        raise ValidationError(f"{field_name} must not be empty")
    return str(value).strip()


def require_subset(keys, allowed, field_name: str) -> None:
    unknown = sorted(set(keys) - set(allowed))
    if unknown:
        raise ValidationError(f"{field_name} does not accept: {', '.join(unknown)}")
