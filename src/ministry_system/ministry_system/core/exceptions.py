class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class SessionStateError(DomainError):
    """Raised when a ministry session is driven through an invalid transition."""


class CorrectionWriteError(DomainError):
    """Raised when an override or exclusion could not be persisted."""
