from __future__ import annotations


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class AuthenticationError(DomainError):
    """Raised when login credentials are invalid."""


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""


class UnauthorizedError(AuthorizationError):
    """Raised when the actor does not hold approval capability."""


class NotFoundError(DomainError):
    """Raised when a referenced absence, report or date has no data."""


class DateLockedError(DomainError):
    """Raised when a mutation targets a date whose consolidation is LOCKED."""

    def __init__(self, report_date, message: str | None = None):
        super().__init__(message or f"Date {report_date} is finalized, unlock it to edit")
        self.report_date = report_date


class NothingToApproveError(DomainError):
    """Raised when approval is requested for a date with no submitted reports."""


class DuplicatesPresentError(DomainError):
    """Raised when approval is blocked by employees listed in several reports."""

    def __init__(self, duplicates):
        self.duplicates = list(duplicates)
        super().__init__(
            f"{len(self.duplicates)} employee(s) appear in more than one submitted report; "
            "resolve the duplicates before approving"
        )


class ConflictError(DomainError):
    """Raised when a transaction lost a lock race and should be retried by the caller."""
