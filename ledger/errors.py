"""
Ledger errors.

A closed set of conditions surfaced to callers. Each one is distinct and
catchable; none is used for expected branching inside the engine.
"""

from typing import Optional
from uuid import UUID

from ledger.models.ledger import ValidationIssue


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class ValidationError(LedgerError):
    """Missing/invalid field, non-positive amount, unknown enum value."""

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        self.issues = issues or []
        super().__init__(message)

    @property
    def fields(self) -> list[str]:
        return [issue.field for issue in self.issues]


class NotFoundError(LedgerError):
    """Referenced id does not resolve to an existing, owner-matching record."""

    def __init__(self, entity_type: str, entity_id: UUID):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type.capitalize()} not found: {entity_id}")


class ConflictError(LedgerError):
    """Duplicate name, or deletion of a record that is still referenced."""
    pass


class InsufficientFundsError(LedgerError):
    """Transfer amount exceeds the source wallet balance."""

    def __init__(self, wallet_id: UUID, balance, amount):
        self.wallet_id = wallet_id
        self.balance = balance
        self.amount = amount
        super().__init__("Insufficient funds")


class DataIntegrityError(LedgerError):
    """
    A compensation step failed after a partial mutation.

    FATAL: the ledger may now be inconsistent. The incident is always
    written to the activity log with critical severity before this is
    raised. `cause` is the error that triggered the compensation.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)
