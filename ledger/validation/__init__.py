"""Validation package."""

from ledger.validation.validator import LedgerValidator, issues_from_pydantic

__all__ = ["LedgerValidator", "issues_from_pydantic"]
