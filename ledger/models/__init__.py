"""
Data Models Package

This package contains all Pydantic models used by the ledger.
All data flowing through the core must conform to these schemas.
"""

from ledger.models.ledger import (
    DEFAULT_CURRENCY,
    Budget,
    BudgetAlert,
    BudgetPeriod,
    BudgetPeriodType,
    BudgetProgress,
    Category,
    CategoryStat,
    CurrencyTotal,
    MonthlyStats,
    Transaction,
    TransactionFilters,
    TransactionType,
    TransferResult,
    ValidationIssue,
    Wallet,
    WalletType,
    utc_now,
    utc_today,
)
from ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "DEFAULT_CURRENCY",
    "Budget",
    "BudgetAlert",
    "BudgetPeriod",
    "BudgetPeriodType",
    "BudgetProgress",
    "Category",
    "CategoryStat",
    "CurrencyTotal",
    "MonthlyStats",
    "Transaction",
    "TransactionFilters",
    "TransactionType",
    "TransferResult",
    "ValidationIssue",
    "Wallet",
    "WalletType",
    "utc_now",
    "utc_today",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
