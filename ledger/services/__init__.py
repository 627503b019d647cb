"""Services package."""

from ledger.services.storage import (
    AuditStorageInterface,
    BudgetStorageInterface,
    CategoryStorageInterface,
    DuplicateError,
    RecordNotFoundError,
    StorageConnectionError,
    StorageError,
    TransactionStorageInterface,
    WalletStorageInterface,
)

__all__ = [
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "CategoryStorageInterface",
    "DuplicateError",
    "RecordNotFoundError",
    "StorageConnectionError",
    "StorageError",
    "TransactionStorageInterface",
    "WalletStorageInterface",
]
