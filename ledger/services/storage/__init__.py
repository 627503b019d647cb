"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
The in-memory store is the default backend; Google Sheets is the
persistent one. Both are swappable behind the same interfaces.
"""

from ledger.services.storage.interface import (
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
from ledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
    InMemoryCategoryStorage,
    InMemoryDatabase,
    InMemoryTransactionStorage,
    InMemoryWalletStorage,
)
from ledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    GoogleSheetsCategoryStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
    GoogleSheetsWalletStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "CategoryStorageInterface",
    "TransactionStorageInterface",
    "WalletStorageInterface",
    # Exceptions
    "DuplicateError",
    "RecordNotFoundError",
    "StorageConnectionError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryBudgetStorage",
    "InMemoryCategoryStorage",
    "InMemoryDatabase",
    "InMemoryTransactionStorage",
    "InMemoryWalletStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsBudgetStorage",
    "GoogleSheetsCategoryStorage",
    "GoogleSheetsClient",
    "GoogleSheetsTransactionStorage",
    "GoogleSheetsWalletStorage",
]
