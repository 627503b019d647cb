"""
Main Orchestrator for the Personal Ledger

This module ties the storage backend, the audit logger and the ledger
services together.

DESIGN DECISION: Every service shares ONE set of storages and ONE audit
logger. The Transaction Engine is the only component that writes
transactions, and it reaches wallet balances only through the Wallet
Store, so there is a single balance write path per ledger.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import structlog

from ledger.audit import AuditLogger
from ledger.config import LedgerSettings, get_settings
from ledger.engine import (
    BudgetService,
    CategoryService,
    TransactionEngine,
    TransferService,
    WalletService,
)
from ledger.services.storage import (
    AuditStorageInterface,
    BudgetStorageInterface,
    CategoryStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    GoogleSheetsCategoryStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
    GoogleSheetsWalletStorage,
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
    InMemoryCategoryStorage,
    InMemoryDatabase,
    InMemoryTransactionStorage,
    InMemoryWalletStorage,
    TransactionStorageInterface,
    WalletStorageInterface,
)
from ledger.validation import LedgerValidator

logger = structlog.get_logger(__name__)


@dataclass
class LedgerStorages:
    """One storage per entity, all on the same backend."""

    wallets: WalletStorageInterface
    categories: CategoryStorageInterface
    transactions: TransactionStorageInterface
    budgets: BudgetStorageInterface
    audit: AuditStorageInterface


def memory_storages(db: Optional[InMemoryDatabase] = None) -> LedgerStorages:
    db = db or InMemoryDatabase()
    return LedgerStorages(
        wallets=InMemoryWalletStorage(db),
        categories=InMemoryCategoryStorage(db),
        transactions=InMemoryTransactionStorage(db),
        budgets=InMemoryBudgetStorage(db),
        audit=InMemoryAuditStorage(db),
    )


def google_sheets_storages(client: Optional[GoogleSheetsClient] = None) -> LedgerStorages:
    client = client or GoogleSheetsClient()
    return LedgerStorages(
        wallets=GoogleSheetsWalletStorage(client),
        categories=GoogleSheetsCategoryStorage(client),
        transactions=GoogleSheetsTransactionStorage(client),
        budgets=GoogleSheetsBudgetStorage(client),
        audit=GoogleSheetsAuditStorage(client),
    )


class Ledger:
    """
    Facade over the ledger services.

    Usage:
        ledger = create_ledger()
        wallet = await ledger.wallets.create({...})
        txn_id = await ledger.transactions.create({...})
        result = await ledger.transfers.transfer(a.id, b.id, 300_000, "Rent share")
        alerts = await ledger.budgets.check_budget_alerts(user_id)
    """

    def __init__(
        self,
        storages: LedgerStorages,
        settings: Optional[LedgerSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self.settings = settings or get_settings().app
        self.storages = storages
        self.audit_logger = audit_logger or AuditLogger(storages.audit)

        validator = LedgerValidator(self.settings)
        common = dict(
            audit_logger=self.audit_logger,
            validator=validator,
            settings=self.settings,
        )

        self.wallets = WalletService(storages.wallets, storages.transactions, **common)
        self.categories = CategoryService(storages.categories, storages.transactions, **common)
        self.transactions = TransactionEngine(
            storages.transactions,
            self.wallets,
            storages.categories,
            **common,
        )
        self.transfers = TransferService(self.transactions, self.wallets, **common)
        self.budgets = BudgetService(
            storages.budgets,
            storages.transactions,
            storages.categories,
            **common,
        )


def configure_logging(settings: LedgerSettings) -> str:
    """
    Route structlog through the stdlib root logger.

    debug_mode forces DEBUG whatever log_level says. Returns the level used.
    """
    level = "DEBUG" if settings.debug_mode else settings.log_level
    logging.basicConfig(level=level, format="%(message)s")
    logging.getLogger().setLevel(level)
    return level


def create_ledger(
    backend: Optional[str] = None,
    settings: Optional[LedgerSettings] = None,
    sheets_client: Optional[GoogleSheetsClient] = None,
) -> Ledger:
    """
    Factory function to create a fully wired ledger.

    Args:
        backend: "memory" or "google_sheets". Defaults to the
                configured storage_backend.
        settings: Ledger settings (default: loaded from the environment)
        sheets_client: Pre-built Sheets client (google_sheets backend only)

    Returns:
        A Ledger whose services share one backend and one audit logger
    """
    settings = settings or get_settings().app
    configure_logging(settings)
    backend = backend or settings.storage_backend

    if backend == "memory":
        storages = memory_storages()
    elif backend == "google_sheets":
        storages = google_sheets_storages(sheets_client)
    else:
        raise ValueError(f"Unknown storage backend: {backend}")

    logger.info("ledger_created", backend=backend, environment=settings.app_environment)
    return Ledger(storages, settings=settings)
