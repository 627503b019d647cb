"""
Ledger consistency engine.

Keeps wallet balances, transaction records and budget progress
consistent under create, update, delete and transfer.
"""

from ledger.engine.budgets import BudgetService, resolve_period
from ledger.engine.categories import DEFAULT_CATEGORIES, CategoryService
from ledger.engine.transactions import TransactionEngine, net_wallet_deltas
from ledger.engine.transfers import TRANSFER_TAG, TransferService
from ledger.engine.wallets import BalanceOperation, WalletService

__all__ = [
    "BalanceOperation",
    "BudgetService",
    "CategoryService",
    "DEFAULT_CATEGORIES",
    "TRANSFER_TAG",
    "TransactionEngine",
    "TransferService",
    "WalletService",
    "net_wallet_deltas",
    "resolve_period",
]
