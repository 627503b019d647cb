"""
Shared fixtures for the ledger tests.

Test strategy:
1. Unit tests for individual components (models, validator, period maths)
2. Flow tests for the engine against the in-memory backend
3. Google Sheets backend against a fake spreadsheet (no real API calls)
"""

from datetime import date
from uuid import uuid4

import pytest

from ledger.config import LedgerSettings
from ledger.orchestrator import Ledger, LedgerStorages
from ledger.services.storage import (
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
    InMemoryCategoryStorage,
    InMemoryDatabase,
    InMemoryTransactionStorage,
    InMemoryWalletStorage,
    StorageError,
)


class FlakyWalletStorage(InMemoryWalletStorage):
    """Wallet storage that records increments and can be told to fail them."""

    def __init__(self, db):
        super().__init__(db)
        self.increments = []
        self.fail_increment_for = set()

    async def increment_balance(self, wallet_id, delta):
        if wallet_id in self.fail_increment_for:
            raise StorageError("balance write failed")
        self.increments.append((wallet_id, delta))
        return await super().increment_balance(wallet_id, delta)


class FlakyTransactionStorage(InMemoryTransactionStorage):
    """Transaction storage whose update/delete can be told to fail."""

    def __init__(self, db):
        super().__init__(db)
        self.fail_update = False
        self.fail_delete = False

    async def update_transaction(self, transaction):
        if self.fail_update:
            raise StorageError("record write failed")
        return await super().update_transaction(transaction)

    async def delete_transaction(self, transaction_id):
        if self.fail_delete:
            raise StorageError("record delete failed")
        return await super().delete_transaction(transaction_id)


@pytest.fixture
def settings():
    return LedgerSettings(_env_file=None)


@pytest.fixture
def db():
    return InMemoryDatabase()


@pytest.fixture
def wallet_storage(db):
    return FlakyWalletStorage(db)


@pytest.fixture
def transaction_storage(db):
    return FlakyTransactionStorage(db)


@pytest.fixture
def ledger(db, settings, wallet_storage, transaction_storage):
    storages = LedgerStorages(
        wallets=wallet_storage,
        categories=InMemoryCategoryStorage(db),
        transactions=transaction_storage,
        budgets=InMemoryBudgetStorage(db),
        audit=InMemoryAuditStorage(db),
    )
    return Ledger(storages, settings=settings)


@pytest.fixture
def user_id():
    return uuid4()


@pytest.fixture
def make_wallet(ledger, user_id):
    async def _make(name="Main", initial_balance=0, **fields):
        return await ledger.wallets.create({
            "user_id": fields.pop("user_id", user_id),
            "name": name,
            "initial_balance": initial_balance,
            **fields,
        })
    return _make


@pytest.fixture
def make_category(ledger, user_id):
    async def _make(name="Food", type="expense", **fields):
        return await ledger.categories.create({
            "user_id": fields.pop("user_id", user_id),
            "name": name,
            "type": type,
            **fields,
        })
    return _make


@pytest.fixture
def make_transaction(ledger, user_id):
    async def _make(amount=100000, type="expense", day=date(2024, 1, 15), **fields):
        return await ledger.transactions.create({
            "user_id": fields.pop("user_id", user_id),
            "amount": amount,
            "type": type,
            "date": day,
            **fields,
        })
    return _make
