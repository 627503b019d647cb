"""
In-Memory Storage Implementation

A process-local document store. It is the default backend and the one
the test-suite runs against.

Every primitive runs under a single asyncio.Lock, so `increment_balance`
is a true atomic read-add-write even when many coroutines mutate the same
wallet. Records are copied on the way in and out; callers never share
mutable state with the store.
"""

import asyncio
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from ledger.models.ledger import (
    Budget,
    Category,
    Transaction,
    TransactionType,
    Wallet,
    utc_now,
)
from ledger.models.audit import AuditEvent
from ledger.services.storage.filters import select_transactions
from ledger.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    CategoryStorageInterface,
    DuplicateError,
    RecordNotFoundError,
    TransactionStorageInterface,
    WalletStorageInterface,
)


class InMemoryDatabase:
    """
    Shared state for the in-memory storages.

    Plays the role GoogleSheetsClient plays for the Sheets backend:
    one instance is handed to every entity storage.
    """

    def __init__(self):
        self.wallets: dict[UUID, Wallet] = {}
        self.categories: dict[UUID, Category] = {}
        self.transactions: dict[UUID, Transaction] = {}
        self.budgets: dict[UUID, Budget] = {}
        self.audit_events: list[AuditEvent] = []
        self.lock = asyncio.Lock()

    def clear(self) -> None:
        self.wallets.clear()
        self.categories.clear()
        self.transactions.clear()
        self.budgets.clear()
        self.audit_events.clear()


def _name_taken(records, user_id: UUID, name: str, exclude_id: Optional[UUID]) -> bool:
    return any(
        r.user_id == user_id and r.name == name and r.id != exclude_id
        for r in records
    )


class InMemoryWalletStorage(WalletStorageInterface):
    """In-memory wallet storage with unique (user_id, name)."""

    def __init__(self, db: Optional[InMemoryDatabase] = None):
        self._db = db or InMemoryDatabase()

    async def save_wallet(self, wallet: Wallet) -> bool:
        async with self._db.lock:
            if _name_taken(self._db.wallets.values(), wallet.user_id, wallet.name, None):
                raise DuplicateError(f"Wallet name already exists: {wallet.name}")
            self._db.wallets[wallet.id] = wallet.model_copy(deep=True)
            return True

    async def get_wallet_by_id(self, wallet_id: UUID) -> Optional[Wallet]:
        async with self._db.lock:
            wallet = self._db.wallets.get(wallet_id)
            return wallet.model_copy(deep=True) if wallet else None

    async def update_wallet(self, wallet: Wallet) -> bool:
        async with self._db.lock:
            stored = self._db.wallets.get(wallet.id)
            if stored is None:
                raise RecordNotFoundError(f"Wallet not found: {wallet.id}")
            if _name_taken(self._db.wallets.values(), wallet.user_id, wallet.name, wallet.id):
                raise DuplicateError(f"Wallet name already exists: {wallet.name}")
            self._db.wallets[wallet.id] = wallet.model_copy(
                update={"balance": stored.balance, "updated_at": utc_now()},
                deep=True,
            )
            return True

    async def delete_wallet(self, wallet_id: UUID) -> bool:
        async with self._db.lock:
            return self._db.wallets.pop(wallet_id, None) is not None

    async def list_wallets(
        self,
        user_id: UUID,
        include_inactive: bool = False,
    ) -> list[Wallet]:
        async with self._db.lock:
            wallets = [
                w.model_copy(deep=True)
                for w in self._db.wallets.values()
                if w.user_id == user_id and (include_inactive or w.is_active)
            ]
        wallets.sort(key=lambda w: w.name)
        return wallets

    async def increment_balance(self, wallet_id: UUID, delta: Decimal) -> Decimal:
        async with self._db.lock:
            wallet = self._db.wallets.get(wallet_id)
            if wallet is None:
                raise RecordNotFoundError(f"Wallet not found: {wallet_id}")
            new_balance = wallet.balance + delta
            self._db.wallets[wallet_id] = wallet.model_copy(
                update={"balance": new_balance, "updated_at": utc_now()}
            )
            return new_balance


class InMemoryCategoryStorage(CategoryStorageInterface):
    """In-memory category storage with unique (user_id, name)."""

    def __init__(self, db: Optional[InMemoryDatabase] = None):
        self._db = db or InMemoryDatabase()

    async def save_category(self, category: Category) -> bool:
        async with self._db.lock:
            if _name_taken(self._db.categories.values(), category.user_id, category.name, None):
                raise DuplicateError(f"Category already exists: {category.name}")
            self._db.categories[category.id] = category.model_copy(deep=True)
            return True

    async def get_category_by_id(self, category_id: UUID) -> Optional[Category]:
        async with self._db.lock:
            category = self._db.categories.get(category_id)
            return category.model_copy(deep=True) if category else None

    async def update_category(self, category: Category) -> bool:
        async with self._db.lock:
            if category.id not in self._db.categories:
                raise RecordNotFoundError(f"Category not found: {category.id}")
            if _name_taken(
                self._db.categories.values(), category.user_id, category.name, category.id
            ):
                raise DuplicateError(f"Category already exists: {category.name}")
            self._db.categories[category.id] = category.model_copy(
                update={"updated_at": utc_now()}, deep=True
            )
            return True

    async def delete_category(self, category_id: UUID) -> bool:
        async with self._db.lock:
            return self._db.categories.pop(category_id, None) is not None

    async def list_categories(
        self,
        user_id: UUID,
        category_type: Optional[TransactionType] = None,
    ) -> list[Category]:
        async with self._db.lock:
            categories = [
                c.model_copy(deep=True)
                for c in self._db.categories.values()
                if c.user_id == user_id
                and (category_type is None or c.type == category_type)
            ]
        categories.sort(key=lambda c: c.name)
        return categories


class InMemoryTransactionStorage(TransactionStorageInterface):
    """In-memory transaction records."""

    def __init__(self, db: Optional[InMemoryDatabase] = None):
        self._db = db or InMemoryDatabase()

    async def save_transaction(self, transaction: Transaction) -> bool:
        async with self._db.lock:
            self._db.transactions[transaction.id] = transaction.model_copy(deep=True)
            return True

    async def get_transaction_by_id(
        self,
        transaction_id: UUID,
    ) -> Optional[Transaction]:
        async with self._db.lock:
            txn = self._db.transactions.get(transaction_id)
            return txn.model_copy(deep=True) if txn else None

    async def update_transaction(self, transaction: Transaction) -> bool:
        async with self._db.lock:
            if transaction.id not in self._db.transactions:
                raise RecordNotFoundError(f"Transaction not found: {transaction.id}")
            self._db.transactions[transaction.id] = transaction.model_copy(
                update={"updated_at": utc_now()}, deep=True
            )
            return True

    async def delete_transaction(self, transaction_id: UUID) -> bool:
        async with self._db.lock:
            return self._db.transactions.pop(transaction_id, None) is not None

    async def list_transactions(
        self,
        user_id: UUID,
        transaction_type: Optional[TransactionType] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        category_ids: Optional[list[UUID]] = None,
        wallet_id: Optional[UUID] = None,
        tag: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Transaction]:
        async with self._db.lock:
            snapshot = [t.model_copy(deep=True) for t in self._db.transactions.values()]
        return select_transactions(
            snapshot,
            user_id=user_id,
            transaction_type=transaction_type,
            date_from=date_from,
            date_to=date_to,
            category_ids=category_ids,
            wallet_id=wallet_id,
            tag=tag,
            limit=limit,
            offset=offset,
        )

    async def count_transactions(
        self,
        wallet_id: Optional[UUID] = None,
        category_id: Optional[UUID] = None,
    ) -> int:
        async with self._db.lock:
            return sum(
                1
                for t in self._db.transactions.values()
                if (wallet_id is None or t.wallet_id == wallet_id)
                and (category_id is None or t.category_id == category_id)
            )


class InMemoryBudgetStorage(BudgetStorageInterface):
    """In-memory budgets."""

    def __init__(self, db: Optional[InMemoryDatabase] = None):
        self._db = db or InMemoryDatabase()

    async def save_budget(self, budget: Budget) -> bool:
        async with self._db.lock:
            self._db.budgets[budget.id] = budget.model_copy(deep=True)
            return True

    async def get_budget_by_id(self, budget_id: UUID) -> Optional[Budget]:
        async with self._db.lock:
            budget = self._db.budgets.get(budget_id)
            return budget.model_copy(deep=True) if budget else None

    async def update_budget(self, budget: Budget) -> bool:
        async with self._db.lock:
            if budget.id not in self._db.budgets:
                raise RecordNotFoundError(f"Budget not found: {budget.id}")
            self._db.budgets[budget.id] = budget.model_copy(
                update={"updated_at": utc_now()}, deep=True
            )
            return True

    async def delete_budget(self, budget_id: UUID) -> bool:
        async with self._db.lock:
            return self._db.budgets.pop(budget_id, None) is not None

    async def list_budgets(
        self,
        user_id: UUID,
        include_inactive: bool = False,
    ) -> list[Budget]:
        async with self._db.lock:
            budgets = [
                b.model_copy(deep=True)
                for b in self._db.budgets.values()
                if b.user_id == user_id and (include_inactive or b.is_active)
            ]
        budgets.sort(key=lambda b: b.created_at)
        return budgets


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only in-memory activity log."""

    def __init__(self, db: Optional[InMemoryDatabase] = None):
        self._db = db or InMemoryDatabase()

    async def append_event(self, event: AuditEvent) -> bool:
        async with self._db.lock:
            self._db.audit_events.append(event.model_copy(deep=True))
            return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        async with self._db.lock:
            events = [e for e in self._db.audit_events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        async with self._db.lock:
            events = [
                e for e in self._db.audit_events
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        async with self._db.lock:
            events = list(self._db.audit_events)
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
