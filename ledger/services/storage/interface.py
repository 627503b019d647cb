"""
Storage contracts of the ledger.

DESIGN DECISION: Services only see these abstract classes. The in-memory
backend and the Google Sheets backend implement them, and the engine
cannot tell which one it runs on.

The interface mirrors what a document store gives us: insert, find by
filter, update, delete, count, uniqueness on (owner, name) and ONE atomic
primitive, `increment_balance`. Everything else in the engine is built on
top of these.
"""

from abc import ABC, abstractmethod
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
)
from ledger.models.audit import AuditEvent


class WalletStorageInterface(ABC):
    """
    Abstract interface for wallet storage operations.

    Any storage implementation must enforce unique (user_id, name).
    """

    @abstractmethod
    async def save_wallet(self, wallet: Wallet) -> bool:
        """
        Insert a new wallet.

        Raises:
            DuplicateError: If the owner already has a wallet with this name
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_wallet_by_id(self, wallet_id: UUID) -> Optional[Wallet]:
        """Retrieve a wallet, or None if it doesn't exist."""
        pass

    @abstractmethod
    async def update_wallet(self, wallet: Wallet) -> bool:
        """
        Replace the stored metadata of an existing wallet.

        The stored balance is left untouched: balance moves only through
        `increment_balance`.

        Raises:
            RecordNotFoundError: If wallet doesn't exist
            DuplicateError: If the new name collides with another wallet
        """
        pass

    @abstractmethod
    async def delete_wallet(self, wallet_id: UUID) -> bool:
        """Delete a wallet. Returns False if it didn't exist."""
        pass

    @abstractmethod
    async def list_wallets(
        self,
        user_id: UUID,
        include_inactive: bool = False,
    ) -> list[Wallet]:
        """List an owner's wallets ordered by name."""
        pass

    @abstractmethod
    async def increment_balance(self, wallet_id: UUID, delta: Decimal) -> Decimal:
        """
        Atomically add `delta` (signed) to a wallet balance.

        Returns:
            The balance after the increment

        Raises:
            RecordNotFoundError: If wallet doesn't exist
        """
        pass


class CategoryStorageInterface(ABC):
    """
    Abstract interface for category storage.

    Any storage implementation must enforce unique (user_id, name).
    """

    @abstractmethod
    async def save_category(self, category: Category) -> bool:
        """
        Insert a new category.

        Raises:
            DuplicateError: If the owner already has a category with this name
        """
        pass

    @abstractmethod
    async def get_category_by_id(self, category_id: UUID) -> Optional[Category]:
        pass

    @abstractmethod
    async def update_category(self, category: Category) -> bool:
        """
        Raises:
            RecordNotFoundError: If category doesn't exist
            DuplicateError: If the new name collides with another category
        """
        pass

    @abstractmethod
    async def delete_category(self, category_id: UUID) -> bool:
        pass

    @abstractmethod
    async def list_categories(
        self,
        user_id: UUID,
        category_type: Optional[TransactionType] = None,
    ) -> list[Category]:
        """List an owner's categories ordered by name."""
        pass


class TransactionStorageInterface(ABC):
    """Abstract interface for transaction records."""

    @abstractmethod
    async def save_transaction(self, transaction: Transaction) -> bool:
        pass

    @abstractmethod
    async def get_transaction_by_id(
        self,
        transaction_id: UUID,
    ) -> Optional[Transaction]:
        pass

    @abstractmethod
    async def update_transaction(self, transaction: Transaction) -> bool:
        """
        Raises:
            RecordNotFoundError: If transaction doesn't exist
        """
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: UUID) -> bool:
        pass

    @abstractmethod
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
        """
        List an owner's transactions with optional filters.

        Args:
            user_id: Owner of the transactions
            transaction_type: Filter by income/expense
            date_from: Transactions on or after this date
            date_to: Transactions on or before this date
            category_ids: Transactions whose category is in this set
            wallet_id: Transactions referencing this wallet
            tag: Transactions carrying this tag
            limit: Maximum number of results (None = all)
            offset: Number of results to skip

        Returns:
            Matching transactions, newest date first
        """
        pass

    @abstractmethod
    async def count_transactions(
        self,
        wallet_id: Optional[UUID] = None,
        category_id: Optional[UUID] = None,
    ) -> int:
        """Count transactions referencing a wallet and/or a category."""
        pass


class BudgetStorageInterface(ABC):
    """Abstract interface for budgets."""

    @abstractmethod
    async def save_budget(self, budget: Budget) -> bool:
        pass

    @abstractmethod
    async def get_budget_by_id(self, budget_id: UUID) -> Optional[Budget]:
        pass

    @abstractmethod
    async def update_budget(self, budget: Budget) -> bool:
        """
        Raises:
            RecordNotFoundError: If budget doesn't exist
        """
        pass

    @abstractmethod
    async def delete_budget(self, budget_id: UUID) -> bool:
        pass

    @abstractmethod
    async def list_budgets(
        self,
        user_id: UUID,
        include_inactive: bool = False,
    ) -> list[Budget]:
        pass


class AuditStorageInterface(ABC):
    """
    Activity log storage.

    There is no update or delete: events are only ever appended.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Store one event. False means it was not stored."""
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Events of one operation, oldest first.

        A transfer yields both legs, both balance moves and the summary.
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """History of one record, oldest first."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Latest events across all entities, newest first."""
        pass


class StorageError(Exception):
    """Any failure reported by a storage backend."""
    pass


class RecordNotFoundError(StorageError):
    """No record with the given id."""
    pass


class DuplicateError(StorageError):
    """A (owner, name) pair is already taken."""
    pass


class StorageConnectionError(StorageError):
    """The backend is unreachable or misconfigured."""
    pass
