"""
Wallet Store

Owns wallet records and their running balance.

CRITICAL: After creation a balance moves ONLY through `apply_delta`,
which delegates to the storage's atomic increment. Nothing in the
ledger reads a balance, adds to it and writes it back.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional
from uuid import UUID

from ledger.audit import AuditLogger
from ledger.config import LedgerSettings
from ledger.engine.base import LedgerService, owned
from ledger.errors import ConflictError, NotFoundError, ValidationError
from ledger.models.audit import AuditEventType
from ledger.models.ledger import CurrencyTotal, ValidationIssue, Wallet
from ledger.queries import currency_totals
from ledger.services.storage import (
    DuplicateError,
    RecordNotFoundError,
    TransactionStorageInterface,
    WalletStorageInterface,
)
from ledger.validation import LedgerValidator


WALLET_MUTABLE_FIELDS = {
    "name",
    "description",
    "type",
    "currency",
    "icon",
    "color",
    "is_active",
    "exclude_from_stats",
}

BALANCE_IMMUTABLE = {
    "balance": "Wallet balance changes only through transactions or adjust_balance",
}


class BalanceOperation(str, Enum):
    """Direction of a manual balance adjustment."""
    INCREMENT = "increment"
    DECREMENT = "decrement"


class WalletService(LedgerService):
    """
    Wallet CRUD plus the single balance write path.

    Usage:
        wallets = WalletService(wallet_storage, transaction_storage)
        wallet = await wallets.create({"user_id": uid, "name": "Cash", "initial_balance": 1000})
    """

    entity_type = "wallet"

    def __init__(
        self,
        storage: WalletStorageInterface,
        transaction_storage: TransactionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[LedgerValidator] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        super().__init__(audit_logger, validator, settings)
        self._storage = storage
        self._transactions = transaction_storage

    async def create(self, data: Mapping[str, Any]) -> Wallet:
        """
        Create a wallet.

        `initial_balance` (default 0) becomes the opening balance. The
        currency defaults to the configured default currency.

        Raises:
            ValidationError: invalid payload
            ConflictError: the owner already has a wallet with this name
        """
        payload = dict(data)
        initial_balance = payload.pop("initial_balance", Decimal("0"))
        payload.setdefault("currency", self._settings.default_currency)

        wallet = await self._validated(
            self._validator.validate_new,
            Wallet,
            payload,
            self.entity_type,
            immutable_messages={"balance": "Use initial_balance to set the opening balance"},
            server_values={"balance": initial_balance},
            user_id=payload.get("user_id"),
        )

        try:
            await self._storage.save_wallet(wallet)
        except DuplicateError as e:
            raise ConflictError("Wallet name already exists") from e

        await self._audit_change(
            AuditEventType.WALLET_CREATED,
            wallet,
            f"Wallet '{wallet.name}' created",
            details={
                "currency": wallet.currency,
                "initial_balance": str(wallet.balance),
            },
        )
        return wallet

    async def get_by_id(self, wallet_id: UUID, user_id: Optional[UUID] = None) -> Wallet:
        wallet = await self._storage.get_wallet_by_id(wallet_id)
        return owned(wallet, self.entity_type, wallet_id, user_id)

    async def get_user_wallets(self, user_id: UUID, include_inactive: bool = False) -> list[Wallet]:
        return await self._storage.list_wallets(user_id, include_inactive=include_inactive)

    async def update(
        self,
        wallet_id: UUID,
        patch: Mapping[str, Any],
        user_id: Optional[UUID] = None,
    ) -> Wallet:
        """
        Update wallet metadata. The balance is not patchable.

        Raises:
            NotFoundError: unknown wallet or wrong owner
            ValidationError: invalid patch (including any balance change)
            ConflictError: rename collides with another wallet of the owner
        """
        existing = await self.get_by_id(wallet_id, user_id)
        updated = await self._validated(
            self._validator.validate_patch,
            existing,
            patch,
            WALLET_MUTABLE_FIELDS,
            self.entity_type,
            immutable_messages=BALANCE_IMMUTABLE,
            user_id=existing.user_id,
        )

        try:
            await self._storage.update_wallet(updated)
        except DuplicateError as e:
            raise ConflictError("Wallet name already exists") from e
        except RecordNotFoundError as e:
            raise NotFoundError(self.entity_type, wallet_id) from e

        await self._audit_change(
            AuditEventType.WALLET_UPDATED,
            updated,
            f"Wallet '{updated.name}' updated",
            details={"fields": sorted(dict(patch))},
        )
        # Re-read: the stored balance may have moved meanwhile
        return await self.get_by_id(wallet_id)

    async def delete(self, wallet_id: UUID, user_id: Optional[UUID] = None) -> None:
        """
        Delete a wallet that no transaction references.

        The reference count is taken here, immediately before the delete,
        never trusted from an earlier check.

        Raises:
            NotFoundError: unknown wallet or wrong owner
            ConflictError: transactions still reference the wallet
        """
        wallet = await self.get_by_id(wallet_id, user_id)

        if await self._transactions.count_transactions(wallet_id=wallet_id):
            raise ConflictError("Cannot delete wallet with existing transactions")

        if not await self._storage.delete_wallet(wallet_id):
            raise NotFoundError(self.entity_type, wallet_id)

        await self._audit_change(
            AuditEventType.WALLET_DELETED,
            wallet,
            f"Wallet '{wallet.name}' deleted",
            details={"final_balance": str(wallet.balance)},
        )

    async def apply_delta(
        self,
        wallet_id: UUID,
        delta: Decimal,
        reason: str = "transaction",
        user_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Decimal:
        """
        Atomically add a signed delta to a wallet balance.

        This is the only way a balance changes after creation.

        Returns:
            The new balance
        """
        try:
            new_balance = await self._storage.increment_balance(wallet_id, delta)
        except RecordNotFoundError as e:
            raise NotFoundError(self.entity_type, wallet_id) from e

        if self._audit_logger:
            await self._audit_logger.log_balance_adjusted(
                wallet_id=wallet_id,
                delta=delta,
                new_balance=new_balance,
                reason=reason,
                user_id=user_id,
                correlation_id=correlation_id,
            )
        return new_balance

    async def adjust_balance(
        self,
        wallet_id: UUID,
        amount,
        operation: str,
        user_id: Optional[UUID] = None,
    ) -> Decimal:
        """
        Manually increment or decrement a balance by a positive amount.

        Returns:
            The new balance
        """
        try:
            op = BalanceOperation(operation)
        except ValueError as e:
            raise ValidationError(
                f"Invalid balance operation: {operation}",
                [ValidationIssue(
                    field="operation",
                    issue_type="unknown_value",
                    message="Operation must be 'increment' or 'decrement'",
                )],
            ) from e
        magnitude = await self._validated(self._validator.validate_amount, amount, user_id=user_id)

        wallet = await self.get_by_id(wallet_id, user_id)
        delta = magnitude if op is BalanceOperation.INCREMENT else -magnitude
        return await self.apply_delta(
            wallet_id,
            delta,
            reason=f"manual {op.value}",
            user_id=wallet.user_id,
        )

    async def get_total_balance(
        self,
        user_id: UUID,
        currency: Optional[str] = None,
    ) -> list[CurrencyTotal]:
        """
        Sum of active wallet balances per currency.

        Wallets flagged exclude_from_stats are left out. Currencies are
        never converted into one another.
        """
        wallets = await self._storage.list_wallets(user_id, include_inactive=False)
        return currency_totals(wallets, currency)
