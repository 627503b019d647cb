"""
Transaction Engine

DESIGN DECISION: A transaction record and its wallet effect are two
writes against two records. The store offers no multi-record
transaction, so every mutation is a short saga:

1. create: insert the record, then increment the wallet.
   Undo: delete the record.
2. update: apply ONE net delta per affected wallet, then rewrite the record.
   Undo: reverse the applied deltas, newest first.
3. delete: reverse the wallet effect, then remove the record.
   Undo: re-apply the effect.

If an undo step fails the ledger may be inconsistent. That is raised as
DataIntegrityError and written to the activity log as a critical
incident; it is never retried here.
"""

from datetime import date
from decimal import Decimal
from functools import partial
from typing import Any, Awaitable, Callable, Mapping, Optional, Union
from uuid import UUID

from ledger.audit import AuditLogger
from ledger.config import LedgerSettings
from ledger.engine.base import LedgerService, owned
from ledger.engine.wallets import WalletService
from ledger.errors import DataIntegrityError, NotFoundError, ValidationError
from ledger.models.audit import AuditEventType
from ledger.models.ledger import (
    CategoryStat,
    MonthlyStats,
    Transaction,
    TransactionFilters,
    ValidationIssue,
)
from ledger.queries import category_stats, month_bounds, monthly_stats
from ledger.services.storage import (
    CategoryStorageInterface,
    RecordNotFoundError,
    TransactionStorageInterface,
)
from ledger.validation import LedgerValidator


TRANSACTION_MUTABLE_FIELDS = {
    "amount",
    "type",
    "category_id",
    "wallet_id",
    "description",
    "date",
    "tags",
}

TRANSFER_LINK_IMMUTABLE = {
    "transfer_id": "Transfer links are set by the transfer operation only",
}

UndoStep = Callable[[], Awaitable[Any]]


def net_wallet_deltas(old: Transaction, new: Transaction) -> dict[UUID, Decimal]:
    """
    Net balance change per wallet when `old` is replaced by `new`.

    The old effect is reversed and the new one applied, summed per wallet,
    so a same-wallet update is a single increment. Zero deltas are dropped.
    """
    deltas: dict[UUID, Decimal] = {}
    if old.wallet_id:
        deltas[old.wallet_id] = deltas.get(old.wallet_id, Decimal("0")) - old.wallet_effect
    if new.wallet_id:
        deltas[new.wallet_id] = deltas.get(new.wallet_id, Decimal("0")) + new.wallet_effect
    return {wallet_id: delta for wallet_id, delta in deltas.items() if delta != 0}


class TransactionEngine(LedgerService):
    """
    Creates, updates and deletes transactions while keeping every wallet
    balance equal to its opening balance plus the net of its transactions.
    """

    entity_type = "transaction"

    def __init__(
        self,
        storage: TransactionStorageInterface,
        wallet_service: WalletService,
        category_storage: CategoryStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[LedgerValidator] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        super().__init__(audit_logger, validator, settings)
        self._storage = storage
        self._wallets = wallet_service
        self._categories = category_storage

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    async def create(
        self,
        data: Mapping[str, Any],
        transfer_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> UUID:
        """
        Record a transaction and apply its effect to its wallet.

        Args:
            data: Transaction payload (user_id, amount, type, date required)
            transfer_id: Link shared by the two legs of a transfer
            correlation_id: Groups the activity log entries of one operation

        Returns:
            The new transaction id

        Raises:
            ValidationError: invalid payload
            NotFoundError: category or wallet missing or owned by someone else
            DataIntegrityError: the wallet update failed and the record
                could not be removed again
        """
        txn = await self._validated(
            self._validator.validate_new,
            Transaction,
            data,
            self.entity_type,
            immutable_messages=TRANSFER_LINK_IMMUTABLE,
            server_values={"transfer_id": transfer_id} if transfer_id else None,
            user_id=dict(data).get("user_id"),
        )
        await self._check_references(txn)

        await self._storage.save_transaction(txn)

        if txn.wallet_id:
            try:
                await self._wallets.apply_delta(
                    txn.wallet_id,
                    txn.wallet_effect,
                    reason=f"transaction {txn.id} created",
                    user_id=txn.user_id,
                    correlation_id=correlation_id,
                )
            except Exception as e:
                await self._compensate(
                    "create",
                    txn,
                    e,
                    [partial(self._storage.delete_transaction, txn.id)],
                    correlation_id,
                )
                raise

        await self._audit_change(
            AuditEventType.TRANSACTION_CREATED,
            txn,
            f"{txn.type.value.capitalize()} of {txn.amount} recorded",
            details=self._audit_details(txn),
            correlation_id=correlation_id,
        )
        return txn.id

    async def update(
        self,
        transaction_id: UUID,
        patch: Mapping[str, Any],
        user_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Apply a patch to a transaction.

        Handles amount changes, type flips and wallet reassignment in any
        combination. Each affected wallet sees one net increment; an update
        that changes nothing money-related touches no balance at all.

        Raises:
            NotFoundError: unknown transaction, or wrong owner
            ValidationError: invalid patch
            DataIntegrityError: a failure could not be rolled back
        """
        existing = await self.get_by_id(transaction_id, user_id)
        updated = await self._validated(
            self._validator.validate_patch,
            existing,
            patch,
            TRANSACTION_MUTABLE_FIELDS,
            self.entity_type,
            immutable_messages=TRANSFER_LINK_IMMUTABLE,
            user_id=existing.user_id,
        )
        await self._check_references(updated)

        applied: list[tuple[UUID, Decimal]] = []
        try:
            for wallet_id, delta in net_wallet_deltas(existing, updated).items():
                await self._wallets.apply_delta(
                    wallet_id,
                    delta,
                    reason=f"transaction {transaction_id} updated",
                    user_id=existing.user_id,
                    correlation_id=correlation_id,
                )
                applied.append((wallet_id, delta))
            await self._storage.update_transaction(updated)
        except Exception as e:
            undo = [
                partial(
                    self._wallets.apply_delta,
                    wallet_id,
                    -delta,
                    reason=f"transaction {transaction_id} update rolled back",
                    user_id=existing.user_id,
                    correlation_id=correlation_id,
                )
                for wallet_id, delta in reversed(applied)
            ]
            await self._compensate("update", existing, e, undo, correlation_id)
            if isinstance(e, RecordNotFoundError):
                raise NotFoundError(self.entity_type, transaction_id) from e
            raise

        await self._audit_change(
            AuditEventType.TRANSACTION_UPDATED,
            updated,
            f"Transaction updated ({', '.join(sorted(dict(patch)))})",
            details={
                "before": self._audit_details(existing),
                "after": self._audit_details(updated),
            },
            correlation_id=correlation_id,
        )
        return await self.get_by_id(transaction_id)

    async def delete(
        self,
        transaction_id: UUID,
        user_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Reverse a transaction's wallet effect and remove it.

        Raises:
            NotFoundError: unknown transaction, or wrong owner
            DataIntegrityError: the record could not be removed and the
                wallet effect could not be restored
        """
        txn = await self.get_by_id(transaction_id, user_id)

        if txn.wallet_id:
            await self._wallets.apply_delta(
                txn.wallet_id,
                -txn.wallet_effect,
                reason=f"transaction {transaction_id} deleted",
                user_id=txn.user_id,
                correlation_id=correlation_id,
            )

        try:
            if not await self._storage.delete_transaction(transaction_id):
                raise RecordNotFoundError(f"Transaction not found: {transaction_id}")
        except Exception as e:
            if txn.wallet_id:
                undo = partial(
                    self._wallets.apply_delta,
                    txn.wallet_id,
                    txn.wallet_effect,
                    reason=f"transaction {transaction_id} delete rolled back",
                    user_id=txn.user_id,
                    correlation_id=correlation_id,
                )
                await self._compensate("delete", txn, e, [undo], correlation_id)
            if isinstance(e, RecordNotFoundError):
                raise NotFoundError(self.entity_type, transaction_id) from e
            raise

        await self._audit_change(
            AuditEventType.TRANSACTION_DELETED,
            txn,
            f"{txn.type.value.capitalize()} of {txn.amount} deleted",
            details=self._audit_details(txn),
            correlation_id=correlation_id,
        )

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def get_by_id(self, transaction_id: UUID, user_id: Optional[UUID] = None) -> Transaction:
        txn = await self._storage.get_transaction_by_id(transaction_id)
        return owned(txn, self.entity_type, transaction_id, user_id)

    async def get_user_transactions(
        self,
        user_id: UUID,
        filters: Union[Mapping[str, Any], TransactionFilters, None] = None,
    ) -> list[Transaction]:
        """
        List a user's transactions, newest first.

        Filters: type, start_date/end_date (both inclusive), category_id,
        wallet_id, tag, limit and zero-based page.
        """
        parsed = await self._validated(self._validator.validate_filters, filters, user_id=user_id)
        return await self._storage.list_transactions(
            user_id,
            transaction_type=parsed.type,
            date_from=parsed.start_date,
            date_to=parsed.end_date,
            category_ids=[parsed.category_id] if parsed.category_id else None,
            wallet_id=parsed.wallet_id,
            tag=parsed.tag,
            limit=parsed.limit,
            offset=parsed.offset,
        )

    async def get_monthly_stats(self, user_id: UUID, year: int, month: int) -> MonthlyStats:
        """Income, expense and income minus expense over one calendar month."""
        issues = []
        if not date.min.year <= year <= date.max.year:
            issues.append(
                ValidationIssue(field="year", issue_type="invalid_value", message="Year must be 1..9999")
            )
        if not 1 <= month <= 12:
            issues.append(
                ValidationIssue(field="month", issue_type="invalid_value", message="Month must be 1..12")
            )
        if issues:
            raise ValidationError(f"Invalid month: {year}-{month}", issues)
        start, end = month_bounds(year, month)
        transactions = await self._storage.list_transactions(user_id, date_from=start, date_to=end)
        return monthly_stats(transactions, year, month)

    async def get_category_stats(
        self,
        user_id: UUID,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[CategoryStat]:
        """Total and count per (category, type), largest total first."""
        parsed = await self._validated(
            self._validator.validate_filters,
            {"start_date": start_date, "end_date": end_date},
            user_id=user_id,
        )
        transactions = await self._storage.list_transactions(
            user_id,
            date_from=parsed.start_date,
            date_to=parsed.end_date,
        )
        return category_stats(transactions)

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _check_references(self, txn: Transaction) -> None:
        """Category and wallet must exist and belong to the transaction owner."""
        if txn.category_id:
            category = await self._categories.get_category_by_id(txn.category_id)
            owned(category, "category", txn.category_id, txn.user_id)
        if txn.wallet_id:
            await self._wallets.get_by_id(txn.wallet_id, txn.user_id)

    async def _compensate(
        self,
        operation: str,
        txn: Transaction,
        error: Exception,
        undo_steps: list[UndoStep],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Roll back the steps of a failed mutation.

        Returns normally when every undo step succeeded; the caller then
        re-raises the original error.
        """
        try:
            for step in undo_steps:
                await step()
        except Exception as undo_error:
            if self._audit_logger:
                await self._audit_logger.log_integrity_incident(
                    entity_type=self.entity_type,
                    entity_id=txn.id,
                    operation=operation,
                    error_message=str(undo_error),
                    details={
                        "original_error": str(error),
                        "transaction": self._audit_details(txn),
                    },
                    user_id=txn.user_id,
                    correlation_id=correlation_id,
                )
            raise DataIntegrityError(
                f"Could not roll back transaction {operation} of {txn.id}: {undo_error}",
                cause=error,
            ) from undo_error

        if self._audit_logger and undo_steps:
            await self._audit_logger.log_compensation_applied(
                entity_type=self.entity_type,
                entity_id=txn.id,
                operation=operation,
                error_message=str(error),
                user_id=txn.user_id,
                correlation_id=correlation_id,
            )

    @staticmethod
    def _audit_details(txn: Transaction) -> dict:
        return {
            "amount": str(txn.amount),
            "type": txn.type.value,
            "wallet_id": str(txn.wallet_id) if txn.wallet_id else None,
            "category_id": str(txn.category_id) if txn.category_id else None,
            "date": txn.date.isoformat(),
        }
