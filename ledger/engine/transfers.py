"""
Wallet-to-wallet transfers.

A transfer is two linked transactions created through the Transaction
Engine: an expense on the source wallet and an income on the destination.
There is no separate balance write path.

Both legs exist or neither does. If the income leg fails, the expense
leg is deleted through the engine (reversing its wallet effect) before
the error reaches the caller.
"""

from datetime import date as date_type
from typing import Optional
from uuid import UUID, uuid4

from ledger.audit import AuditLogger
from ledger.config import LedgerSettings
from ledger.engine.base import LedgerService
from ledger.engine.transactions import TransactionEngine
from ledger.engine.wallets import WalletService
from ledger.errors import DataIntegrityError, InsufficientFundsError, ValidationError
from ledger.models.ledger import TransactionType, TransferResult, ValidationIssue, utc_today
from ledger.validation import LedgerValidator


TRANSFER_TAG = "transfer"


class TransferService(LedgerService):
    """Moves money between two wallets of the same owner."""

    entity_type = "transfer"

    def __init__(
        self,
        engine: TransactionEngine,
        wallet_service: WalletService,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[LedgerValidator] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        super().__init__(audit_logger, validator, settings)
        self._engine = engine
        self._wallets = wallet_service

    async def transfer(
        self,
        source_wallet_id: UUID,
        dest_wallet_id: UUID,
        amount,
        description: str = "Transfer",
        user_id: Optional[UUID] = None,
        date: Optional[date_type] = None,
    ) -> TransferResult:
        """
        Transfer `amount` from one wallet to another.

        Args:
            source_wallet_id: Wallet debited by the expense leg
            dest_wallet_id: Wallet credited by the income leg
            amount: Positive amount
            description: Shared by both legs
            user_id: Owner; both wallets must belong to it
            date: Date of both legs (default: today, UTC)

        Raises:
            ValidationError: non-positive amount, same wallet twice,
                or wallets in different currencies
            NotFoundError: a wallet is missing or owned by someone else
            InsufficientFundsError: source balance below amount; nothing
                was written
            DataIntegrityError: a half-done transfer could not be rolled back
        """
        magnitude = await self._validated(self._validator.validate_amount, amount, user_id=user_id)
        if source_wallet_id == dest_wallet_id:
            raise ValidationError(
                "Cannot transfer to the same wallet",
                [ValidationIssue(
                    field="dest_wallet_id",
                    issue_type="invalid_value",
                    message="Destination must differ from source",
                )],
            )

        source = await self._wallets.get_by_id(source_wallet_id, user_id)
        dest = await self._wallets.get_by_id(dest_wallet_id, source.user_id)

        if source.currency != dest.currency:
            raise ValidationError(
                f"Cannot transfer between {source.currency} and {dest.currency} wallets",
                [ValidationIssue(
                    field="dest_wallet_id",
                    issue_type="inconsistent",
                    message="Both wallets must use the same currency",
                )],
            )

        if source.balance < magnitude:
            if self._audit_logger:
                await self._audit_logger.log_transfer_rejected(
                    source_wallet_id=source.id,
                    amount=magnitude,
                    reason="Insufficient funds",
                    user_id=source.user_id,
                )
            raise InsufficientFundsError(source.id, source.balance, magnitude)

        transfer_id = uuid4()
        leg = {
            "user_id": source.user_id,
            "amount": magnitude,
            "description": description,
            "date": date or utc_today(),
            "tags": [TRANSFER_TAG],
        }

        expense_id = await self._engine.create(
            {**leg, "type": TransactionType.EXPENSE, "wallet_id": source.id},
            transfer_id=transfer_id,
            correlation_id=transfer_id,
        )
        try:
            income_id = await self._engine.create(
                {**leg, "type": TransactionType.INCOME, "wallet_id": dest.id},
                transfer_id=transfer_id,
                correlation_id=transfer_id,
            )
        except Exception as e:
            await self._undo_expense_leg(transfer_id, expense_id, source.user_id, e)
            raise

        source_balance = (await self._wallets.get_by_id(source.id)).balance
        dest_balance = (await self._wallets.get_by_id(dest.id)).balance

        if self._audit_logger:
            await self._audit_logger.log_transfer_completed(
                transfer_id=transfer_id,
                source_wallet_id=source.id,
                dest_wallet_id=dest.id,
                amount=magnitude,
                user_id=source.user_id,
            )

        return TransferResult(
            transfer_id=transfer_id,
            expense_transaction_id=expense_id,
            income_transaction_id=income_id,
            source_balance=source_balance,
            destination_balance=dest_balance,
        )

    async def _undo_expense_leg(
        self,
        transfer_id: UUID,
        expense_id: UUID,
        user_id: UUID,
        error: Exception,
    ) -> None:
        try:
            await self._engine.delete(expense_id, correlation_id=transfer_id)
        except DataIntegrityError:
            # Already logged by the engine
            raise
        except Exception as undo_error:
            if self._audit_logger:
                await self._audit_logger.log_integrity_incident(
                    entity_type=self.entity_type,
                    entity_id=transfer_id,
                    operation="transfer",
                    error_message=str(undo_error),
                    details={
                        "original_error": str(error),
                        "expense_transaction_id": str(expense_id),
                    },
                    user_id=user_id,
                    correlation_id=transfer_id,
                )
            raise DataIntegrityError(
                f"Could not roll back expense leg {expense_id} of transfer {transfer_id}",
                cause=error,
            ) from undo_error

        if self._audit_logger:
            await self._audit_logger.log_compensation_applied(
                entity_type=self.entity_type,
                entity_id=transfer_id,
                operation="transfer",
                error_message=str(error),
                user_id=user_id,
                correlation_id=transfer_id,
            )
