"""
Tests for wallet-to-wallet transfers.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger.engine import TRANSFER_TAG
from ledger.errors import (
    DataIntegrityError,
    InsufficientFundsError,
    NotFoundError,
    ValidationError,
)
from ledger.models.audit import AuditEventType
from ledger.models.ledger import TransactionType
from ledger.services.storage import StorageError


async def balance(ledger, wallet):
    return (await ledger.wallets.get_by_id(wallet.id)).balance


class TestTransfer:

    async def test_moves_money_between_wallets(self, ledger, make_wallet, user_id):
        """Test 300,000 from A (1,000,000) to B (500,000)."""
        a = await make_wallet("A", 1000000)
        b = await make_wallet("B", 500000)

        result = await ledger.transfers.transfer(a.id, b.id, 300000, "Savings")

        assert await balance(ledger, a) == Decimal("700000")
        assert await balance(ledger, b) == Decimal("800000")
        assert result.source_balance == Decimal("700000")
        assert result.destination_balance == Decimal("800000")

        transactions = await ledger.transactions.get_user_transactions(user_id)
        assert len(transactions) == 2

    async def test_legs_are_linked(self, ledger, make_wallet):
        a = await make_wallet("A", 1000)
        b = await make_wallet("B", 0)
        result = await ledger.transfers.transfer(a.id, b.id, 400, "Rent share", date=date(2024, 3, 1))

        expense = await ledger.transactions.get_by_id(result.expense_transaction_id)
        income = await ledger.transactions.get_by_id(result.income_transaction_id)
        assert expense.type == TransactionType.EXPENSE
        assert expense.wallet_id == a.id
        assert income.type == TransactionType.INCOME
        assert income.wallet_id == b.id
        for leg in (expense, income):
            assert leg.transfer_id == result.transfer_id
            assert leg.description == "Rent share"
            assert leg.amount == Decimal("400")
            assert leg.tags == [TRANSFER_TAG]
            assert leg.date == date(2024, 3, 1)

    async def test_whole_balance_can_be_moved(self, ledger, make_wallet):
        a = await make_wallet("A", 1000)
        b = await make_wallet("B", 0)
        await ledger.transfers.transfer(a.id, b.id, 1000, "All")
        assert await balance(ledger, a) == Decimal("0")

    async def test_insufficient_funds_changes_nothing(self, ledger, make_wallet, user_id, db):
        """Test a rejected transfer leaves both wallets and the transactions untouched."""
        a = await make_wallet("A", 1000000)
        b = await make_wallet("B", 500000)

        with pytest.raises(InsufficientFundsError) as exc:
            await ledger.transfers.transfer(a.id, b.id, 1000001, "Too much")

        assert str(exc.value) == "Insufficient funds"
        assert await balance(ledger, a) == Decimal("1000000")
        assert await balance(ledger, b) == Decimal("500000")
        assert await ledger.transactions.get_user_transactions(user_id) == []
        assert AuditEventType.TRANSFER_REJECTED in [e.event_type for e in db.audit_events]

    @pytest.mark.parametrize("amount", [0, -10])
    async def test_rejects_non_positive_amount(self, ledger, make_wallet, amount):
        a = await make_wallet("A", 1000)
        b = await make_wallet("B", 0)
        with pytest.raises(ValidationError):
            await ledger.transfers.transfer(a.id, b.id, amount, "Nothing")

    async def test_rejects_same_wallet(self, ledger, make_wallet):
        a = await make_wallet("A", 1000)
        with pytest.raises(ValidationError):
            await ledger.transfers.transfer(a.id, a.id, 10, "Loop")

    async def test_rejects_currency_mismatch(self, ledger, make_wallet):
        a = await make_wallet("A", 1000)
        b = await make_wallet("B", 0, currency="USD")
        with pytest.raises(ValidationError):
            await ledger.transfers.transfer(a.id, b.id, 10, "FX")
        assert await balance(ledger, a) == Decimal("1000")

    async def test_destination_of_other_user_is_not_found(self, ledger, make_wallet):
        a = await make_wallet("A", 1000)
        b = await make_wallet("B", 0, user_id=uuid4())
        with pytest.raises(NotFoundError):
            await ledger.transfers.transfer(a.id, b.id, 10, "Gift")

    async def test_source_checked_against_owner(self, ledger, make_wallet):
        a = await make_wallet("A", 1000)
        b = await make_wallet("B", 0)
        with pytest.raises(NotFoundError):
            await ledger.transfers.transfer(a.id, b.id, 10, "X", user_id=uuid4())


class TestTransferCompensation:

    async def test_failed_income_leg_removes_expense_leg(self, ledger, make_wallet, wallet_storage, user_id, db):
        """Test no partial transfer is ever left visible."""
        a = await make_wallet("A", 1000)
        b = await make_wallet("B", 500)
        wallet_storage.fail_increment_for.add(b.id)

        with pytest.raises(StorageError):
            await ledger.transfers.transfer(a.id, b.id, 300, "Broken")

        assert await balance(ledger, a) == Decimal("1000")
        assert await balance(ledger, b) == Decimal("500")
        assert await ledger.transactions.get_user_transactions(user_id) == []

        compensations = [
            e for e in db.audit_events
            if e.event_type == AuditEventType.COMPENSATION_APPLIED and e.entity_type == "transfer"
        ]
        assert len(compensations) == 1

    async def test_failed_leg_rollback_is_integrity_incident(
        self, ledger, make_wallet, wallet_storage, transaction_storage, db
    ):
        a = await make_wallet("A", 1000)
        b = await make_wallet("B", 500)
        wallet_storage.fail_increment_for.add(b.id)
        transaction_storage.fail_delete = True

        with pytest.raises(DataIntegrityError):
            await ledger.transfers.transfer(a.id, b.id, 300, "Broken")

        assert AuditEventType.DATA_INTEGRITY_INCIDENT in [e.event_type for e in db.audit_events]

    async def test_events_share_the_transfer_id(self, ledger, make_wallet):
        a = await make_wallet("A", 1000)
        b = await make_wallet("B", 0)
        result = await ledger.transfers.transfer(a.id, b.id, 100, "Tracked")

        events = await ledger.storages.audit.get_events_by_correlation_id(result.transfer_id)
        event_types = [e.event_type for e in events]
        assert event_types.count(AuditEventType.TRANSACTION_CREATED) == 2
        assert event_types.count(AuditEventType.WALLET_BALANCE_ADJUSTED) == 2
        assert AuditEventType.TRANSFER_COMPLETED in event_types


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
