"""
Tests for the audit logger and the activity log written by the ledger.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from ledger.audit import AuditLogger, create_correlation_id
from ledger.errors import ValidationError
from ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from ledger.services.storage import InMemoryAuditStorage, StorageError


class BrokenAuditStorage(InMemoryAuditStorage):
    async def append_event(self, event):
        raise StorageError("sheet unavailable")


class TestAuditLogger:

    async def test_local_only_logging(self):
        """Test a logger without storage still succeeds."""
        logger = AuditLogger()
        event = AuditEvent(event_type=AuditEventType.WALLET_CREATED, description="Wallet created")
        assert await logger.log(event) is True

    async def test_persists_to_storage(self):
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        wallet_id = uuid4()
        await logger.log_balance_adjusted(
            wallet_id=wallet_id,
            delta=Decimal("-100"),
            new_balance=Decimal("900"),
            reason="transaction created",
        )
        events = await storage.get_events_by_entity("wallet", wallet_id)
        assert len(events) == 1
        assert events[0].details["new_balance"] == "900"

    async def test_storage_failure_does_not_raise(self):
        """Test audit failures never break the main flow."""
        logger = AuditLogger(BrokenAuditStorage())
        event = AuditEvent(event_type=AuditEventType.SYSTEM_ERROR, description="boom")
        assert await logger.log(event) is False

    async def test_integrity_incident_is_critical(self):
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        correlation_id = create_correlation_id()
        await logger.log_integrity_incident(
            entity_type="transaction",
            entity_id=uuid4(),
            operation="delete",
            error_message="restore failed",
            correlation_id=correlation_id,
        )
        events = await storage.get_events_by_correlation_id(correlation_id)
        assert events[0].severity == AuditSeverity.CRITICAL

    async def test_recent_events_newest_first(self):
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        await logger.log_error("first", "one")
        await logger.log_error("second", "two")
        recent = await storage.get_recent_events(limit=1)
        assert recent[0].error_message == "two"


class TestLedgerActivityLog:
    """Every mutation leaves a trace."""

    async def test_wallet_lifecycle_logged(self, ledger, make_wallet):
        wallet = await make_wallet("Main", 100)
        await ledger.wallets.update(wallet.id, {"name": "Daily"})
        await ledger.wallets.adjust_balance(wallet.id, 50, "increment")
        await ledger.wallets.delete(wallet.id)

        events = await ledger.storages.audit.get_events_by_entity("wallet", wallet.id)
        assert [e.event_type for e in events] == [
            AuditEventType.WALLET_CREATED,
            AuditEventType.WALLET_UPDATED,
            AuditEventType.WALLET_BALANCE_ADJUSTED,
            AuditEventType.WALLET_DELETED,
        ]

    async def test_transaction_lifecycle_logged(self, ledger, make_transaction):
        txn_id = await make_transaction(amount=10)
        await ledger.transactions.update(txn_id, {"amount": 20})
        await ledger.transactions.delete(txn_id)

        events = await ledger.storages.audit.get_events_by_entity("transaction", txn_id)
        assert [e.event_type for e in events] == [
            AuditEventType.TRANSACTION_CREATED,
            AuditEventType.TRANSACTION_UPDATED,
            AuditEventType.TRANSACTION_DELETED,
        ]
        assert events[1].details["before"]["amount"] == "10"
        assert events[1].details["after"]["amount"] == "20"

    async def test_rejected_payload_logged(self, ledger, user_id, db):
        with pytest.raises(ValidationError):
            await ledger.transactions.create({"user_id": user_id, "amount": -1, "type": "expense"})

        rejected = [e for e in db.audit_events if e.event_type == AuditEventType.VALIDATION_FAILED]
        assert len(rejected) == 1
        assert rejected[0].user_id == user_id
        assert rejected[0].severity == AuditSeverity.WARNING
        fields = {issue["field"] for issue in rejected[0].details["issues"]}
        assert {"amount", "date"} <= fields

    async def test_default_categories_logged(self, ledger, user_id, db):
        await ledger.categories.create_default_categories(user_id)
        assert AuditEventType.DEFAULT_CATEGORIES_CREATED in [e.event_type for e in db.audit_events]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
