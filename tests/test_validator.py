"""
Tests for core-boundary validation.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger.config import LedgerSettings
from ledger.errors import ValidationError
from ledger.models.ledger import Transaction, TransactionFilters, Wallet
from ledger.validation import LedgerValidator


@pytest.fixture
def validator():
    return LedgerValidator(LedgerSettings(_env_file=None, max_page_size=50))


class TestValidateNew:

    def test_builds_entity(self, validator):
        wallet = validator.validate_new(Wallet, {"user_id": uuid4(), "name": "Cash"}, "wallet")
        assert wallet.name == "Cash"

    def test_collects_every_issue(self, validator):
        """Test the whole payload is rejected with one issue per problem."""
        with pytest.raises(ValidationError) as exc:
            validator.validate_new(Transaction, {"amount": 0, "type": "gift"}, "transaction")
        assert set(exc.value.fields) == {"user_id", "amount", "type", "date"}
        issue_types = {i.field: i.issue_type for i in exc.value.issues}
        assert issue_types["user_id"] == "missing"
        assert issue_types["amount"] == "invalid_value"

    def test_rejects_server_managed_fields(self, validator):
        with pytest.raises(ValidationError) as exc:
            validator.validate_new(
                Wallet,
                {"user_id": uuid4(), "name": "Cash", "id": uuid4(), "created_at": "2024-01-01T00:00:00"},
                "wallet",
            )
        assert sorted(exc.value.fields) == ["created_at", "id"]

    def test_server_values_bypass_shape_check(self, validator):
        wallet = validator.validate_new(
            Wallet,
            {"user_id": uuid4(), "name": "Cash"},
            "wallet",
            immutable_messages={"balance": "no"},
            server_values={"balance": 750},
        )
        assert wallet.balance == Decimal("750")


class TestValidatePatch:

    def test_merges_and_revalidates(self, validator):
        txn = Transaction(user_id=uuid4(), amount=10, type="expense", date=date(2024, 1, 1))
        patched = validator.validate_patch(txn, {"amount": "12.5"}, {"amount"}, "transaction")
        assert patched.amount == Decimal("12.5")
        assert patched.id == txn.id
        assert txn.amount == Decimal("10")

    def test_rejects_fields_outside_allowed_set(self, validator):
        txn = Transaction(user_id=uuid4(), amount=10, type="expense", date=date(2024, 1, 1))
        with pytest.raises(ValidationError) as exc:
            validator.validate_patch(txn, {"description": "x"}, {"amount"}, "transaction")
        assert exc.value.issues[0].issue_type == "unknown_field"

    def test_rejects_empty_patch(self, validator):
        txn = Transaction(user_id=uuid4(), amount=10, type="expense", date=date(2024, 1, 1))
        with pytest.raises(ValidationError):
            validator.validate_patch(txn, {}, {"amount"}, "transaction")


class TestValidateFilters:

    def test_accepts_mapping_and_model(self, validator):
        assert validator.validate_filters({"limit": 10}).limit == 10
        assert validator.validate_filters(TransactionFilters(page=2)).page == 2
        assert validator.validate_filters(None).limit is None

    def test_page_size_cap(self, validator):
        with pytest.raises(ValidationError) as exc:
            validator.validate_filters({"limit": 51})
        assert exc.value.fields == ["limit"]


class TestValidateAmount:

    @pytest.mark.parametrize("value, expected", [(1, Decimal("1")), ("0.01", Decimal("0.01"))])
    def test_positive(self, validator, value, expected):
        assert validator.validate_amount(value) == expected

    @pytest.mark.parametrize("value", [0, -1, "NaN", "Infinity", None, "ten"])
    def test_rejects(self, validator, value):
        with pytest.raises(ValidationError):
            validator.validate_amount(value)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
