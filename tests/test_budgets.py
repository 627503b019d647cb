"""
Tests for budget progress, alerts and budget CRUD.
"""

import datetime as dt
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger.engine import resolve_period
from ledger.errors import NotFoundError, ValidationError
from ledger.models.ledger import BudgetPeriodType, utc_today


JULY_15 = dt.date(2023, 7, 15)


class TestResolvePeriod:
    """Period resolution is a pure function of (period type, reference date)."""

    def test_monthly(self):
        period = resolve_period("monthly", JULY_15)
        assert (period.start, period.end) == (dt.date(2023, 7, 1), dt.date(2023, 7, 31))

    def test_quarterly(self):
        period = resolve_period("quarterly", JULY_15)
        assert (period.start, period.end) == (dt.date(2023, 7, 1), dt.date(2023, 9, 30))

    def test_yearly(self):
        period = resolve_period(BudgetPeriodType.YEARLY, JULY_15)
        assert (period.start, period.end) == (dt.date(2023, 1, 1), dt.date(2023, 12, 31))

    @pytest.mark.parametrize("reference, start, end", [
        (dt.date(2024, 1, 1), dt.date(2024, 1, 1), dt.date(2024, 3, 31)),
        (dt.date(2024, 3, 31), dt.date(2024, 1, 1), dt.date(2024, 3, 31)),
        (dt.date(2024, 4, 1), dt.date(2024, 4, 1), dt.date(2024, 6, 30)),
        (dt.date(2024, 12, 31), dt.date(2024, 10, 1), dt.date(2024, 12, 31)),
    ])
    def test_quarter_blocks(self, reference, start, end):
        period = resolve_period("quarterly", reference)
        assert (period.start, period.end) == (start, end)

    def test_leap_february(self):
        period = resolve_period("monthly", dt.date(2024, 2, 10))
        assert period.end == dt.date(2024, 2, 29)

    def test_reference_datetime_uses_utc_day(self):
        """Test dates are compared as UTC calendar days."""
        moment = dt.datetime(2023, 7, 1, 3, 0, tzinfo=dt.timezone(dt.timedelta(hours=7)))
        period = resolve_period("monthly", moment)
        assert period.start == dt.date(2023, 6, 1)

    def test_unknown_period(self):
        with pytest.raises(ValidationError):
            resolve_period("weekly", JULY_15)


@pytest.fixture
def make_budget(ledger, user_id):
    async def _make(amount, category_ids, **fields):
        return await ledger.budgets.create({
            "user_id": fields.pop("user_id", user_id),
            "name": fields.pop("name", "Monthly"),
            "amount": amount,
            "category_ids": category_ids,
            **fields,
        })
    return _make


class TestBudgetProgress:

    async def test_spent_within_period(self, ledger, make_category, make_transaction, make_budget):
        """Test 5,000,000 budget with 3,000,000 spent inside the period."""
        food = await make_category("Food")
        budget = await make_budget(5000000, [food.id])
        await make_transaction(amount=2000000, category_id=food.id, day=dt.date(2023, 7, 3))
        await make_transaction(amount=1000000, category_id=food.id, day=dt.date(2023, 7, 31))
        await make_transaction(amount=1000000, category_id=food.id, day=dt.date(2023, 6, 30))

        progress = await ledger.budgets.get_budget_progress(budget.id, JULY_15)
        assert progress.budget == Decimal("5000000")
        assert progress.spent == Decimal("3000000")
        assert progress.remaining == Decimal("2000000")
        assert progress.percentage == 60
        assert (progress.period.start, progress.period.end) == (dt.date(2023, 7, 1), dt.date(2023, 7, 31))

    async def test_only_expenses_in_budget_categories(self, ledger, make_category, make_transaction, make_budget):
        food = await make_category("Food")
        rent = await make_category("Rent")
        refunds = await make_category("Refunds", "income")
        budget = await make_budget(1000, [food.id, refunds.id])
        await make_transaction(amount=100, category_id=food.id, day=JULY_15)
        await make_transaction(amount=500, category_id=rent.id, day=JULY_15)
        await make_transaction(amount=300, type="income", category_id=refunds.id, day=JULY_15)
        await make_transaction(amount=50, day=JULY_15)

        progress = await ledger.budgets.get_budget_progress(budget.id, JULY_15)
        assert progress.spent == Decimal("100")

    async def test_overspend_goes_negative(self, ledger, make_category, make_transaction, make_budget):
        food = await make_category("Food")
        budget = await make_budget(1000, [food.id])
        await make_transaction(amount=1500, category_id=food.id, day=JULY_15)

        progress = await ledger.budgets.get_budget_progress(budget.id, JULY_15)
        assert progress.remaining == Decimal("-500")
        assert progress.percentage == 150

    async def test_zero_amount_budget(self, ledger, make_category, make_transaction, make_budget):
        """Test division by zero is avoided."""
        food = await make_category("Food")
        budget = await make_budget(0, [food.id])
        await make_transaction(amount=10, category_id=food.id, day=JULY_15)

        progress = await ledger.budgets.get_budget_progress(budget.id, JULY_15)
        assert progress.percentage == 0
        assert progress.remaining == Decimal("-10")

    async def test_percentage_rounds_half_up(self, ledger, make_category, make_transaction, make_budget):
        food = await make_category("Food")
        budget = await make_budget(1000, [food.id])
        await make_transaction(amount=125, category_id=food.id, day=JULY_15)

        progress = await ledger.budgets.get_budget_progress(budget.id, JULY_15)
        assert progress.percentage == 13

    async def test_quarterly_budget(self, ledger, make_category, make_transaction, make_budget):
        food = await make_category("Food")
        budget = await make_budget(1000, [food.id], period="quarterly")
        await make_transaction(amount=100, category_id=food.id, day=dt.date(2023, 7, 1))
        await make_transaction(amount=200, category_id=food.id, day=dt.date(2023, 9, 30))
        await make_transaction(amount=400, category_id=food.id, day=dt.date(2023, 10, 1))

        progress = await ledger.budgets.get_budget_progress(budget.id, JULY_15)
        assert progress.spent == Decimal("300")

    async def test_defaults_to_current_period(self, ledger, make_category, make_transaction, make_budget):
        food = await make_category("Food")
        budget = await make_budget(1000, [food.id])
        await make_transaction(amount=250, category_id=food.id, day=utc_today())

        progress = await ledger.budgets.get_budget_progress(budget.id)
        assert progress.spent == Decimal("250")

    async def test_progress_follows_transaction_changes(self, ledger, make_category, make_transaction, make_budget):
        """Test progress is derived, never cached."""
        food = await make_category("Food")
        budget = await make_budget(1000, [food.id])
        txn_id = await make_transaction(amount=100, category_id=food.id, day=JULY_15)

        await ledger.transactions.update(txn_id, {"amount": 400})
        assert (await ledger.budgets.get_budget_progress(budget.id, JULY_15)).spent == Decimal("400")

        await ledger.transactions.delete(txn_id)
        assert (await ledger.budgets.get_budget_progress(budget.id, JULY_15)).spent == Decimal("0")

    async def test_unknown_budget(self, ledger):
        with pytest.raises(NotFoundError):
            await ledger.budgets.get_budget_progress(uuid4(), JULY_15)


class TestBudgetAlerts:

    async def test_alert_above_threshold(self, ledger, make_category, make_transaction, make_budget, user_id):
        """Test threshold 80 with 90% spent returns exactly one alert."""
        food = await make_category("Food")
        budget = await make_budget(1000000, [food.id], alert_threshold=80)
        await make_transaction(amount=900000, category_id=food.id, day=JULY_15)

        alerts = await ledger.budgets.check_budget_alerts(user_id, JULY_15)
        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.budget_id == budget.id
        assert alert.threshold == 80
        assert alert.percentage == Decimal("90")
        assert alert.remaining == Decimal("100000")

    async def test_below_threshold(self, ledger, make_category, make_transaction, make_budget, user_id):
        food = await make_category("Food")
        await make_budget(1000, [food.id], alert_threshold=80)
        await make_transaction(amount=799, category_id=food.id, day=JULY_15)
        assert await ledger.budgets.check_budget_alerts(user_id, JULY_15) == []

    async def test_exactly_at_threshold(self, ledger, make_category, make_transaction, make_budget, user_id):
        food = await make_category("Food")
        await make_budget(1000, [food.id], alert_threshold=80)
        await make_transaction(amount=800, category_id=food.id, day=JULY_15)
        assert len(await ledger.budgets.check_budget_alerts(user_id, JULY_15)) == 1

    async def test_percentage_is_unrounded(self, ledger, make_category, make_transaction, make_budget, user_id):
        food = await make_category("Food")
        await make_budget(1000, [food.id], alert_threshold=80)
        await make_transaction(amount=833, category_id=food.id, day=JULY_15)

        alerts = await ledger.budgets.check_budget_alerts(user_id, JULY_15)
        assert alerts[0].percentage == Decimal("83.3")

    async def test_inactive_and_silenced_budgets_skipped(self, ledger, make_category, make_transaction, make_budget, user_id):
        food = await make_category("Food")
        await make_budget(100, [food.id], name="Off", is_active=False)
        await make_budget(100, [food.id], name="Quiet", notifications_enabled=False)
        await make_transaction(amount=100, category_id=food.id, day=JULY_15)
        assert await ledger.budgets.check_budget_alerts(user_id, JULY_15) == []

    async def test_alerts_are_stateless(self, ledger, make_category, make_transaction, make_budget, user_id):
        """Test the same alert comes back on every poll until spend drops."""
        food = await make_category("Food")
        budget = await make_budget(1000, [food.id])
        txn_id = await make_transaction(amount=950, category_id=food.id, day=JULY_15)

        assert len(await ledger.budgets.check_budget_alerts(user_id, JULY_15)) == 1
        assert len(await ledger.budgets.check_budget_alerts(user_id, JULY_15)) == 1

        await ledger.transactions.update(txn_id, {"amount": 100})
        assert await ledger.budgets.check_budget_alerts(user_id, JULY_15) == []

        await ledger.budgets.update(budget.id, {"amount": 50})
        assert len(await ledger.budgets.check_budget_alerts(user_id, JULY_15)) == 1

        await ledger.budgets.update(budget.id, {"is_active": False})
        assert await ledger.budgets.check_budget_alerts(user_id, JULY_15) == []

    async def test_only_owners_budgets(self, ledger, make_category, make_transaction, make_budget):
        food = await make_category("Food")
        await make_budget(100, [food.id])
        await make_transaction(amount=100, category_id=food.id, day=JULY_15)
        assert await ledger.budgets.check_budget_alerts(uuid4(), JULY_15) == []


class TestBudgetCrud:

    async def test_create_defaults(self, ledger, make_category, make_budget, settings):
        food = await make_category("Food")
        budget = await make_budget(1000, [food.id])
        assert budget.alert_threshold == settings.default_alert_threshold
        assert budget.period == BudgetPeriodType.MONTHLY
        assert budget.start_date == utc_today()

    async def test_create_rejects_other_users_category(self, make_category, make_budget):
        category = await make_category("Food", user_id=uuid4())
        with pytest.raises(NotFoundError):
            await make_budget(1000, [category.id])

    async def test_create_rejects_inverted_dates(self, make_budget):
        with pytest.raises(ValidationError):
            await make_budget(
                1000,
                [],
                start_date=dt.date(2024, 6, 1),
                end_date=dt.date(2024, 1, 1),
            )

    async def test_create_rejects_unknown_period(self, make_budget):
        with pytest.raises(ValidationError):
            await make_budget(1000, [], period="weekly")

    async def test_update_and_list(self, ledger, make_category, make_budget, user_id):
        food = await make_category("Food")
        active = await make_budget(1000, [food.id], name="Food")
        await make_budget(500, [], name="Old", is_active=False)

        updated = await ledger.budgets.update(active.id, {"amount": 2000, "alert_threshold": 90})
        assert updated.amount == Decimal("2000")
        assert updated.alert_threshold == 90

        assert [b.name for b in await ledger.budgets.get_user_budgets(user_id)] == ["Food"]
        assert len(await ledger.budgets.get_user_budgets(user_id, include_inactive=True)) == 2

    async def test_delete(self, ledger, make_budget):
        budget = await make_budget(1000, [])
        await ledger.budgets.delete(budget.id)
        with pytest.raises(NotFoundError):
            await ledger.budgets.get_by_id(budget.id)

    async def test_wrong_owner_is_not_found(self, ledger, make_budget):
        budget = await make_budget(1000, [])
        with pytest.raises(NotFoundError):
            await ledger.budgets.delete(budget.id, user_id=uuid4())


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
