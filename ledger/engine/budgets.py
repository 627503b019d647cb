"""
Budget Progress & Alert Engine

DESIGN DECISION: Budget progress is DERIVED, never stored.
Every call resolves the period, reads committed expense transactions
and computes spend from scratch. Alerts are a stateless poll: nothing
is emitted, persisted or deduplicated, so the same alert comes back on
every call until spend drops or the budget is switched off.
"""

import datetime as dt
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping, Optional, Union
from uuid import UUID

from ledger.audit import AuditLogger
from ledger.config import LedgerSettings
from ledger.engine.base import LedgerService, owned
from ledger.errors import NotFoundError, ValidationError
from ledger.models.audit import AuditEventType
from ledger.models.ledger import (
    Budget,
    BudgetAlert,
    BudgetPeriod,
    BudgetPeriodType,
    BudgetProgress,
    TransactionType,
    ValidationIssue,
    to_utc_date,
    utc_today,
)
from ledger.queries import expense_total, month_bounds
from ledger.services.storage import (
    BudgetStorageInterface,
    CategoryStorageInterface,
    RecordNotFoundError,
    TransactionStorageInterface,
)
from ledger.validation import LedgerValidator


BUDGET_MUTABLE_FIELDS = {
    "name",
    "description",
    "amount",
    "period",
    "category_ids",
    "start_date",
    "end_date",
    "color",
    "icon",
    "alert_threshold",
    "notifications_enabled",
    "is_active",
}


def resolve_period(
    period_type: Union[BudgetPeriodType, str],
    reference_date: Union[dt.date, dt.datetime],
) -> BudgetPeriod:
    """
    Inclusive calendar boundaries of the period containing reference_date.

    monthly   -> first..last day of the reference month
    quarterly -> Jan-Mar, Apr-Jun, Jul-Sep or Oct-Dec block
    yearly    -> Jan 1..Dec 31
    """
    try:
        period_type = BudgetPeriodType(period_type)
    except ValueError as e:
        raise ValidationError(
            f"Unknown budget period: {period_type}",
            [ValidationIssue(field="period", issue_type="unknown_value", message=str(e))],
        ) from e

    day = to_utc_date(reference_date)

    if period_type is BudgetPeriodType.MONTHLY:
        start, end = month_bounds(day.year, day.month)
    elif period_type is BudgetPeriodType.QUARTERLY:
        first_month = 3 * ((day.month - 1) // 3) + 1
        start = dt.date(day.year, first_month, 1)
        end = month_bounds(day.year, first_month + 2)[1]
    else:
        start = dt.date(day.year, 1, 1)
        end = dt.date(day.year, 12, 31)

    return BudgetPeriod(start=start, end=end)


def spend_percentage(spent: Decimal, amount: Decimal) -> Decimal:
    """Unrounded spent / amount * 100; zero for a zero budget."""
    if amount == 0:
        return Decimal("0")
    return spent / amount * 100


def round_percentage(percentage: Decimal) -> int:
    """Round half up to a whole percent."""
    return int(percentage.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class BudgetService(LedgerService):
    """Budget CRUD, progress and alert checks."""

    entity_type = "budget"

    def __init__(
        self,
        storage: BudgetStorageInterface,
        transaction_storage: TransactionStorageInterface,
        category_storage: CategoryStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[LedgerValidator] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        super().__init__(audit_logger, validator, settings)
        self._storage = storage
        self._transactions = transaction_storage
        self._categories = category_storage

    # =========================================================================
    # CRUD
    # =========================================================================

    async def create(self, data: Mapping[str, Any]) -> Budget:
        payload = dict(data)
        payload.setdefault("alert_threshold", self._settings.default_alert_threshold)

        budget = await self._validated(
            self._validator.validate_new,
            Budget,
            payload,
            self.entity_type,
            user_id=payload.get("user_id"),
        )
        await self._check_categories(budget)
        await self._storage.save_budget(budget)

        await self._audit_change(
            AuditEventType.BUDGET_CREATED,
            budget,
            f"Budget '{budget.name}' created",
            details={
                "amount": str(budget.amount),
                "period": budget.period.value,
                "category_count": len(budget.category_ids),
            },
        )
        return budget

    async def get_by_id(self, budget_id: UUID, user_id: Optional[UUID] = None) -> Budget:
        budget = await self._storage.get_budget_by_id(budget_id)
        return owned(budget, self.entity_type, budget_id, user_id)

    async def get_user_budgets(self, user_id: UUID, include_inactive: bool = False) -> list[Budget]:
        return await self._storage.list_budgets(user_id, include_inactive=include_inactive)

    async def update(
        self,
        budget_id: UUID,
        patch: Mapping[str, Any],
        user_id: Optional[UUID] = None,
    ) -> Budget:
        existing = await self.get_by_id(budget_id, user_id)
        updated = await self._validated(
            self._validator.validate_patch,
            existing,
            patch,
            BUDGET_MUTABLE_FIELDS,
            self.entity_type,
            user_id=existing.user_id,
        )
        await self._check_categories(updated)

        try:
            await self._storage.update_budget(updated)
        except RecordNotFoundError as e:
            raise NotFoundError(self.entity_type, budget_id) from e

        await self._audit_change(
            AuditEventType.BUDGET_UPDATED,
            updated,
            f"Budget '{updated.name}' updated",
            details={"fields": sorted(dict(patch))},
        )
        return await self.get_by_id(budget_id)

    async def delete(self, budget_id: UUID, user_id: Optional[UUID] = None) -> None:
        budget = await self.get_by_id(budget_id, user_id)
        if not await self._storage.delete_budget(budget_id):
            raise NotFoundError(self.entity_type, budget_id)

        await self._audit_change(
            AuditEventType.BUDGET_DELETED,
            budget,
            f"Budget '{budget.name}' deleted",
        )

    # =========================================================================
    # PROGRESS & ALERTS
    # =========================================================================

    async def get_budget_progress(
        self,
        budget_id: UUID,
        reference_date: Optional[dt.date] = None,
        user_id: Optional[UUID] = None,
    ) -> BudgetProgress:
        """
        Spend of a budget over the period containing reference_date.

        Counts expenses of the budget owner in the budget's categories
        dated inside the period. `remaining` goes negative on overspend.
        """
        budget = await self.get_by_id(budget_id, user_id)
        period = resolve_period(budget.period, reference_date or utc_today())
        spent = await self._spent(budget, period)

        return BudgetProgress(
            budget_id=budget.id,
            budget=budget.amount,
            spent=spent,
            remaining=budget.amount - spent,
            percentage=round_percentage(spend_percentage(spent, budget.amount)),
            period=period,
        )

    async def check_budget_alerts(
        self,
        user_id: UUID,
        reference_date: Optional[dt.date] = None,
    ) -> list[BudgetAlert]:
        """
        Active, notifying budgets whose spend reached their threshold.

        The percentage on each alert is unrounded.
        """
        day = reference_date or utc_today()
        alerts = []
        for budget in await self._storage.list_budgets(user_id, include_inactive=False):
            if not budget.is_active or not budget.notifications_enabled:
                continue

            period = resolve_period(budget.period, day)
            spent = await self._spent(budget, period)
            percentage = spend_percentage(spent, budget.amount)
            if percentage < budget.alert_threshold:
                continue

            alerts.append(BudgetAlert(
                budget_id=budget.id,
                budget_name=budget.name,
                amount=budget.amount,
                spent=spent,
                percentage=percentage,
                threshold=budget.alert_threshold,
                remaining=budget.amount - spent,
                period=period,
            ))
        return alerts

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _spent(self, budget: Budget, period: BudgetPeriod) -> Decimal:
        if not budget.category_ids:
            return Decimal("0")
        transactions = await self._transactions.list_transactions(
            budget.user_id,
            transaction_type=TransactionType.EXPENSE,
            date_from=period.start,
            date_to=period.end,
            category_ids=budget.category_ids,
        )
        return expense_total(transactions, budget.category_ids, period.start, period.end)

    async def _check_categories(self, budget: Budget) -> None:
        for category_id in budget.category_ids:
            category = await self._categories.get_category_by_id(category_id)
            owned(category, "category", category_id, budget.user_id)
