"""Query and aggregation package."""

from ledger.queries.aggregations import (
    category_stats,
    currency_totals,
    expense_total,
    month_bounds,
    monthly_stats,
    sum_by_type,
)

__all__ = [
    "category_stats",
    "currency_totals",
    "expense_total",
    "month_bounds",
    "monthly_stats",
    "sum_by_type",
]
