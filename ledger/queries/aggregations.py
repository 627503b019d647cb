"""
Ledger Aggregations

DESIGN DECISION: Aggregation is DETERMINISTIC and read-only.
Every figure reported to the caller (monthly totals, category totals,
per-currency balances, budget spend) is computed here from records
actually returned by storage. Nothing is cached and nothing is estimated.

These helpers take already-fetched records so the same arithmetic serves
every storage backend.
"""

import calendar
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

from ledger.models.ledger import (
    CategoryStat,
    CurrencyTotal,
    MonthlyStats,
    Transaction,
    TransactionType,
    Wallet,
)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last calendar day of a month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def sum_by_type(transactions: Iterable[Transaction]) -> dict[TransactionType, Decimal]:
    """Total amount per transaction type."""
    totals = {t: Decimal("0") for t in TransactionType}
    for txn in transactions:
        totals[txn.type] += txn.amount
    return totals


def monthly_stats(
    transactions: Iterable[Transaction],
    year: int,
    month: int,
) -> MonthlyStats:
    """
    Income, expense and net balance for one calendar month.

    Transactions outside the month are ignored, so callers may pass a
    wider selection.
    """
    start, end = month_bounds(year, month)
    totals = sum_by_type(t for t in transactions if start <= t.date <= end)
    income = totals[TransactionType.INCOME]
    expense = totals[TransactionType.EXPENSE]
    return MonthlyStats(
        year=year,
        month=month,
        income=income,
        expense=expense,
        balance=income - expense,
    )


def category_stats(transactions: Iterable[Transaction]) -> list[CategoryStat]:
    """
    Group by (category, type) with total and count.

    Ordered by total descending; ties keep a stable order by type then
    category id so results are reproducible.
    """
    totals: dict[tuple[Optional[UUID], TransactionType], Decimal] = defaultdict(Decimal)
    counts: dict[tuple[Optional[UUID], TransactionType], int] = defaultdict(int)
    for txn in transactions:
        key = (txn.category_id, txn.type)
        totals[key] += txn.amount
        counts[key] += 1

    stats = [
        CategoryStat(category_id=cat_id, type=txn_type, total=total, count=counts[(cat_id, txn_type)])
        for (cat_id, txn_type), total in totals.items()
    ]
    stats.sort(key=lambda s: (s.type.value, str(s.category_id)))
    stats.sort(key=lambda s: s.total, reverse=True)
    return stats


def currency_totals(
    wallets: Iterable[Wallet],
    currency: Optional[str] = None,
) -> list[CurrencyTotal]:
    """
    Sum wallet balances grouped by currency.

    Inactive wallets and wallets excluded from stats do not count.
    No conversion between currencies is attempted.
    """
    totals: dict[str, Decimal] = defaultdict(Decimal)
    counts: dict[str, int] = defaultdict(int)
    for wallet in wallets:
        if not wallet.is_active or wallet.exclude_from_stats:
            continue
        if currency and wallet.currency != currency.upper():
            continue
        totals[wallet.currency] += wallet.balance
        counts[wallet.currency] += 1

    return [
        CurrencyTotal(currency=code, total=totals[code], wallet_count=counts[code])
        for code in sorted(totals)
    ]


def expense_total(
    transactions: Iterable[Transaction],
    category_ids: Iterable[UUID],
    start: date,
    end: date,
) -> Decimal:
    """Sum of expenses in the given categories over an inclusive date range."""
    categories = set(category_ids)
    return sum(
        (
            t.amount for t in transactions
            if t.type == TransactionType.EXPENSE
            and t.category_id in categories
            and start <= t.date <= end
        ),
        Decimal("0"),
    )
