"""
Transaction selection shared by the storage backends.

Neither backend can push filters down to the store, so both
filter in Python the same way.
"""

from datetime import date
from typing import Iterable, Optional
from uuid import UUID

from ledger.models.ledger import Transaction, TransactionType


def select_transactions(
    transactions: Iterable[Transaction],
    user_id: UUID,
    transaction_type: Optional[TransactionType] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    category_ids: Optional[list[UUID]] = None,
    wallet_id: Optional[UUID] = None,
    tag: Optional[str] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> list[Transaction]:
    """Apply the list_transactions filters, sort newest first, paginate."""
    category_set = set(category_ids) if category_ids is not None else None

    selected = []
    for txn in transactions:
        if txn.user_id != user_id:
            continue
        if transaction_type and txn.type != transaction_type:
            continue
        if date_from and txn.date < date_from:
            continue
        if date_to and txn.date > date_to:
            continue
        if category_set is not None and txn.category_id not in category_set:
            continue
        if wallet_id and txn.wallet_id != wallet_id:
            continue
        if tag and tag not in txn.tags:
            continue
        selected.append(txn)

    # Newest first; creation time breaks ties on the same day
    selected.sort(key=lambda t: (t.date, t.created_at), reverse=True)

    if limit is None:
        return selected[offset:]
    return selected[offset:offset + limit]
