"""
Category Store

Category metadata referenced by transactions and budgets. Transactions
never mutate categories; a category cannot be removed while any
transaction still points at it.
"""

from datetime import date
from typing import Any, Mapping, Optional
from uuid import UUID

from ledger.audit import AuditLogger
from ledger.config import LedgerSettings
from ledger.engine.base import LedgerService, owned
from ledger.errors import ConflictError, NotFoundError
from ledger.models.audit import AuditEventType
from ledger.models.ledger import Category, CategoryStat, TransactionType
from ledger.queries import category_stats
from ledger.services.storage import (
    CategoryStorageInterface,
    DuplicateError,
    RecordNotFoundError,
    TransactionStorageInterface,
)
from ledger.validation import LedgerValidator


CATEGORY_MUTABLE_FIELDS = {
    "name",
    "type",
    "description",
    "color",
    "icon",
    "budget_limit",
}

# (name, type, icon, color)
DEFAULT_CATEGORIES = [
    ("Salary", TransactionType.INCOME, "briefcase", "#2e7d32"),
    ("Bonus", TransactionType.INCOME, "gift", "#388e3c"),
    ("Investment", TransactionType.INCOME, "trending-up", "#43a047"),
    ("Other Income", TransactionType.INCOME, "plus-circle", "#66bb6a"),
    ("Food & Dining", TransactionType.EXPENSE, "utensils", "#e53935"),
    ("Transportation", TransactionType.EXPENSE, "car", "#fb8c00"),
    ("Shopping", TransactionType.EXPENSE, "shopping-bag", "#8e24aa"),
    ("Bills & Utilities", TransactionType.EXPENSE, "file-text", "#3949ab"),
    ("Entertainment", TransactionType.EXPENSE, "film", "#d81b60"),
    ("Healthcare", TransactionType.EXPENSE, "heart", "#00897b"),
    ("Education", TransactionType.EXPENSE, "book", "#1e88e5"),
    ("Other Expense", TransactionType.EXPENSE, "more-horizontal", "#757575"),
]


class CategoryService(LedgerService):
    """Category CRUD, default category seeding and category statistics."""

    entity_type = "category"

    def __init__(
        self,
        storage: CategoryStorageInterface,
        transaction_storage: TransactionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[LedgerValidator] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        super().__init__(audit_logger, validator, settings)
        self._storage = storage
        self._transactions = transaction_storage

    async def create(self, data: Mapping[str, Any]) -> Category:
        """
        Create a category.

        Raises:
            ValidationError: invalid payload
            ConflictError: the owner already has a category with this name
        """
        category = await self._validated(
            self._validator.validate_new,
            Category,
            data,
            self.entity_type,
            immutable_messages={"is_default": "Only default seeding can flag a category as default"},
            user_id=dict(data).get("user_id"),
        )
        return await self._save(category)

    async def _save(self, category: Category) -> Category:
        try:
            await self._storage.save_category(category)
        except DuplicateError as e:
            raise ConflictError("Category already exists") from e

        await self._audit_change(
            AuditEventType.CATEGORY_CREATED,
            category,
            f"Category '{category.name}' created",
            details={"type": category.type.value, "is_default": category.is_default},
        )
        return category

    async def get_by_id(self, category_id: UUID, user_id: Optional[UUID] = None) -> Category:
        category = await self._storage.get_category_by_id(category_id)
        return owned(category, self.entity_type, category_id, user_id)

    async def get_user_categories(
        self,
        user_id: UUID,
        category_type: Optional[TransactionType] = None,
    ) -> list[Category]:
        return await self._storage.list_categories(user_id, category_type)

    async def update(
        self,
        category_id: UUID,
        patch: Mapping[str, Any],
        user_id: Optional[UUID] = None,
    ) -> Category:
        existing = await self.get_by_id(category_id, user_id)
        updated = await self._validated(
            self._validator.validate_patch,
            existing,
            patch,
            CATEGORY_MUTABLE_FIELDS,
            self.entity_type,
            user_id=existing.user_id,
        )

        try:
            await self._storage.update_category(updated)
        except DuplicateError as e:
            raise ConflictError("Category already exists") from e
        except RecordNotFoundError as e:
            raise NotFoundError(self.entity_type, category_id) from e

        await self._audit_change(
            AuditEventType.CATEGORY_UPDATED,
            updated,
            f"Category '{updated.name}' updated",
            details={"fields": sorted(dict(patch))},
        )
        return await self.get_by_id(category_id)

    async def delete(self, category_id: UUID, user_id: Optional[UUID] = None) -> None:
        """
        Delete a category no transaction references.

        Raises:
            NotFoundError: unknown category or wrong owner
            ConflictError: the category is still in use
        """
        category = await self.get_by_id(category_id, user_id)

        if await self._transactions.count_transactions(category_id=category_id):
            raise ConflictError("Cannot delete category that is in use")

        if not await self._storage.delete_category(category_id):
            raise NotFoundError(self.entity_type, category_id)

        await self._audit_change(
            AuditEventType.CATEGORY_DELETED,
            category,
            f"Category '{category.name}' deleted",
        )

    async def create_default_categories(self, user_id: UUID) -> list[Category]:
        """
        Seed the default income and expense categories for a user.

        Names the user already has are skipped, so seeding twice is
        harmless. Returns only the categories created by this call.
        """
        existing = {c.name for c in await self._storage.list_categories(user_id)}
        created = []
        for name, category_type, icon, color in DEFAULT_CATEGORIES:
            if name in existing:
                continue
            category = Category(
                user_id=user_id,
                name=name,
                type=category_type,
                icon=icon,
                color=color,
                is_default=True,
            )
            created.append(await self._save(category))

        if self._audit_logger and created:
            await self._audit_logger.log_entity_event(
                event_type=AuditEventType.DEFAULT_CATEGORIES_CREATED,
                entity_type=self.entity_type,
                entity_id=user_id,
                user_id=user_id,
                description=f"Seeded {len(created)} default categories",
                details={"names": [c.name for c in created]},
            )
        return created

    async def get_category_stats(
        self,
        user_id: UUID,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[CategoryStat]:
        """Total and count per (category, type) over an inclusive date range."""
        transactions = await self._transactions.list_transactions(
            user_id,
            date_from=start_date,
            date_to=end_date,
        )
        return category_stats(transactions)
