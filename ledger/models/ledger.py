"""
Core Data Models for the Personal Ledger

These models define the strict schemas for every entity the ledger owns.
They are designed to:
1. Enforce type safety at the core boundary (not only in the storage layer)
2. Provide clear validation error messages
3. Be serializable for storage and logging
4. Carry the sign of money in `type`, never in `amount`

DESIGN DECISION: Monetary values are Decimal and calendar dates are plain
dates compared as UTC calendar days. A datetime handed to any date field is
normalized to its UTC calendar day.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


DEFAULT_CURRENCY = "VND"


def utc_now() -> dt.datetime:
    """Current time as an aware UTC datetime."""
    return dt.datetime.now(dt.timezone.utc)


def utc_today() -> dt.date:
    """Current UTC calendar day."""
    return utc_now().date()


def to_utc_date(value):
    """
    Normalize a datetime, or an ISO datetime string, to its UTC calendar day.

    Plain dates and anything unparseable pass through to pydantic.
    """
    if isinstance(value, str) and len(value) > 10:
        try:
            value = dt.datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return value
    if isinstance(value, dt.datetime):
        if value.tzinfo is not None:
            value = value.astimezone(dt.timezone.utc)
        return value.date()
    return value


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """
    Direction of a money movement.

    Used by transactions and categories alike.
    """
    INCOME = "income"
    EXPENSE = "expense"

    @property
    def sign(self) -> int:
        """+1 for income, -1 for expense."""
        return 1 if self is TransactionType.INCOME else -1


class WalletType(str, Enum):
    """Kinds of wallets accepted by the storage validator."""
    CASH = "cash"
    BANK = "bank"
    CREDIT_CARD = "credit_card"
    E_WALLET = "e-wallet"


class BudgetPeriodType(str, Enum):
    """Recurring budget periods."""
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


# =============================================================================
# ENTITIES
# =============================================================================

class Wallet(BaseModel):
    """
    An account holding a running balance in one currency.

    INVARIANT: balance equals the initial balance plus the net sum of every
    transaction currently referencing this wallet. Only the Wallet Store's
    atomic increment may move it after creation.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID = Field(..., description="Owner of the wallet")
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Wallet name (unique per owner)"
    )
    description: str = Field(default="", max_length=500)
    type: WalletType = Field(default=WalletType.CASH)
    currency: str = Field(
        default=DEFAULT_CURRENCY,
        min_length=3,
        max_length=3,
        description="ISO currency code"
    )
    balance: Decimal = Field(
        default=Decimal("0"),
        description="Signed running balance"
    )
    icon: Optional[str] = Field(default=None, max_length=50)
    color: Optional[str] = Field(default=None, max_length=20)
    is_active: bool = True
    exclude_from_stats: bool = False

    created_at: dt.datetime = Field(default_factory=utc_now)
    updated_at: dt.datetime = Field(default_factory=utc_now)

    @field_validator('currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.upper()


class Category(BaseModel):
    """
    Category metadata referenced by transactions and budgets.

    Categories are never mutated by transactions. Deleting one is
    forbidden while any transaction still references it.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    name: str = Field(..., min_length=1, max_length=100)
    type: TransactionType
    description: str = Field(default="", max_length=500)
    color: Optional[str] = Field(default=None, max_length=20)
    icon: Optional[str] = Field(default=None, max_length=50)
    is_default: bool = False
    budget_limit: Optional[Decimal] = Field(default=None, ge=0)

    created_at: dt.datetime = Field(default_factory=utc_now)
    updated_at: dt.datetime = Field(default_factory=utc_now)


class Transaction(BaseModel):
    """
    A single income or expense event.

    CRITICAL: `amount` is always a positive magnitude. The sign of the
    money movement is carried by `type`.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    amount: Decimal = Field(..., gt=0, description="Positive magnitude")
    type: TransactionType
    category_id: Optional[UUID] = None
    wallet_id: Optional[UUID] = Field(
        default=None,
        description="Wallet affected by this transaction (None = tracking only)"
    )
    description: str = Field(default="", max_length=500)
    date: dt.date = Field(..., description="UTC calendar day of the event")
    tags: list[str] = Field(default_factory=list)
    transfer_id: Optional[UUID] = Field(
        default=None,
        description="Shared by the two legs of a wallet-to-wallet transfer"
    )

    created_at: dt.datetime = Field(default_factory=utc_now)
    updated_at: dt.datetime = Field(default_factory=utc_now)

    normalize_date = field_validator('date', mode='before')(to_utc_date)

    @field_validator('tags')
    @classmethod
    def normalize_tags(cls, v: list[str]) -> list[str]:
        """Strip tags, drop empties and duplicates (order kept)."""
        seen = []
        for tag in v:
            tag = tag.strip()
            if tag and tag not in seen:
                seen.append(tag)
        return seen

    @property
    def wallet_effect(self) -> Decimal:
        """Signed amount this transaction contributes to its wallet."""
        return self.amount * self.type.sign


class Budget(BaseModel):
    """
    A spending cap over a recurring period across a set of categories.

    Budgets do not own balances. Progress is derived on demand.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)
    amount: Decimal = Field(..., ge=0, description="Spending cap")
    period: BudgetPeriodType = BudgetPeriodType.MONTHLY
    category_ids: list[UUID] = Field(default_factory=list)
    start_date: dt.date = Field(default_factory=utc_today)
    end_date: Optional[dt.date] = None
    color: Optional[str] = Field(default=None, max_length=20)
    icon: Optional[str] = Field(default=None, max_length=50)
    alert_threshold: int = Field(
        default=80,
        ge=0,
        le=100,
        description="Percentage of spend at which an alert is raised"
    )
    notifications_enabled: bool = True
    is_active: bool = True

    created_at: dt.datetime = Field(default_factory=utc_now)
    updated_at: dt.datetime = Field(default_factory=utc_now)

    normalize_dates = field_validator('start_date', 'end_date', mode='before')(to_utc_date)

    @field_validator('category_ids')
    @classmethod
    def dedupe_categories(cls, v: list[UUID]) -> list[UUID]:
        return list(dict.fromkeys(v))

    @model_validator(mode='after')
    def validate_dates(self) -> 'Budget':
        if self.end_date and self.end_date < self.start_date:
            raise ValueError("Budget end date cannot be before start date")
        return self


# =============================================================================
# QUERY INPUTS
# =============================================================================

class TransactionFilters(BaseModel):
    """Filters accepted by `get_user_transactions`."""

    type: Optional[TransactionType] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    category_id: Optional[UUID] = None
    wallet_id: Optional[UUID] = None
    tag: Optional[str] = None
    limit: Optional[int] = Field(default=None, ge=1)
    page: int = Field(default=0, ge=0, description="Zero-based page index")

    normalize_dates = field_validator('start_date', 'end_date', mode='before')(to_utc_date)

    @model_validator(mode='after')
    def validate_range(self) -> 'TransactionFilters':
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date")
        return self

    @property
    def offset(self) -> int:
        return self.page * self.limit if self.limit else 0


# =============================================================================
# RESULT MODELS
# =============================================================================

class BudgetPeriod(BaseModel):
    """Inclusive calendar-day boundaries of a budget period."""

    start: dt.date
    end: dt.date

    def contains(self, day: dt.date) -> bool:
        return self.start <= day <= self.end


class BudgetProgress(BaseModel):
    """Spend of a budget over one resolved period."""

    budget_id: UUID
    budget: Decimal = Field(..., description="Budget cap")
    spent: Decimal
    remaining: Decimal = Field(..., description="May go negative")
    percentage: int = Field(..., description="round(spent / budget * 100)")
    period: BudgetPeriod


class BudgetAlert(BaseModel):
    """A budget whose spend crossed its alert threshold."""

    budget_id: UUID
    budget_name: str
    amount: Decimal
    spent: Decimal
    percentage: Decimal = Field(..., description="Unrounded spend percentage")
    threshold: int
    remaining: Decimal
    period: BudgetPeriod


class MonthlyStats(BaseModel):
    """Income and expense totals over one calendar month."""

    year: int
    month: int
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")


class CategoryStat(BaseModel):
    """Total and count of transactions for one (category, type) group."""

    category_id: Optional[UUID]
    type: TransactionType
    total: Decimal
    count: int = Field(ge=0)


class CurrencyTotal(BaseModel):
    """Sum of wallet balances sharing one currency."""

    currency: str
    total: Decimal
    wallet_count: int = Field(ge=0)


class TransferResult(BaseModel):
    """Outcome of a wallet-to-wallet transfer."""

    transfer_id: UUID
    expense_transaction_id: UUID
    income_transaction_id: UUID
    source_balance: Decimal
    destination_balance: Decimal


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found at the core boundary."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'immutable')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
    )
