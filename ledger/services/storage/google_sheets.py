"""
Google Sheets backend.

One worksheet per entity, one row per record, header row first. The
owner can open the spreadsheet and read the ledger directly.

TRADEOFFS:
- Every lookup reads the whole worksheet; fine for one person's ledger
- Sheets has no atomic increment, so balance updates are serialized with
  a client-wide asyncio.Lock (one process per spreadsheet)
- Filtering happens in Python, shared with the in-memory backend

Only idempotent calls (connect, reads) are retried. Mutations are never
retried: a retried append could duplicate a row and a retried increment
could apply twice.
"""

import asyncio
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from gspread.utils import rowcol_to_a1
from tenacity import retry, stop_after_attempt, wait_exponential

from ledger.config import GoogleSheetsSettings, get_settings
from ledger.models.ledger import (
    Budget,
    BudgetPeriodType,
    Category,
    Transaction,
    TransactionType,
    Wallet,
    WalletType,
    utc_now,
)
from ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from ledger.services.storage.filters import select_transactions
from ledger.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    CategoryStorageInterface,
    DuplicateError,
    RecordNotFoundError,
    StorageConnectionError,
    StorageError,
    TransactionStorageInterface,
    WalletStorageInterface,
)


WALLET_COLUMNS = [
    "id",
    "user_id",
    "name",
    "description",
    "type",
    "currency",
    "balance",
    "icon",
    "color",
    "is_active",
    "exclude_from_stats",
    "created_at",
    "updated_at",
]

CATEGORY_COLUMNS = [
    "id",
    "user_id",
    "name",
    "type",
    "description",
    "color",
    "icon",
    "is_default",
    "budget_limit",
    "created_at",
    "updated_at",
]

TRANSACTION_COLUMNS = [
    "id",
    "user_id",
    "amount",
    "type",
    "category_id",
    "wallet_id",
    "description",
    "date",
    "tags_json",
    "transfer_id",
    "created_at",
    "updated_at",
]

BUDGET_COLUMNS = [
    "id",
    "user_id",
    "name",
    "description",
    "amount",
    "period",
    "category_ids_json",
    "start_date",
    "end_date",
    "color",
    "icon",
    "alert_threshold",
    "notifications_enabled",
    "is_active",
    "created_at",
    "updated_at",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_code",
    "error_message",
]

# Settings attribute holding each worksheet's title -> its header row
SHEET_LAYOUTS = {
    "wallets_sheet_name": WALLET_COLUMNS,
    "categories_sheet_name": CATEGORY_COLUMNS,
    "transactions_sheet_name": TRANSACTION_COLUMNS,
    "budgets_sheet_name": BUDGET_COLUMNS,
    "audit_sheet_name": AUDIT_COLUMNS,
}

read_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)

logger = structlog.get_logger(__name__)


def _opt(value) -> str:
    return "" if value is None else str(value)


def _bool(value: str) -> bool:
    return value.strip().lower() == "true"


class GoogleSheetsClient:
    """
    Connection to the ledger spreadsheet.

    Authentication happens on first use and missing worksheets are
    created with their header row. One client serves every entity storage.
    """

    def __init__(
        self,
        settings: Optional[GoogleSheetsSettings] = None,
        spreadsheet: Optional[gspread.Spreadsheet] = None,
    ):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet = spreadsheet
        self._settings = settings or get_settings().google_sheets
        self._worksheets: dict[str, gspread.Worksheet] = {}
        # Serializes read-add-write of balance cells
        self.balance_lock = asyncio.Lock()

    @read_retry
    def connect(self) -> gspread.Client:
        """Authorize with the service account key (once)."""
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Open the ledger spreadsheet on first use."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, sheet_key: str) -> gspread.Worksheet:
        """
        Get or create a worksheet by its settings key.

        A missing worksheet is created with its header row.
        """
        if sheet_key in self._worksheets:
            return self._worksheets[sheet_key]

        columns = SHEET_LAYOUTS[sheet_key]
        title = getattr(self._settings, sheet_key)
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(columns),
            )
            sheet.append_row(columns)
        self._worksheets[sheet_key] = sheet
        return sheet

    def initialize(self) -> list[str]:
        """Create every worksheet the ledger needs. Returns their titles."""
        return [
            self.get_worksheet(sheet_key).title
            for sheet_key in SHEET_LAYOUTS
        ]


class _WorksheetStorage:
    """Row lookup helpers shared by the entity storages."""

    sheet_key: str = ""
    columns: list[str] = []

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_worksheet(self.sheet_key)

    @read_retry
    def _all_rows(self) -> list[list[str]]:
        """Every data row (header excluded)."""
        return self._sheet().get_all_values()[1:]

    def _row_dict(self, row: list) -> dict[str, str]:
        return {
            column: (row[idx] if idx < len(row) else "")
            for idx, column in enumerate(self.columns)
        }

    def _find_row(self, record_id: UUID) -> Optional[tuple[int, list]]:
        """Return (1-based sheet row index, row) for an id, or None."""
        for idx, row in enumerate(self._all_rows(), start=2):  # Row 1 is header
            if row and row[0] == str(record_id):
                return idx, row
        return None

    def _records(self, parse) -> list:
        records = []
        for row in self._all_rows():
            if not row or not row[0]:
                continue
            try:
                records.append(parse(self._row_dict(row)))
            except (ValueError, KeyError) as e:
                logger.warning(
                    "malformed_sheet_row",
                    sheet=self.sheet_key,
                    row_id=row[0],
                    error=str(e),
                )
        return records

    def _append(self, values: list) -> None:
        self._sheet().append_row(values, value_input_option="RAW")

    def _write_ranges(self, row_idx: int, cells: dict[int, str]) -> None:
        """
        Write {1-based column: value} of one row in a single batch_update.

        Adjacent columns share one A1 range. The request either lands
        completely or not at all, so a row is never left half-written.
        """
        runs: list[tuple[int, list]] = []
        for col_idx in sorted(cells):
            if runs and runs[-1][0] + len(runs[-1][1]) == col_idx:
                runs[-1][1].append(cells[col_idx])
            else:
                runs.append((col_idx, [cells[col_idx]]))
        self._sheet().batch_update(
            [
                {"range": rowcol_to_a1(row_idx, start), "values": [values]}
                for start, values in runs
            ],
            value_input_option="RAW",
        )

    def _rewrite(self, row_idx: int, values: list, skip: tuple[str, ...] = ()) -> None:
        self._write_ranges(
            row_idx,
            {
                col_idx: value
                for col_idx, (column, value) in enumerate(zip(self.columns, values), start=1)
                if column not in skip
            },
        )

    def _delete(self, record_id: UUID) -> bool:
        found = self._find_row(record_id)
        if found is None:
            return False
        self._sheet().delete_rows(found[0])
        return True


class GoogleSheetsWalletStorage(_WorksheetStorage, WalletStorageInterface):
    """Wallets, one per row."""

    sheet_key = "wallets_sheet_name"
    columns = WALLET_COLUMNS

    def _wallet_to_row(self, wallet: Wallet) -> list:
        return [
            str(wallet.id),
            str(wallet.user_id),
            wallet.name,
            wallet.description,
            wallet.type.value,
            wallet.currency,
            str(wallet.balance),
            _opt(wallet.icon),
            _opt(wallet.color),
            str(wallet.is_active),
            str(wallet.exclude_from_stats),
            wallet.created_at.isoformat(),
            wallet.updated_at.isoformat(),
        ]

    def _row_to_wallet(self, data: dict[str, str]) -> Wallet:
        return Wallet(
            id=UUID(data["id"]),
            user_id=UUID(data["user_id"]),
            name=data["name"],
            description=data["description"],
            type=WalletType(data["type"]),
            currency=data["currency"],
            balance=Decimal(data["balance"] or "0"),
            icon=data["icon"] or None,
            color=data["color"] or None,
            is_active=_bool(data["is_active"]),
            exclude_from_stats=_bool(data["exclude_from_stats"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )

    def _name_taken(self, wallet: Wallet) -> bool:
        return any(
            w.user_id == wallet.user_id and w.name == wallet.name and w.id != wallet.id
            for w in self._records(self._row_to_wallet)
        )

    async def save_wallet(self, wallet: Wallet) -> bool:
        if self._name_taken(wallet):
            raise DuplicateError(f"Wallet name already exists: {wallet.name}")
        try:
            self._append(self._wallet_to_row(wallet))
            return True
        except Exception as e:
            raise StorageError(f"Failed to save wallet: {e}")

    async def get_wallet_by_id(self, wallet_id: UUID) -> Optional[Wallet]:
        try:
            found = self._find_row(wallet_id)
            return self._row_to_wallet(self._row_dict(found[1])) if found else None
        except Exception as e:
            raise StorageError(f"Failed to get wallet: {e}")

    async def update_wallet(self, wallet: Wallet) -> bool:
        if self._name_taken(wallet):
            raise DuplicateError(f"Wallet name already exists: {wallet.name}")
        try:
            found = self._find_row(wallet.id)
            if found is None:
                raise RecordNotFoundError(f"Wallet not found: {wallet.id}")
            wallet = wallet.model_copy(update={"updated_at": utc_now()})
            self._rewrite(found[0], self._wallet_to_row(wallet), skip=("balance",))
            return True
        except RecordNotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update wallet: {e}")

    async def delete_wallet(self, wallet_id: UUID) -> bool:
        try:
            return self._delete(wallet_id)
        except Exception as e:
            raise StorageError(f"Failed to delete wallet: {e}")

    async def list_wallets(
        self,
        user_id: UUID,
        include_inactive: bool = False,
    ) -> list[Wallet]:
        try:
            wallets = [
                w for w in self._records(self._row_to_wallet)
                if w.user_id == user_id and (include_inactive or w.is_active)
            ]
        except Exception as e:
            raise StorageError(f"Failed to list wallets: {e}")
        wallets.sort(key=lambda w: w.name)
        return wallets

    async def increment_balance(self, wallet_id: UUID, delta: Decimal) -> Decimal:
        async with self._client.balance_lock:
            found = self._find_row(wallet_id)
            if found is None:
                raise RecordNotFoundError(f"Wallet not found: {wallet_id}")
            row_idx, row = found
            data = self._row_dict(row)
            new_balance = Decimal(data["balance"] or "0") + delta
            try:
                self._write_ranges(
                    row_idx,
                    {
                        WALLET_COLUMNS.index("balance") + 1: str(new_balance),
                        WALLET_COLUMNS.index("updated_at") + 1: utc_now().isoformat(),
                    },
                )
            except Exception as e:
                raise StorageError(f"Failed to update wallet balance: {e}")
            return new_balance


class GoogleSheetsCategoryStorage(_WorksheetStorage, CategoryStorageInterface):
    """Categories, one per row."""

    sheet_key = "categories_sheet_name"
    columns = CATEGORY_COLUMNS

    def _category_to_row(self, category: Category) -> list:
        return [
            str(category.id),
            str(category.user_id),
            category.name,
            category.type.value,
            category.description,
            _opt(category.color),
            _opt(category.icon),
            str(category.is_default),
            _opt(category.budget_limit),
            category.created_at.isoformat(),
            category.updated_at.isoformat(),
        ]

    def _row_to_category(self, data: dict[str, str]) -> Category:
        return Category(
            id=UUID(data["id"]),
            user_id=UUID(data["user_id"]),
            name=data["name"],
            type=TransactionType(data["type"]),
            description=data["description"],
            color=data["color"] or None,
            icon=data["icon"] or None,
            is_default=_bool(data["is_default"]),
            budget_limit=Decimal(data["budget_limit"]) if data["budget_limit"] else None,
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )

    def _name_taken(self, category: Category) -> bool:
        return any(
            c.user_id == category.user_id and c.name == category.name and c.id != category.id
            for c in self._records(self._row_to_category)
        )

    async def save_category(self, category: Category) -> bool:
        if self._name_taken(category):
            raise DuplicateError(f"Category already exists: {category.name}")
        try:
            self._append(self._category_to_row(category))
            return True
        except Exception as e:
            raise StorageError(f"Failed to save category: {e}")

    async def get_category_by_id(self, category_id: UUID) -> Optional[Category]:
        try:
            found = self._find_row(category_id)
            return self._row_to_category(self._row_dict(found[1])) if found else None
        except Exception as e:
            raise StorageError(f"Failed to get category: {e}")

    async def update_category(self, category: Category) -> bool:
        if self._name_taken(category):
            raise DuplicateError(f"Category already exists: {category.name}")
        try:
            found = self._find_row(category.id)
            if found is None:
                raise RecordNotFoundError(f"Category not found: {category.id}")
            category = category.model_copy(update={"updated_at": utc_now()})
            self._rewrite(found[0], self._category_to_row(category))
            return True
        except RecordNotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update category: {e}")

    async def delete_category(self, category_id: UUID) -> bool:
        try:
            return self._delete(category_id)
        except Exception as e:
            raise StorageError(f"Failed to delete category: {e}")

    async def list_categories(
        self,
        user_id: UUID,
        category_type: Optional[TransactionType] = None,
    ) -> list[Category]:
        try:
            categories = [
                c for c in self._records(self._row_to_category)
                if c.user_id == user_id
                and (category_type is None or c.type == category_type)
            ]
        except Exception as e:
            raise StorageError(f"Failed to list categories: {e}")
        categories.sort(key=lambda c: c.name)
        return categories


class GoogleSheetsTransactionStorage(_WorksheetStorage, TransactionStorageInterface):
    """
    Transactions, one per row.

    Tags are JSON-serialized into a single cell.
    """

    sheet_key = "transactions_sheet_name"
    columns = TRANSACTION_COLUMNS

    def _transaction_to_row(self, txn: Transaction) -> list:
        return [
            str(txn.id),
            str(txn.user_id),
            str(txn.amount),
            txn.type.value,
            _opt(txn.category_id),
            _opt(txn.wallet_id),
            txn.description,
            txn.date.isoformat(),
            json.dumps(txn.tags),
            _opt(txn.transfer_id),
            txn.created_at.isoformat(),
            txn.updated_at.isoformat(),
        ]

    def _row_to_transaction(self, data: dict[str, str]) -> Transaction:
        return Transaction(
            id=UUID(data["id"]),
            user_id=UUID(data["user_id"]),
            amount=Decimal(data["amount"]),
            type=TransactionType(data["type"]),
            category_id=UUID(data["category_id"]) if data["category_id"] else None,
            wallet_id=UUID(data["wallet_id"]) if data["wallet_id"] else None,
            description=data["description"],
            date=date.fromisoformat(data["date"]),
            tags=json.loads(data["tags_json"]) if data["tags_json"] else [],
            transfer_id=UUID(data["transfer_id"]) if data["transfer_id"] else None,
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )

    async def save_transaction(self, transaction: Transaction) -> bool:
        try:
            self._append(self._transaction_to_row(transaction))
            return True
        except Exception as e:
            raise StorageError(f"Failed to save transaction: {e}")

    async def get_transaction_by_id(
        self,
        transaction_id: UUID,
    ) -> Optional[Transaction]:
        try:
            found = self._find_row(transaction_id)
            return self._row_to_transaction(self._row_dict(found[1])) if found else None
        except Exception as e:
            raise StorageError(f"Failed to get transaction: {e}")

    async def update_transaction(self, transaction: Transaction) -> bool:
        try:
            found = self._find_row(transaction.id)
            if found is None:
                raise RecordNotFoundError(f"Transaction not found: {transaction.id}")
            transaction = transaction.model_copy(update={"updated_at": utc_now()})
            self._rewrite(found[0], self._transaction_to_row(transaction))
            return True
        except RecordNotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update transaction: {e}")

    async def delete_transaction(self, transaction_id: UUID) -> bool:
        try:
            return self._delete(transaction_id)
        except Exception as e:
            raise StorageError(f"Failed to delete transaction: {e}")

    async def list_transactions(
        self,
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
        try:
            records = self._records(self._row_to_transaction)
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")
        return select_transactions(
            records,
            user_id=user_id,
            transaction_type=transaction_type,
            date_from=date_from,
            date_to=date_to,
            category_ids=category_ids,
            wallet_id=wallet_id,
            tag=tag,
            limit=limit,
            offset=offset,
        )

    async def count_transactions(
        self,
        wallet_id: Optional[UUID] = None,
        category_id: Optional[UUID] = None,
    ) -> int:
        try:
            rows = [self._row_dict(row) for row in self._all_rows() if row and row[0]]
        except Exception as e:
            raise StorageError(f"Failed to count transactions: {e}")
        return sum(
            1
            for data in rows
            if (wallet_id is None or data["wallet_id"] == str(wallet_id))
            and (category_id is None or data["category_id"] == str(category_id))
        )


class GoogleSheetsBudgetStorage(_WorksheetStorage, BudgetStorageInterface):
    """Budgets, one per row. Category ids are JSON-serialized."""

    sheet_key = "budgets_sheet_name"
    columns = BUDGET_COLUMNS

    def _budget_to_row(self, budget: Budget) -> list:
        return [
            str(budget.id),
            str(budget.user_id),
            budget.name,
            budget.description,
            str(budget.amount),
            budget.period.value,
            json.dumps([str(cid) for cid in budget.category_ids]),
            budget.start_date.isoformat(),
            budget.end_date.isoformat() if budget.end_date else "",
            _opt(budget.color),
            _opt(budget.icon),
            str(budget.alert_threshold),
            str(budget.notifications_enabled),
            str(budget.is_active),
            budget.created_at.isoformat(),
            budget.updated_at.isoformat(),
        ]

    def _row_to_budget(self, data: dict[str, str]) -> Budget:
        return Budget(
            id=UUID(data["id"]),
            user_id=UUID(data["user_id"]),
            name=data["name"],
            description=data["description"],
            amount=Decimal(data["amount"]),
            period=BudgetPeriodType(data["period"]),
            category_ids=[
                UUID(cid) for cid in json.loads(data["category_ids_json"] or "[]")
            ],
            start_date=date.fromisoformat(data["start_date"]),
            end_date=date.fromisoformat(data["end_date"]) if data["end_date"] else None,
            color=data["color"] or None,
            icon=data["icon"] or None,
            alert_threshold=int(data["alert_threshold"]),
            notifications_enabled=_bool(data["notifications_enabled"]),
            is_active=_bool(data["is_active"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )

    async def save_budget(self, budget: Budget) -> bool:
        try:
            self._append(self._budget_to_row(budget))
            return True
        except Exception as e:
            raise StorageError(f"Failed to save budget: {e}")

    async def get_budget_by_id(self, budget_id: UUID) -> Optional[Budget]:
        try:
            found = self._find_row(budget_id)
            return self._row_to_budget(self._row_dict(found[1])) if found else None
        except Exception as e:
            raise StorageError(f"Failed to get budget: {e}")

    async def update_budget(self, budget: Budget) -> bool:
        try:
            found = self._find_row(budget.id)
            if found is None:
                raise RecordNotFoundError(f"Budget not found: {budget.id}")
            budget = budget.model_copy(update={"updated_at": utc_now()})
            self._rewrite(found[0], self._budget_to_row(budget))
            return True
        except RecordNotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update budget: {e}")

    async def delete_budget(self, budget_id: UUID) -> bool:
        try:
            return self._delete(budget_id)
        except Exception as e:
            raise StorageError(f"Failed to delete budget: {e}")

    async def list_budgets(
        self,
        user_id: UUID,
        include_inactive: bool = False,
    ) -> list[Budget]:
        try:
            budgets = [
                b for b in self._records(self._row_to_budget)
                if b.user_id == user_id and (include_inactive or b.is_active)
            ]
        except Exception as e:
            raise StorageError(f"Failed to list budgets: {e}")
        budgets.sort(key=lambda b: b.created_at)
        return budgets


class GoogleSheetsAuditStorage(_WorksheetStorage, AuditStorageInterface):
    """The ActivityLog worksheet. Rows are appended, never rewritten."""

    sheet_key = "audit_sheet_name"
    columns = AUDIT_COLUMNS

    def _row_to_event(self, data: dict[str, str]) -> AuditEvent:
        return AuditEvent(
            event_id=UUID(data["event_id"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            event_type=AuditEventType(data["event_type"]),
            severity=AuditSeverity(data["severity"]),
            user_id=UUID(data["user_id"]) if data["user_id"] else None,
            entity_type=data["entity_type"] or None,
            entity_id=UUID(data["entity_id"]) if data["entity_id"] else None,
            correlation_id=UUID(data["correlation_id"]) if data["correlation_id"] else None,
            description=data["description"],
            details=json.loads(data["details_json"]) if data["details_json"] else {},
            error_code=data["error_code"] or None,
            error_message=data["error_message"] or None,
        )

    async def append_event(self, event: AuditEvent) -> bool:
        """Append one row; failures are logged and reported as False."""
        try:
            self._append(event.to_sheets_row())
            return True
        except Exception as e:
            # Audit logging must not break the main flow
            logger.warning(
                "audit_append_failed",
                event_id=str(event.event_id),
                error=str(e),
            )
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [
                e for e in self._records(self._row_to_event)
                if e.correlation_id == correlation_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [
                e for e in self._records(self._row_to_event)
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            events = self._records(self._row_to_event)
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
