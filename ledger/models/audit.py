"""
Activity log models.

An AuditEvent records one change to ledger state or one rejected operation.
Events of one multi-step operation share a correlation id.

DESIGN DECISION: The activity log only grows. Events are appended and
never rewritten, so the log can be replayed to explain any balance.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from ledger.models.ledger import utc_now


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every ledger mutation has its own event type.
    """
    # Wallets
    WALLET_CREATED = "wallet_created"
    WALLET_UPDATED = "wallet_updated"
    WALLET_DELETED = "wallet_deleted"
    WALLET_BALANCE_ADJUSTED = "wallet_balance_adjusted"

    # Categories
    CATEGORY_CREATED = "category_created"
    CATEGORY_UPDATED = "category_updated"
    CATEGORY_DELETED = "category_deleted"
    DEFAULT_CATEGORIES_CREATED = "default_categories_created"

    # Transactions
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"

    # Transfers
    TRANSFER_COMPLETED = "transfer_completed"
    TRANSFER_REJECTED = "transfer_rejected"

    # Budgets
    BUDGET_CREATED = "budget_created"
    BUDGET_UPDATED = "budget_updated"
    BUDGET_DELETED = "budget_deleted"

    # Consistency
    VALIDATION_FAILED = "validation_failed"
    COMPENSATION_APPLIED = "compensation_applied"
    DATA_INTEGRITY_INCIDENT = "data_integrity_incident"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """How loudly an event is reported."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """One row of the activity log."""

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Primary key of the log row"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="UTC time the event was built"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="What happened"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Log level used for the process log"
    )

    # Who
    user_id: Optional[UUID] = Field(
        default=None,
        description="Owner whose data was touched"
    )

    # Subject
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'wallet', 'transaction', 'budget')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="Id of the record that changed"
    )

    # Grouping
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., both legs of a transfer)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="One-line summary for people reading the log"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Free-form payload, JSON-serializable"
    )

    # Failures only
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Flat keyword arguments for structlog."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": str(self.user_id) if self.user_id else None,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Cells of the ActivityLog worksheet.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, user_id, entity_type,
         entity_id, correlation_id, description, details_json, error_code,
         error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            str(self.user_id) if self.user_id else "",
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_code or "",
            self.error_message or "",
        ]


def _money(value: Decimal) -> str:
    return str(value)


class AuditEventBuilder:
    """
    Factories for the events the ledger emits, one per situation.

    Usage:
        event = AuditEventBuilder.balance_adjusted(wallet_id, delta, new_balance, reason)
        event = AuditEventBuilder.data_integrity_incident(...)
    """

    @staticmethod
    def entity_changed(
        event_type: AuditEventType,
        entity_type: str,
        entity_id: UUID,
        user_id: Optional[UUID],
        description: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=description,
            details=details or {},
        )

    @staticmethod
    def balance_adjusted(
        wallet_id: UUID,
        delta: Decimal,
        new_balance: Decimal,
        reason: str,
        user_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WALLET_BALANCE_ADJUSTED,
            user_id=user_id,
            entity_type="wallet",
            entity_id=wallet_id,
            correlation_id=correlation_id,
            description=f"Wallet balance adjusted by {_money(delta)} ({reason})",
            details={
                "delta": _money(delta),
                "new_balance": _money(new_balance),
                "reason": reason,
            },
        )

    @staticmethod
    def transfer_completed(
        transfer_id: UUID,
        source_wallet_id: UUID,
        dest_wallet_id: UUID,
        amount: Decimal,
        user_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_COMPLETED,
            user_id=user_id,
            entity_type="transfer",
            entity_id=transfer_id,
            correlation_id=transfer_id,
            description=f"Transferred {_money(amount)} between wallets",
            details={
                "source_wallet_id": str(source_wallet_id),
                "dest_wallet_id": str(dest_wallet_id),
                "amount": _money(amount),
            },
        )

    @staticmethod
    def transfer_rejected(
        source_wallet_id: UUID,
        amount: Decimal,
        reason: str,
        user_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_REJECTED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="wallet",
            entity_id=source_wallet_id,
            description=f"Transfer of {_money(amount)} rejected: {reason}",
            details={
                "amount": _money(amount),
                "reason": reason,
            },
        )

    @staticmethod
    def validation_failed(
        entity_type: str,
        issues: list[dict],
        user_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type=entity_type,
            description=f"{entity_type.capitalize()} validation failed with {len(issues)} issues",
            details={
                "issues": issues,
            },
        )

    @staticmethod
    def compensation_applied(
        entity_type: str,
        entity_id: UUID,
        operation: str,
        error_message: str,
        user_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMPENSATION_APPLIED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Rolled back partial {operation} of {entity_type}",
            error_message=error_message,
            details={
                "operation": operation,
            },
        )

    @staticmethod
    def data_integrity_incident(
        entity_type: str,
        entity_id: Optional[UUID],
        operation: str,
        error_message: str,
        details: Optional[dict] = None,
        user_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_INTEGRITY_INCIDENT,
            severity=AuditSeverity.CRITICAL,
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Compensation failed during {operation}; ledger may be inconsistent",
            error_code="COMPENSATION_FAILED",
            error_message=error_message,
            details={
                "operation": operation,
                **(details or {}),
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
