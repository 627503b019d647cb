"""
Activity log writer.

DESIGN DECISION: Each ledger mutation leaves an event behind.
Every balance movement can be traced to the operation behind it. A
compensation that itself fails is logged as a CRITICAL incident.

Events go to the structured process log first and to the activity log
storage second. A storage failure is reported and swallowed: losing an
audit row must never undo or block a balance change.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from ledger.services.storage import AuditStorageInterface


# JSON lines through the stdlib logging tree
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Writes audit events for every ledger service.

    Each event goes to:
    1. The structlog process log, at the severity of the event
    2. The activity log storage, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """Without a storage, events only reach the process log."""
        self._storage = storage
        self._logger = structlog.get_logger("ledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Write one event.

        Returns False when the activity log storage rejected it, True otherwise.
        """
        log_dict = event.to_log_dict()

        if event.severity == AuditSeverity.CRITICAL:
            self._logger.critical("audit_event", **log_dict)
        elif event.severity == AuditSeverity.ERROR:
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Reported, never raised
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_entity_event(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: UUID,
        user_id: Optional[UUID],
        description: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a create/update/delete of a wallet, category, transaction or budget."""
        event = AuditEventBuilder.entity_changed(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            description=description,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_balance_adjusted(
        self,
        wallet_id: UUID,
        delta: Decimal,
        new_balance: Decimal,
        reason: str,
        user_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.balance_adjusted(
            wallet_id=wallet_id,
            delta=delta,
            new_balance=new_balance,
            reason=reason,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transfer_completed(
        self,
        transfer_id: UUID,
        source_wallet_id: UUID,
        dest_wallet_id: UUID,
        amount: Decimal,
        user_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.transfer_completed(
            transfer_id=transfer_id,
            source_wallet_id=source_wallet_id,
            dest_wallet_id=dest_wallet_id,
            amount=amount,
            user_id=user_id,
        )
        await self.log(event)

    async def log_transfer_rejected(
        self,
        source_wallet_id: UUID,
        amount: Decimal,
        reason: str,
        user_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.transfer_rejected(
            source_wallet_id=source_wallet_id,
            amount=amount,
            reason=reason,
            user_id=user_id,
        )
        await self.log(event)

    async def log_validation_failed(
        self,
        entity_type: str,
        issues: list[dict],
        user_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.validation_failed(
            entity_type=entity_type,
            issues=issues,
            user_id=user_id,
        )
        await self.log(event)

    async def log_compensation_applied(
        self,
        entity_type: str,
        entity_id: UUID,
        operation: str,
        error_message: str,
        user_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.compensation_applied(
            entity_type=entity_type,
            entity_id=entity_id,
            operation=operation,
            error_message=error_message,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_integrity_incident(
        self,
        entity_type: str,
        entity_id: Optional[UUID],
        operation: str,
        error_message: str,
        details: Optional[dict] = None,
        user_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed compensation. Always critical."""
        event = AuditEventBuilder.data_integrity_incident(
            entity_type=entity_type,
            entity_id=entity_id,
            operation=operation,
            error_message=error_message,
            details=details,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Unexpected failure outside the normal error taxonomy."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """Fresh id grouping the events of one multi-step operation."""
    return uuid4()
