"""
Shared plumbing for the ledger services.

Owner checks, validation with audit of rejected payloads, and audit
of entity changes.
"""

from typing import Any, Callable, Optional, TypeVar
from uuid import UUID

from ledger.audit import AuditLogger
from ledger.config import LedgerSettings, get_settings
from ledger.errors import NotFoundError, ValidationError
from ledger.models.audit import AuditEventType
from ledger.validation import LedgerValidator


RecordT = TypeVar("RecordT")


def owned(record: Optional[RecordT], entity_type: str, entity_id: UUID, user_id: Optional[UUID]) -> RecordT:
    """
    Return the record if it exists and belongs to user_id.

    A record owned by someone else is reported exactly like a missing one.
    """
    if record is None or (user_id is not None and record.user_id != user_id):
        raise NotFoundError(entity_type, entity_id)
    return record


class LedgerService:
    """Base class for the ledger services."""

    entity_type = "record"

    def __init__(
        self,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[LedgerValidator] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._settings = settings or get_settings().app
        self._validator = validator or LedgerValidator(self._settings)
        self._audit_logger = audit_logger

    async def _validated(self, check: Callable[..., Any], *args, user_id: Optional[UUID] = None, **kwargs):
        """Run a validator check; rejected payloads are written to the activity log."""
        try:
            return check(*args, **kwargs)
        except ValidationError as e:
            if self._audit_logger:
                await self._audit_logger.log_validation_failed(
                    entity_type=self.entity_type,
                    issues=[issue.model_dump() for issue in e.issues],
                    user_id=user_id,
                )
            raise

    async def _audit_change(
        self,
        event_type: AuditEventType,
        record,
        description: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_entity_event(
                event_type=event_type,
                entity_type=self.entity_type,
                entity_id=record.id,
                user_id=record.user_id,
                description=description,
                details=details,
                correlation_id=correlation_id,
            )
