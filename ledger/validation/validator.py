"""
Core-Boundary Validation

DESIGN DECISION: Every payload is validated before the engine touches
storage, in two stages:

STAGE 1 - SHAPE:
- Unknown keys
- Server-managed or immutable keys (id, timestamps, wallet balance)

STAGE 2 - SCHEMA:
- Type checking and required field presence (pydantic)
- Enumerated values (transaction type, wallet type, budget period)
- Positive amounts, date ordering

WHY AT THE CORE: the storage layer may enforce its own schema, but the
engine must stay portable to backends that enforce nothing.

IMPORTANT: Validation NEVER silently fixes issues. Every problem is
reported as a ValidationIssue and the whole payload is rejected.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional, TypeVar, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ledger.config import LedgerSettings, get_settings
from ledger.errors import ValidationError
from ledger.models.ledger import TransactionFilters, ValidationIssue


ModelT = TypeVar("ModelT", bound=BaseModel)

SERVER_MANAGED_FIELDS = frozenset({"id", "created_at", "updated_at"})

# pydantic error type -> our issue type
_ISSUE_TYPES = {
    "missing": "missing",
    "enum": "unknown_value",
    "literal_error": "unknown_value",
    "greater_than": "invalid_value",
    "greater_than_equal": "invalid_value",
    "less_than_equal": "invalid_value",
    "string_too_short": "invalid_value",
    "string_too_long": "invalid_value",
    "value_error": "inconsistent",
}


def _as_mapping(data: Union[Mapping[str, Any], BaseModel, None]) -> dict[str, Any]:
    if data is None:
        return {}
    if isinstance(data, BaseModel):
        return data.model_dump(exclude_unset=True)
    return dict(data)


def issues_from_pydantic(error: PydanticValidationError) -> list[ValidationIssue]:
    """Translate a pydantic error into ValidationIssues."""
    issues = []
    for err in error.errors():
        field = ".".join(str(part) for part in err["loc"]) or "record"
        issues.append(ValidationIssue(
            field=field,
            issue_type=_ISSUE_TYPES.get(err["type"], err["type"]),
            message=err["msg"],
        ))
    return issues


class LedgerValidator:
    """
    Validates create payloads, update patches and query filters.

    Raises ValidationError carrying every issue found.
    """

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = settings or get_settings().app

    def _check_shape(
        self,
        data: dict[str, Any],
        allowed: set[str],
        entity_type: str,
        immutable_messages: Optional[dict[str, str]] = None,
    ) -> list[ValidationIssue]:
        """Stage 1: reject unknown and immutable keys."""
        issues = []
        immutable_messages = immutable_messages or {}
        for key in data:
            if key in immutable_messages:
                issues.append(ValidationIssue(
                    field=key,
                    issue_type="immutable",
                    message=immutable_messages[key],
                ))
            elif key in SERVER_MANAGED_FIELDS or (key == "user_id" and key not in allowed):
                issues.append(ValidationIssue(
                    field=key,
                    issue_type="immutable",
                    message=f"{key} is managed by the ledger and cannot be set",
                ))
            elif key not in allowed:
                issues.append(ValidationIssue(
                    field=key,
                    issue_type="unknown_field",
                    message=f"Unknown {entity_type} field: {key}",
                ))
        return issues

    def _raise(self, entity_type: str, issues: list[ValidationIssue]) -> None:
        summary = "; ".join(f"{i.field}: {i.message}" for i in issues)
        raise ValidationError(f"Invalid {entity_type}: {summary}", issues)

    def validate_new(
        self,
        model_cls: type[ModelT],
        data: Union[Mapping[str, Any], BaseModel],
        entity_type: str,
        immutable_messages: Optional[dict[str, str]] = None,
        server_values: Optional[dict[str, Any]] = None,
    ) -> ModelT:
        """
        Build a new entity from a create payload.

        Args:
            model_cls: Entity model to build
            data: Caller payload
            entity_type: Name used in error messages
            immutable_messages: Extra keys callers may never set, with
                the message explaining why
            server_values: Values the ledger sets itself (e.g. the
                opening balance), merged after the shape check

        Returns:
            The validated entity (id and timestamps generated)
        """
        payload = _as_mapping(data)
        allowed = set(model_cls.model_fields) - SERVER_MANAGED_FIELDS
        issues = self._check_shape(payload, allowed, entity_type, immutable_messages)
        if issues:
            self._raise(entity_type, issues)

        payload.update(server_values or {})
        try:
            return model_cls.model_validate(payload)
        except PydanticValidationError as e:
            self._raise(entity_type, issues_from_pydantic(e))

    def validate_patch(
        self,
        existing: ModelT,
        patch: Union[Mapping[str, Any], BaseModel],
        mutable_fields: set[str],
        entity_type: str,
        immutable_messages: Optional[dict[str, str]] = None,
    ) -> ModelT:
        """
        Apply an update patch to an existing entity.

        The merged record is re-validated as a whole, so cross-field rules
        (date ordering, positive amounts) hold after the patch too.
        """
        changes = _as_mapping(patch)
        if not changes:
            self._raise(entity_type, [ValidationIssue(
                field="patch",
                issue_type="missing",
                message="Update contains no fields",
            )])

        issues = self._check_shape(changes, mutable_fields, entity_type, immutable_messages)
        if issues:
            self._raise(entity_type, issues)

        merged = existing.model_dump()
        merged.update(changes)
        try:
            return type(existing).model_validate(merged)
        except PydanticValidationError as e:
            self._raise(entity_type, issues_from_pydantic(e))

    def validate_filters(
        self,
        filters: Union[Mapping[str, Any], TransactionFilters, None],
    ) -> TransactionFilters:
        """Validate transaction list filters and the page size cap."""
        if isinstance(filters, TransactionFilters):
            parsed = filters
        else:
            payload = _as_mapping(filters)
            issues = self._check_shape(
                payload, set(TransactionFilters.model_fields), "filter"
            )
            if issues:
                self._raise("filter", issues)
            try:
                parsed = TransactionFilters.model_validate(payload)
            except PydanticValidationError as e:
                self._raise("filter", issues_from_pydantic(e))

        if parsed.limit and parsed.limit > self._settings.max_page_size:
            self._raise("filter", [ValidationIssue(
                field="limit",
                issue_type="invalid_value",
                message=f"limit cannot exceed {self._settings.max_page_size}",
            )])
        return parsed

    def validate_amount(self, amount: Any, field: str = "amount") -> Decimal:
        """A strictly positive monetary magnitude."""
        try:
            value = Decimal(str(amount))
        except (InvalidOperation, TypeError, ValueError):
            self._raise(field, [ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message=f"{amount!r} is not a number",
            )])
        if not value.is_finite() or value <= 0:
            self._raise(field, [ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message="Amount must be greater than zero",
            )])
        return value
