"""
Two-Stage Record Validation

DESIGN DECISION: Records are validated before they reach a store, and
stores never hand out records that break an invariant. The aggregation
engine therefore never validates anything.

STAGE 1 - SCHEMA VALIDATION:
- Required fields (member, item, unit price)
- Ranges (unit price >= 0, quantity >= 1)
- Kind is income or expense
- Total amount equals unit price x quantity

STAGE 2 - SEMANTIC VALIDATION:
- Suspiciously large totals
These are warnings only. They are shown to the user but never block a save.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them and the caller decides.
"""

from typing import Any, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from crm_finance.config import AppSettings, get_settings
from crm_finance.models.record import (
    RecordDraft,
    RecordPatch,
    ValidationIssue,
    ValidationResult,
)


_SUGGESTED_FIXES = {
    "missing": "Fill in this field before saving",
    "greater_than_equal": "Use a value of zero or more (quantity must be at least 1)",
    "enum": "Choose either income or expense",
    "total_mismatch": "Leave the total empty so it is calculated from price and quantity",
    "string_too_short": "This field cannot be empty",
    "extra_forbidden": "This field cannot be edited",
}


class RecordValidationError(ValueError):
    """A record violates one of the ledger invariants."""

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        super().__init__(message)
        self.issues = issues or []

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError) -> "RecordValidationError":
        """Translate a pydantic error into the ledger's validation error."""
        issues = issues_from_pydantic(exc)
        summary = "; ".join(f"{i.field}: {i.message}" for i in issues)
        return cls(f"Invalid record: {summary}", issues)


def issues_from_pydantic(exc: PydanticValidationError) -> list[ValidationIssue]:
    """Convert each pydantic error into a ValidationIssue."""
    issues = []
    for error in exc.errors():
        issue_type = error["type"]
        loc = ".".join(str(part) for part in error["loc"])
        if not loc:
            loc = "total_amount" if issue_type == "total_mismatch" else "record"
        issues.append(ValidationIssue(
            field=loc,
            issue_type=issue_type,
            message=error["msg"],
            severity="error",
            suggested_fix=_SUGGESTED_FIXES.get(issue_type),
        ))
    return issues


class RecordValidator:
    """
    Validates submitted and edited records.

    Stage 1 is pydantic; stage 2 uses the thresholds from AppSettings.
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def validate_draft(
        self,
        data: Union[dict[str, Any], RecordDraft],
    ) -> tuple[Optional[RecordDraft], ValidationResult]:
        """
        Validate a new record from the add form.

        Returns: (draft_or_None, result)
        """
        if isinstance(data, RecordDraft):
            draft, issues = data, []
        else:
            draft, issues = self._parse(RecordDraft, data)

        schema_valid = draft is not None
        warnings: list[str] = []
        if draft is not None:
            warnings = self._semantic_warnings(draft.total_amount)

        return draft, self._result(schema_valid, issues, warnings)

    def validate_patch(
        self,
        data: Union[dict[str, Any], RecordPatch],
    ) -> tuple[Optional[RecordPatch], ValidationResult]:
        """
        Validate a partial update from the edit form.

        The merged record is validated again by the store, since only
        the store sees the current price and quantity.
        """
        if isinstance(data, RecordPatch):
            patch, issues = data, []
        else:
            patch, issues = self._parse(RecordPatch, data)

        warnings: list[str] = []
        if patch is not None and patch.total_amount is not None:
            warnings = self._semantic_warnings(patch.total_amount)

        return patch, self._result(patch is not None, issues, warnings)

    def ensure_draft(self, data: Union[dict[str, Any], RecordDraft]) -> RecordDraft:
        """Return the parsed draft or raise RecordValidationError."""
        draft, result = self.validate_draft(data)
        if draft is None:
            raise self._error(result)
        return draft

    def ensure_patch(self, data: Union[dict[str, Any], RecordPatch]) -> RecordPatch:
        """Return the parsed patch or raise RecordValidationError."""
        patch, result = self.validate_patch(data)
        if patch is None:
            raise self._error(result)
        return patch

    def _parse(self, model_cls, data: dict[str, Any]):
        try:
            return model_cls.model_validate(data), []
        except PydanticValidationError as e:
            return None, issues_from_pydantic(e)

    def _semantic_warnings(self, total_amount) -> list[str]:
        warnings = []
        if total_amount is not None and float(total_amount) > self._settings.max_record_amount:
            warnings.append(
                f"Total amount {total_amount} is unusually large "
                f"(above {self._settings.max_record_amount:,.0f}). Please double-check."
            )
        return warnings

    def _result(
        self,
        schema_valid: bool,
        issues: list[ValidationIssue],
        warnings: list[str],
    ) -> ValidationResult:
        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=not warnings,
            is_valid=schema_valid,
            issues=issues,
            warnings=warnings,
        )

    def _error(self, result: ValidationResult) -> RecordValidationError:
        summary = "; ".join(f"{i.field}: {i.message}" for i in result.issues)
        return RecordValidationError(f"Invalid record: {summary}", result.issues)
