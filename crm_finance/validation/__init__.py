"""Record validation package."""

from crm_finance.validation.validator import (
    RecordValidationError,
    RecordValidator,
    issues_from_pydantic,
)

__all__ = ["RecordValidationError", "RecordValidator", "issues_from_pydantic"]
