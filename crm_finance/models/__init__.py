"""
Data Models Package

This package contains all Pydantic models used by CRM Finance.
All data flowing through the ledger must conform to these schemas.
"""

from crm_finance.models.record import (
    FinancialRecord,
    FinancialSummary,
    ItemStat,
    MemberStat,
    MonthlyStat,
    RecordDraft,
    RecordKind,
    RecordPatch,
    SummaryRequest,
    TimeRange,
    ValidationIssue,
    ValidationResult,
    parse_timestamp,
)
from crm_finance.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Record models
    "FinancialRecord",
    "FinancialSummary",
    "ItemStat",
    "MemberStat",
    "MonthlyStat",
    "RecordDraft",
    "RecordKind",
    "RecordPatch",
    "SummaryRequest",
    "TimeRange",
    "ValidationIssue",
    "ValidationResult",
    "parse_timestamp",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
