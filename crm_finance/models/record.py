"""
Core Data Models for CRM Finance

These models define the schemas for every record flowing through the ledger.
They are designed to:
1. Enforce the record invariants at construction time
2. Accept the legacy localStorage shape (`_id`, `time`, `unitPrice`, ...)
3. Be serializable for storage and logging

DESIGN DECISION: Money is Decimal end to end. Floats coming from legacy JSON
are converted through their string form so 149.94 stays 149.94.
"""

import re
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic_core import PydanticCustomError


# Legacy add page wrote `new Date().toLocaleString('zh-TW')`, e.g. "2024/1/15 下午2:20:00"
_ZH_TW_TIMESTAMP = re.compile(
    r"^(\d{4})/(\d{1,2})/(\d{1,2})\s*(上午|下午)?\s*(\d{1,2}):(\d{2})(?::(\d{2}))?$"
)


def parse_timestamp(value: Any) -> Any:
    """
    Parse the timestamp formats found in stored records.

    Accepts datetime objects, ISO-8601 strings (with or without `T`, seconds
    or a `Z` suffix) and the zh-TW locale form. Anything else is handed back
    untouched so pydantic reports the error.
    """
    if not isinstance(value, str):
        return value

    text = value.strip()
    match = _ZH_TW_TIMESTAMP.match(text)
    if match:
        year, month, day, meridiem, hour, minute, second = match.groups()
        hour = int(hour)
        if meridiem == "下午" and hour < 12:
            hour += 12
        elif meridiem == "上午" and hour == 12:
            hour = 0
        return datetime(
            int(year), int(month), int(day), hour, int(minute), int(second or 0)
        )

    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return value


def _coerce_money(value: Any) -> Any:
    if isinstance(value, float):
        return Decimal(str(value))
    return value


def _total_mismatch(total: Decimal, expected: Decimal) -> PydanticCustomError:
    return PydanticCustomError(
        "total_mismatch",
        "Total amount {total} does not match unit price x quantity ({expected})",
        {"total": str(total), "expected": str(expected)},
    )


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class RecordKind(str, Enum):
    """
    Income/expense classification of a record.

    Serialized as `type` in the legacy JSON shape.
    """
    INCOME = "income"
    EXPENSE = "expense"


class TimeRange(str, Enum):
    """
    Report time ranges offered by the reports page.

    This is a closed contract with the presentation layer: adding a value
    means adding its boundary rule in the aggregation engine.
    """
    THIS_MONTH = "this-month"
    LAST_MONTH = "last-month"
    THIS_QUARTER = "this-quarter"
    CUSTOM = "custom"  # No filtering applied


# =============================================================================
# CORE RECORD MODELS
# =============================================================================

class FinancialRecord(BaseModel):
    """
    A single income or expense ledger entry.

    INVARIANTS (checked on construction):
    - total_amount == unit_price * quantity
    - quantity >= 1, unit_price >= 0
    - kind is income or expense

    The total is NOT re-derived on read. Whoever builds or edits a record
    is responsible for keeping it consistent.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
    )

    id: str = Field(
        ...,
        alias="_id",
        min_length=1,
        description="Unique record identifier"
    )
    timestamp: datetime = Field(
        ...,
        alias="time",
        description="Creation time, refreshed on every edit"
    )
    member: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Member display name (matched by exact string equality)"
    )
    item: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Category/label of the entry"
    )
    details: str = Field(
        default="",
        max_length=1000,
        description="Free-text details"
    )
    location: str = Field(
        default="",
        max_length=200,
        description="Free-text location"
    )
    unit_price: Decimal = Field(
        ...,
        alias="unitPrice",
        ge=0,
        decimal_places=2,
    )
    quantity: int = Field(
        ...,
        ge=1,
    )
    total_amount: Decimal = Field(
        ...,
        alias="totalAmount",
        ge=0,
        description="unit_price x quantity"
    )
    kind: RecordKind = Field(
        ...,
        alias="type",
    )

    @field_validator("timestamp", mode="before")
    @classmethod
    def parse_legacy_timestamp(cls, v: Any) -> Any:
        return parse_timestamp(v)

    @field_validator("unit_price", "total_amount", mode="before")
    @classmethod
    def money_from_float(cls, v: Any) -> Any:
        return _coerce_money(v)

    @field_validator("details", "location", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @model_validator(mode="after")
    def validate_total(self) -> "FinancialRecord":
        """Total must match price x quantity."""
        expected = self.unit_price * self.quantity
        if self.total_amount != expected:
            raise _total_mismatch(self.total_amount, expected)
        return self

    def apply_patch(
        self,
        patch: "RecordPatch",
        modified_at: datetime,
    ) -> "FinancialRecord":
        """
        Return a new record with the patch applied.

        The timestamp becomes the modification time. When price or quantity
        change and no total is supplied, the total is re-derived.
        """
        changes = patch.model_dump(exclude_unset=True)
        merged = self.model_dump()
        merged.update(changes)

        price_or_quantity_changed = "unit_price" in changes or "quantity" in changes
        if price_or_quantity_changed and "total_amount" not in changes:
            merged["total_amount"] = Decimal(merged["unit_price"]) * int(merged["quantity"])

        merged["timestamp"] = modified_at
        return FinancialRecord.model_validate(merged)

    def to_storage_dict(self) -> dict:
        """
        Convert to the legacy localStorage JSON shape.

        Money is written as strings to keep exact decimal values.
        """
        return {
            "_id": self.id,
            "time": self.timestamp.isoformat(),
            "member": self.member,
            "item": self.item,
            "details": self.details,
            "location": self.location,
            "unitPrice": str(self.unit_price),
            "quantity": self.quantity,
            "totalAmount": str(self.total_amount),
            "type": self.kind.value,
        }


class RecordDraft(BaseModel):
    """
    A record as submitted from the add form, before the store assigns
    an identifier and a timestamp.

    total_amount is optional; when omitted it is derived.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
    )

    member: str = Field(..., min_length=1, max_length=100)
    item: str = Field(..., min_length=1, max_length=100)
    details: str = Field(default="", max_length=1000)
    location: str = Field(default="", max_length=200)
    unit_price: Decimal = Field(..., alias="unitPrice", ge=0, decimal_places=2)
    quantity: int = Field(default=1, ge=1)
    total_amount: Optional[Decimal] = Field(default=None, alias="totalAmount", ge=0)
    kind: RecordKind = Field(default=RecordKind.INCOME, alias="type")

    @field_validator("unit_price", "total_amount", mode="before")
    @classmethod
    def money_from_float(cls, v: Any) -> Any:
        return _coerce_money(v)

    @field_validator("details", "location", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @model_validator(mode="after")
    def derive_total(self) -> "RecordDraft":
        expected = self.unit_price * self.quantity
        if self.total_amount is None:
            self.total_amount = expected
        elif self.total_amount != expected:
            raise _total_mismatch(self.total_amount, expected)
        return self

    def to_record(self, record_id: str, created_at: datetime) -> FinancialRecord:
        """Materialize the draft as a stored record."""
        return FinancialRecord(
            id=record_id,
            timestamp=created_at,
            member=self.member,
            item=self.item,
            details=self.details,
            location=self.location,
            unit_price=self.unit_price,
            quantity=self.quantity,
            total_amount=self.total_amount,
            kind=self.kind,
        )


class RecordPatch(BaseModel):
    """
    Partial update from the edit form.

    Identifier and timestamp are not editable: the store owns both.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        extra="forbid",
    )

    member: Optional[str] = Field(default=None, min_length=1, max_length=100)
    item: Optional[str] = Field(default=None, min_length=1, max_length=100)
    details: Optional[str] = Field(default=None, max_length=1000)
    location: Optional[str] = Field(default=None, max_length=200)
    unit_price: Optional[Decimal] = Field(default=None, alias="unitPrice", ge=0, decimal_places=2)
    quantity: Optional[int] = Field(default=None, ge=1)
    total_amount: Optional[Decimal] = Field(default=None, alias="totalAmount", ge=0)
    kind: Optional[RecordKind] = Field(default=None, alias="type")

    @field_validator("unit_price", "total_amount", mode="before")
    @classmethod
    def money_from_float(cls, v: Any) -> Any:
        return _coerce_money(v)

    @property
    def is_empty(self) -> bool:
        return not self.model_fields_set


# =============================================================================
# DERIVED AGGREGATES - never stored
# =============================================================================

class MonthlyStat(BaseModel):
    """Income/expense/net for one calendar month bucket."""

    month: str = Field(
        ...,
        pattern=r"^\d{4}-\d{2}$",
        description="Calendar month, YYYY-MM"
    )
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")
    net: Decimal = Decimal("0")


class MemberStat(BaseModel):
    """Accumulated totals for one member."""

    member: str
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")
    net: Decimal = Decimal("0")
    record_count: int = Field(default=0, ge=0)


class ItemStat(BaseModel):
    """Accumulated total and record count for one item label."""

    item: str
    total: Decimal = Decimal("0")
    count: int = Field(default=0, ge=0)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'total_mismatch')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """
    Result of validating a submitted or edited record.

    Stage 1: Schema validation (types, ranges, total consistency)
    Stage 2: Semantic checks (suspiciously large totals)
    """

    schema_valid: bool
    semantic_valid: bool
    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")


# =============================================================================
# REPORT MODELS
# =============================================================================

class SummaryRequest(BaseModel):
    """
    Filters selected on the list/by-name/reports pages.

    Filters apply in a fixed order: member, then search term, then time range.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    member_filter: Optional[str] = Field(
        default=None,
        description="Exact member name; empty means all members"
    )
    search_term: str = Field(
        default="",
        description="Case-insensitive text searched in member/item/details/location"
    )
    time_range: TimeRange = TimeRange.CUSTOM
    top_n: Optional[int] = Field(
        default=None,
        ge=0,
        description="Size of the top member/item lists; composer default when unset"
    )


class FinancialSummary(BaseModel):
    """
    Everything a report view needs, computed from one filtered snapshot.

    Built all-or-nothing by the report composer.
    """

    request: SummaryRequest
    generated_at: datetime = Field(default_factory=datetime.now)
    reference_now: datetime

    record_count: int = Field(ge=0)
    total_income: Decimal
    total_expense: Decimal
    net: Decimal

    monthly: list[MonthlyStat] = Field(default_factory=list)
    top_members: list[MemberStat] = Field(default_factory=list)
    top_items: list[ItemStat] = Field(default_factory=list)
    members: list[str] = Field(
        default_factory=list,
        description="Distinct members of the filtered set, first-seen order"
    )
