"""
Aggregation Engine

DESIGN DECISION: Aggregation is a set of PURE functions.
Every page (list, by-name, reports) used to re-implement the same
filter/sum/group logic. Here it exists once, and:
- Never mutates its input
- Never does I/O or touches a store
- Never raises on empty input (sums are 0, rankings are empty)
- Assumes records are already validated

Callers fetch a snapshot from a record store, pass it through these
functions, and hand the results to the report composer or a page.
All functions are safe to call concurrently.
"""

from datetime import datetime, timedelta, tzinfo
from decimal import Decimal
from typing import Optional, Sequence, TypeVar

from crm_finance.models.record import (
    FinancialRecord,
    ItemStat,
    MemberStat,
    MonthlyStat,
    RecordKind,
    TimeRange,
)


T = TypeVar("T")

ZERO = Decimal("0")


# =============================================================================
# FILTERS
# =============================================================================

def filter_by_member(
    records: Sequence[FinancialRecord],
    member_name: Optional[str] = None,
) -> list[FinancialRecord]:
    """
    Keep records of one member.

    Exact, case-sensitive match. An empty or missing name keeps everything,
    in the original order.
    """
    if not member_name:
        return list(records)
    return [r for r in records if r.member == member_name]


def filter_by_search_term(
    records: Sequence[FinancialRecord],
    term: Optional[str],
) -> list[FinancialRecord]:
    """
    Case-insensitive substring search over member, item, details and location.

    A blank term keeps everything.
    """
    if term is None or not term.strip():
        return list(records)

    needle = term.casefold()
    return [
        r for r in records
        if any(
            needle in field.casefold()
            for field in (r.member, r.item, r.details, r.location)
        )
    ]


def time_range_bounds(
    time_range: TimeRange,
    reference_now: datetime,
) -> Optional[tuple[datetime, datetime]]:
    """
    Inclusive [start, end] bounds of a time range, or None for `custom`.

    Boundaries are calendar month/quarter starts in the time zone of
    `reference_now` (a naive reference means local wall-clock time).
    `last-month` ends at the last microsecond of the previous month.
    """
    time_range = TimeRange(time_range)
    month_start = reference_now.replace(
        day=1, hour=0, minute=0, second=0, microsecond=0
    )

    if time_range == TimeRange.THIS_MONTH:
        return month_start, reference_now

    if time_range == TimeRange.LAST_MONTH:
        last_month_end = month_start - timedelta(microseconds=1)
        last_month_start = last_month_end.replace(
            day=1, hour=0, minute=0, second=0, microsecond=0
        )
        return last_month_start, last_month_end

    if time_range == TimeRange.THIS_QUARTER:
        quarter_first_month = (reference_now.month - 1) // 3 * 3 + 1
        return month_start.replace(month=quarter_first_month), reference_now

    return None


def in_zone(ts: datetime, zone: Optional[tzinfo] = None) -> datetime:
    """
    Express a timestamp in a reference zone so it can be compared.

    With no zone the result is naive local wall-clock time, which lets
    naive (zh-TW form) and aware (ISO `Z`) timestamps sort together.
    """
    if zone is None:
        # Naive reference: compare in local wall-clock time
        if ts.tzinfo is not None:
            return ts.astimezone().replace(tzinfo=None)
        return ts
    if ts.tzinfo is None:
        return ts.replace(tzinfo=zone)
    return ts.astimezone(zone)


def filter_by_time_range(
    records: Sequence[FinancialRecord],
    time_range: TimeRange,
    reference_now: datetime,
) -> list[FinancialRecord]:
    """Keep records whose timestamp falls inside the range (bounds inclusive)."""
    bounds = time_range_bounds(time_range, reference_now)
    if bounds is None:
        return list(records)

    start, end = bounds
    zone = reference_now.tzinfo
    return [
        r for r in records
        if start <= in_zone(r.timestamp, zone) <= end
    ]


# =============================================================================
# TOTALS
# =============================================================================

def sum_by_kind(records: Sequence[FinancialRecord], kind: RecordKind) -> Decimal:
    """Sum of total_amount over records of one kind."""
    kind = RecordKind(kind)
    return sum((r.total_amount for r in records if r.kind == kind), ZERO)


def net_amount(records: Sequence[FinancialRecord]) -> Decimal:
    """Income minus expense."""
    return sum_by_kind(records, RecordKind.INCOME) - sum_by_kind(records, RecordKind.EXPENSE)


# =============================================================================
# GROUPING
# =============================================================================

def month_key(ts: datetime, zone: Optional[tzinfo] = None) -> str:
    return in_zone(ts, zone).strftime("%Y-%m")


def group_by_month(
    records: Sequence[FinancialRecord],
    zone: Optional[tzinfo] = None,
) -> dict[str, MonthlyStat]:
    """
    Bucket records by the calendar month of their timestamp.

    Months are taken in `zone` (local time when None), the same way
    filter_by_time_range reads timestamps, so a record kept by a
    this-month filter lands in this month's bucket.

    Income and expense are accumulated first; net is derived once per
    bucket after every record is folded in. Months without records do
    not appear. Keys are in first-seen order.
    """
    buckets: dict[str, list[Decimal]] = {}
    for record in records:
        totals = buckets.setdefault(month_key(record.timestamp, zone), [ZERO, ZERO])
        if record.kind == RecordKind.INCOME:
            totals[0] += record.total_amount
        else:
            totals[1] += record.total_amount

    return {
        month: MonthlyStat(
            month=month,
            income=income,
            expense=expense,
            net=income - expense,
        )
        for month, (income, expense) in buckets.items()
    }


def monthly_series(
    records: Sequence[FinancialRecord],
    zone: Optional[tzinfo] = None,
) -> list[MonthlyStat]:
    """Monthly buckets sorted by month, oldest first."""
    return sorted(group_by_month(records, zone).values(), key=lambda s: s.month)


def distinct_members(records: Sequence[FinancialRecord]) -> list[str]:
    """Member names in first-seen order."""
    return list(dict.fromkeys(r.member for r in records))


def _member_totals(records: Sequence[FinancialRecord]) -> dict[str, list]:
    # member -> [income, expense, count], insertion order = first seen
    totals: dict[str, list] = {}
    for record in records:
        entry = totals.setdefault(record.member, [ZERO, ZERO, 0])
        if record.kind == RecordKind.INCOME:
            entry[0] += record.total_amount
        else:
            entry[1] += record.total_amount
        entry[2] += 1
    return totals


def member_stat(
    records: Sequence[FinancialRecord],
    member_name: Optional[str] = None,
) -> MemberStat:
    """
    Income, expense and net for one member.

    With no member name the stat covers every record and is labelled "".
    """
    selected = filter_by_member(records, member_name)
    income = sum_by_kind(selected, RecordKind.INCOME)
    expense = sum_by_kind(selected, RecordKind.EXPENSE)
    return MemberStat(
        member=member_name or "",
        income=income,
        expense=expense,
        net=income - expense,
        record_count=len(selected),
    )


# =============================================================================
# RANKINGS
# =============================================================================

def rank_members(records: Sequence[FinancialRecord]) -> list[MemberStat]:
    """
    Members ordered by net, highest first.

    Ties keep the order in which members first appear (stable sort).
    """
    stats = [
        MemberStat(
            member=member,
            income=income,
            expense=expense,
            net=income - expense,
            record_count=count,
        )
        for member, (income, expense, count) in _member_totals(records).items()
    ]
    return sorted(stats, key=lambda s: s.net, reverse=True)


def rank_items(records: Sequence[FinancialRecord]) -> list[ItemStat]:
    """
    Items ordered by total amount, highest first.

    Totals add income and expense alike, as the reports page does.
    Ties keep first-seen order.
    """
    totals: dict[str, list] = {}
    for record in records:
        entry = totals.setdefault(record.item, [ZERO, 0])
        entry[0] += record.total_amount
        entry[1] += 1

    stats = [
        ItemStat(item=item, total=total, count=count)
        for item, (total, count) in totals.items()
    ]
    return sorted(stats, key=lambda s: s.total, reverse=True)


def top_n(ranked: Sequence[T], n: int) -> list[T]:
    """First n entries of a ranking. n must be >= 0."""
    if n < 0:
        raise ValueError(f"n must be >= 0, got {n}")
    return list(ranked[:n])
