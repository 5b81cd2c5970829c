"""
Report Composer

DESIGN DECISION: A summary is computed from ONE filtered snapshot and
returned whole. If any step fails the exception propagates and the caller
gets nothing - never a summary with some cards missing.

Filters always run in the same order: member, search term, time range.
They are independent predicates so the order does not change the result,
but fixing it keeps the composition deterministic.
"""

from datetime import datetime
from typing import Optional, Sequence

import structlog

from crm_finance.aggregation import engine
from crm_finance.models.record import (
    FinancialRecord,
    FinancialSummary,
    MemberStat,
    RecordKind,
    SummaryRequest,
)


logger = structlog.get_logger(__name__)


class ReportComposer:
    """
    Builds FinancialSummary objects for the list, by-name and reports pages.

    Stateless apart from the default top-N size, so one instance can be
    shared across requests.
    """

    def __init__(self, default_top_n: int = 5):
        if default_top_n < 0:
            raise ValueError(f"default_top_n must be >= 0, got {default_top_n}")
        self._default_top_n = default_top_n

    @property
    def default_top_n(self) -> int:
        return self._default_top_n

    def apply_filters(
        self,
        records: Sequence[FinancialRecord],
        request: SummaryRequest,
        reference_now: datetime,
    ) -> list[FinancialRecord]:
        """Member, then search term, then time range."""
        filtered = engine.filter_by_member(records, request.member_filter)
        filtered = engine.filter_by_search_term(filtered, request.search_term)
        return engine.filter_by_time_range(filtered, request.time_range, reference_now)

    def compose(
        self,
        records: Sequence[FinancialRecord],
        request: Optional[SummaryRequest] = None,
        reference_now: Optional[datetime] = None,
    ) -> FinancialSummary:
        """
        Compose the full summary for a request.

        Args:
            records: Snapshot from a record store
            request: Selected filters (defaults to no filtering)
            reference_now: Evaluation instant for time ranges (defaults to now, local)

        Returns:
            Totals, monthly series, top members/items and the member list
        """
        request = request or SummaryRequest()
        reference_now = reference_now or datetime.now()
        n = request.top_n if request.top_n is not None else self._default_top_n

        filtered = self.apply_filters(records, request, reference_now)

        total_income = engine.sum_by_kind(filtered, RecordKind.INCOME)
        total_expense = engine.sum_by_kind(filtered, RecordKind.EXPENSE)

        summary = FinancialSummary(
            request=request,
            reference_now=reference_now,
            record_count=len(filtered),
            total_income=total_income,
            total_expense=total_expense,
            net=total_income - total_expense,
            monthly=engine.monthly_series(filtered, reference_now.tzinfo),
            top_members=engine.top_n(engine.rank_members(filtered), n),
            top_items=engine.top_n(engine.rank_items(filtered), n),
            members=engine.distinct_members(filtered),
        )

        logger.debug(
            "summary_composed",
            input_count=len(records),
            filtered_count=len(filtered),
            time_range=request.time_range.value,
            member_filter=request.member_filter,
        )
        return summary

    def member_summary(
        self,
        records: Sequence[FinancialRecord],
        member_name: Optional[str] = None,
    ) -> MemberStat:
        """Summary cards of the by-name page."""
        return engine.member_stat(records, member_name)
