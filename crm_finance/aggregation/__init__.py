"""Aggregation engine package."""

from crm_finance.aggregation.engine import (
    distinct_members,
    filter_by_member,
    filter_by_search_term,
    filter_by_time_range,
    group_by_month,
    in_zone,
    member_stat,
    monthly_series,
    net_amount,
    rank_items,
    rank_members,
    sum_by_kind,
    time_range_bounds,
    top_n,
)

__all__ = [
    "distinct_members",
    "filter_by_member",
    "filter_by_search_term",
    "filter_by_time_range",
    "group_by_month",
    "in_zone",
    "member_stat",
    "monthly_series",
    "net_amount",
    "rank_items",
    "rank_members",
    "sum_by_kind",
    "time_range_bounds",
    "top_n",
]
