"""Tests for the aggregation engine."""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from crm_finance.aggregation import engine
from crm_finance.models.record import RecordKind, TimeRange


INCOME = RecordKind.INCOME
EXPENSE = RecordKind.EXPENSE


@pytest.fixture
def sample_records(make_record):
    """The two demo entries from the list page."""
    return [
        make_record(
            member="張三", kind=INCOME, unit_price="500",
            timestamp=datetime(2024, 1, 15, 10, 30),
            item="課程費用", details="瑜伽課程",
        ),
        make_record(
            member="李四", kind=EXPENSE, unit_price="149.94",
            timestamp=datetime(2024, 1, 16, 14, 20),
            item="器材購買", details="瑜伽墊",
        ),
    ]


class TestFilterByMember:

    def test_empty_name_returns_everything_in_order(self, sample_records):
        assert engine.filter_by_member(sample_records, "") == sample_records
        assert engine.filter_by_member(sample_records, None) == sample_records

    def test_exact_match(self, sample_records):
        result = engine.filter_by_member(sample_records, "李四")
        assert [r.member for r in result] == ["李四"]

    def test_case_sensitive(self, make_record):
        records = [make_record(member="Alice"), make_record(member="alice")]
        assert len(engine.filter_by_member(records, "Alice")) == 1

    def test_does_not_mutate_input(self, sample_records):
        before = list(sample_records)
        engine.filter_by_member(sample_records, "張三")
        assert sample_records == before


class TestFilterBySearchTerm:

    def test_matches_details(self, sample_records):
        result = engine.filter_by_search_term(sample_records, "瑜伽")
        assert len(result) == 2

    def test_case_insensitive_ascii(self, make_record):
        records = [
            make_record(details="Yoga 瑜伽 class"),
            make_record(details="pilates"),
        ]
        assert len(engine.filter_by_search_term(records, "YOGA 瑜伽")) == 1
        assert len(engine.filter_by_search_term(records, "yoga")) == 1

    def test_searches_member_item_and_location(self, make_record):
        records = [
            make_record(member="Bob", item="x", location="y"),
            make_record(member="z", item="Bobbin", location="y"),
            make_record(member="z", item="x", location="Bobtown"),
            make_record(member="z", item="x", location="y", details=""),
        ]
        assert len(engine.filter_by_search_term(records, "bob")) == 3

    def test_surrounding_spaces_are_part_of_the_term(self, make_record):
        records = [
            make_record(location="台北市"),
            make_record(details="新 台北 分店", location="新北市"),
        ]
        result = engine.filter_by_search_term(records, " 台北")
        assert [r.details for r in result] == ["新 台北 分店"]

    def test_blank_term_returns_everything(self, sample_records):
        assert engine.filter_by_search_term(sample_records, "") == sample_records
        assert engine.filter_by_search_term(sample_records, "   ") == sample_records


class TestTimeRange:

    def test_last_month_scenario(self, make_record):
        in_january = make_record(timestamp=datetime(2024, 1, 16))
        in_february = make_record(timestamp=datetime(2024, 2, 1))
        result = engine.filter_by_time_range(
            [in_january, in_february], TimeRange.LAST_MONTH, datetime(2024, 2, 15)
        )
        assert result == [in_january]

    def test_last_month_includes_whole_last_day(self, make_record):
        late = make_record(timestamp=datetime(2024, 1, 31, 23, 59, 59))
        result = engine.filter_by_time_range(
            [late], "last-month", datetime(2024, 2, 15)
        )
        assert result == [late]

    def test_last_month_across_year_boundary(self):
        start, end = engine.time_range_bounds(TimeRange.LAST_MONTH, datetime(2024, 1, 10, 8))
        assert start == datetime(2023, 12, 1)
        assert end == datetime(2023, 12, 31, 23, 59, 59, 999999)

    def test_this_month(self, make_record):
        now = datetime(2024, 2, 15, 12, 0)
        first = make_record(timestamp=datetime(2024, 2, 1))
        before = make_record(timestamp=datetime(2024, 1, 31, 23, 59))
        future = make_record(timestamp=datetime(2024, 2, 20))
        result = engine.filter_by_time_range([first, before, future], TimeRange.THIS_MONTH, now)
        assert result == [first]

    def test_this_quarter(self, make_record):
        now = datetime(2024, 5, 20)
        april = make_record(timestamp=datetime(2024, 4, 1))
        march = make_record(timestamp=datetime(2024, 3, 31, 23, 0))
        result = engine.filter_by_time_range([april, march], TimeRange.THIS_QUARTER, now)
        assert result == [april]

    def test_quarter_start_months(self):
        for month, expected in [(1, 1), (3, 1), (4, 4), (8, 7), (12, 10)]:
            start, _ = engine.time_range_bounds(TimeRange.THIS_QUARTER, datetime(2024, month, 5))
            assert start == datetime(2024, expected, 1)

    def test_custom_is_pass_through(self, sample_records):
        assert engine.time_range_bounds(TimeRange.CUSTOM, datetime(2030, 1, 1)) is None
        result = engine.filter_by_time_range(sample_records, TimeRange.CUSTOM, datetime(2030, 1, 1))
        assert result == sample_records

    def test_aware_reference_uses_its_zone(self, make_record):
        taipei = timezone(timedelta(hours=8))
        # 2024-01-31 20:00 UTC is 2024-02-01 04:00 in Taipei
        record = make_record(timestamp=datetime(2024, 1, 31, 20, 0, tzinfo=timezone.utc))
        now = datetime(2024, 2, 15, tzinfo=taipei)
        assert engine.filter_by_time_range([record], TimeRange.THIS_MONTH, now) == [record]
        assert engine.filter_by_time_range([record], TimeRange.LAST_MONTH, now) == []


class TestTotals:

    def test_empty_input(self):
        assert engine.sum_by_kind([], INCOME) == 0
        assert engine.sum_by_kind([], EXPENSE) == 0
        assert engine.net_amount([]) == 0

    def test_scenario_totals(self, sample_records):
        assert engine.sum_by_kind(sample_records, INCOME) == Decimal("500")
        assert engine.sum_by_kind(sample_records, EXPENSE) == Decimal("149.94")
        assert engine.net_amount(sample_records) == Decimal("350.06")

    def test_kind_given_as_string(self, sample_records):
        assert engine.sum_by_kind(sample_records, "expense") == Decimal("149.94")


class TestGroupByMonth:

    def test_scenario_single_bucket(self, sample_records):
        buckets = engine.group_by_month(sample_records)
        assert list(buckets) == ["2024-01"]
        stat = buckets["2024-01"]
        assert stat.income == Decimal("500")
        assert stat.expense == Decimal("149.94")
        assert stat.net == Decimal("350.06")

    def test_no_zero_filled_months(self, make_record):
        records = [
            make_record(timestamp=datetime(2024, 1, 5)),
            make_record(timestamp=datetime(2024, 4, 5)),
        ]
        assert set(engine.group_by_month(records)) == {"2024-01", "2024-04"}

    def test_buckets_partition_input(self, make_record):
        records = [
            make_record(timestamp=datetime(2024, 1, 5), unit_price="10", kind=INCOME),
            make_record(timestamp=datetime(2024, 2, 5), unit_price="20", kind=EXPENSE),
            make_record(timestamp=datetime(2024, 2, 9), unit_price="30", kind=INCOME),
            make_record(timestamp=datetime(2024, 1, 30), unit_price="5", kind=EXPENSE),
        ]
        buckets = engine.group_by_month(records)
        total = sum((s.income + s.expense for s in buckets.values()), Decimal("0"))
        assert total == sum((r.total_amount for r in records), Decimal("0"))
        assert buckets["2024-02"].income == Decimal("30")
        assert buckets["2024-02"].expense == Decimal("20")
        assert buckets["2024-01"].net == Decimal("5")

    def test_monthly_series_sorted(self, make_record):
        records = [
            make_record(timestamp=datetime(2024, 3, 1)),
            make_record(timestamp=datetime(2023, 12, 1)),
            make_record(timestamp=datetime(2024, 1, 1)),
        ]
        assert [s.month for s in engine.monthly_series(records)] == [
            "2023-12", "2024-01", "2024-03",
        ]

    def test_empty(self):
        assert engine.group_by_month([]) == {}

    def test_aware_timestamp_bucketed_in_zone(self, make_record):
        taipei = timezone(timedelta(hours=8))
        record = make_record(timestamp=datetime(2024, 1, 31, 20, 0, tzinfo=timezone.utc))
        assert list(engine.group_by_month([record], taipei)) == ["2024-02"]
        assert list(engine.group_by_month([record], timezone.utc)) == ["2024-01"]

    def test_month_key_matches_time_range_view(self, make_record):
        taipei = timezone(timedelta(hours=8))
        now = datetime(2024, 2, 15, tzinfo=taipei)
        record = make_record(timestamp=datetime(2024, 1, 31, 20, 0, tzinfo=timezone.utc))

        kept = engine.filter_by_time_range([record], TimeRange.THIS_MONTH, now)
        assert [s.month for s in engine.monthly_series(kept, now.tzinfo)] == [
            now.strftime("%Y-%m"),
        ]

    def test_naive_timestamps_keep_wall_clock_month(self, make_record):
        record = make_record(timestamp=datetime(2024, 1, 31, 23, 59))
        assert list(engine.group_by_month([record])) == ["2024-01"]


class TestRankings:

    def test_rank_members_by_net(self, make_record):
        records = [
            make_record(member="A", unit_price="100", kind=INCOME),
            make_record(member="B", unit_price="300", kind=INCOME),
            make_record(member="A", unit_price="150", kind=EXPENSE),
            make_record(member="C", unit_price="50", kind=INCOME),
        ]
        ranked = engine.rank_members(records)
        assert [s.member for s in ranked] == ["B", "C", "A"]
        assert ranked[2].net == Decimal("-50")
        assert ranked[2].record_count == 2

    def test_rank_members_sums_to_net(self, make_record):
        records = [
            make_record(member="A", unit_price="100", kind=INCOME),
            make_record(member="B", unit_price="30.5", kind=EXPENSE),
            make_record(member="A", unit_price="12.25", kind=EXPENSE),
        ]
        ranked = engine.rank_members(records)
        nets = [s.net for s in ranked]
        assert nets == sorted(nets, reverse=True)
        assert sum(nets, Decimal("0")) == engine.net_amount(records)

    def test_member_ties_keep_first_seen_order(self, make_record):
        records = [
            make_record(member="Zed", unit_price="10"),
            make_record(member="Amy", unit_price="10"),
            make_record(member="Bob", unit_price="10"),
        ]
        assert [s.member for s in engine.rank_members(records)] == ["Zed", "Amy", "Bob"]

    def test_rank_items_scenario(self, make_record):
        records = [
            make_record(item="課程費用", unit_price="500"),
            make_record(item="課程費用", unit_price="800"),
        ]
        ranked = engine.rank_items(records)
        assert len(ranked) == 1
        assert ranked[0].item == "課程費用"
        assert ranked[0].total == Decimal("1300")
        assert ranked[0].count == 2

    def test_rank_items_descending_with_stable_ties(self, make_record):
        records = [
            make_record(item="x", unit_price="10"),
            make_record(item="y", unit_price="50", kind=EXPENSE),
            make_record(item="z", unit_price="10"),
        ]
        assert [s.item for s in engine.rank_items(records)] == ["y", "x", "z"]

    def test_empty_rankings(self):
        assert engine.rank_members([]) == []
        assert engine.rank_items([]) == []


class TestTopN:

    @pytest.mark.parametrize("n", [0, 1, 3, 10])
    def test_length(self, n):
        ranked = ["a", "b", "c"]
        assert len(engine.top_n(ranked, n)) == min(n, len(ranked))

    def test_keeps_order(self):
        assert engine.top_n(["a", "b", "c"], 2) == ["a", "b"]

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            engine.top_n(["a"], -1)


class TestMembers:

    def test_distinct_members_first_seen(self, make_record):
        records = [
            make_record(member="李四"),
            make_record(member="張三"),
            make_record(member="李四"),
        ]
        assert engine.distinct_members(records) == ["李四", "張三"]

    def test_member_stat(self, sample_records):
        stat = engine.member_stat(sample_records, "李四")
        assert stat.member == "李四"
        assert stat.income == Decimal("0")
        assert stat.expense == Decimal("149.94")
        assert stat.net == Decimal("-149.94")
        assert stat.record_count == 1

    def test_member_stat_all_records(self, sample_records):
        stat = engine.member_stat(sample_records)
        assert stat.member == ""
        assert stat.net == Decimal("350.06")
        assert stat.record_count == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
