"""Tests for logtelemetry/aggregator.py"""

from datetime import date

from logtelemetry.aggregator import DaySplit, aggregate, parse_timestamp, record_day
from logtelemetry.models import LogRecord


def make_record(ts="2024-01-01T10:00:00.000Z", level="INFO", url="/", message="m"):
    return LogRecord(timestamp=ts, level=level, url=url, message=message)


def fixed_today(day=date(2024, 1, 2)):
    return lambda: day


class TestAggregate:
    def test_empty_input(self):
        view = aggregate([], today_func=fixed_today())
        assert view.to_dict() == {
            "stats": {},
            "dailyCounts": {},
            "todayCount": 0,
            "stackedCounts": [],
        }

    def test_counts_by_level(self):
        records = [make_record(level=l) for l in ("INFO", "ERROR", "ERROR", "WARN")]
        view = aggregate(records, today_func=fixed_today())
        assert view.stats_by_level == {"INFO": 1, "ERROR": 2, "WARN": 1}

    def test_absent_levels_omitted(self):
        view = aggregate([make_record(level="LOG")], today_func=fixed_today())
        assert "ERROR" not in view.stats_by_level

    def test_daily_counts_sorted_ascending(self):
        records = [
            make_record(ts="2024-01-03T00:00:00Z"),
            make_record(ts="2024-01-01T00:00:00Z"),
            make_record(ts="2024-01-03T23:59:59Z"),
        ]
        view = aggregate(records, today_func=fixed_today())
        assert list(view.daily_counts.items()) == [("2024-01-01", 1), ("2024-01-03", 2)]

    def test_day_uses_utc(self):
        # 23:30 at -05:00 is already the next day in UTC
        records = [make_record(ts="2024-01-01T23:30:00-05:00")]
        view = aggregate(records, today_func=fixed_today())
        assert view.daily_counts == {"2024-01-02": 1}

    def test_today_count(self):
        records = [
            make_record(ts="2024-01-02T01:00:00Z"),
            make_record(ts="2024-01-02T22:00:00Z"),
            make_record(ts="2024-01-01T22:00:00Z"),
        ]
        assert aggregate(records, today_func=fixed_today()).today_count == 2

    def test_source_split(self):
        records = [
            make_record(url="/api/logs"),
            make_record(url="/"),
            make_record(url="http://localhost:3000/api/test-server-error"),
            make_record(url="http://localhost:3000/dashboard?tab=api"),
        ]
        view = aggregate(records, today_func=fixed_today())
        assert view.daily_source_split == [DaySplit(date="2024-01-01", client=2, server=2)]

    def test_unparseable_timestamp_counts_level_only(self):
        records = [make_record(ts="not-a-time", level="ERROR")]
        view = aggregate(records, today_func=fixed_today())
        assert view.stats_by_level == {"ERROR": 1}
        assert view.daily_counts == {}
        assert view.daily_source_split == []

    def test_idempotent(self):
        records = [
            make_record(ts="2024-01-01T00:00:00Z", level="ERROR", url="/api/x"),
            make_record(ts="2024-01-02T00:00:00Z", level="INFO"),
        ]
        first = aggregate(records, today_func=fixed_today())
        second = aggregate(records, today_func=fixed_today())
        assert first.to_dict() == second.to_dict()

    def test_error_count_matches_records(self):
        records = [make_record(level=l) for l in ("ERROR", "INFO", "ERROR", "LOG")]
        view = aggregate(records, today_func=fixed_today())
        assert view.stats_by_level.get("ERROR", 0) == sum(r.level == "ERROR" for r in records)


class TestTimestamps:
    def test_zulu_suffix(self):
        assert parse_timestamp("2024-01-01T00:00:00.000Z").isoformat() == "2024-01-01T00:00:00+00:00"

    def test_naive_treated_as_utc(self):
        assert parse_timestamp("2024-01-01T05:00:00").tzinfo is not None

    def test_garbage(self):
        assert parse_timestamp("yesterday") is None

    def test_record_day(self):
        assert record_day(make_record(ts="2024-03-05T10:00:00Z")) == "2024-03-05"
