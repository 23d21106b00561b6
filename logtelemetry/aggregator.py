"""Aggregate statistics over a full set of decoded records.

Nothing is cached: every query recomputes the view from the records it was
given, so identical input always yields identical output.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable, Iterable

from logtelemetry.models import LogRecord


@dataclass(frozen=True)
class DaySplit:
    date: str
    client: int = 0
    server: int = 0

    def to_dict(self) -> dict:
        return {"date": self.date, "client": self.client, "server": self.server}


@dataclass
class AggregateView:
    stats_by_level: dict[str, int] = field(default_factory=dict)
    daily_counts: dict[str, int] = field(default_factory=dict)
    today_count: int = 0
    daily_source_split: list[DaySplit] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "stats": dict(self.stats_by_level),
            "dailyCounts": dict(self.daily_counts),
            "todayCount": self.today_count,
            "stackedCounts": [split.to_dict() for split in self.daily_source_split],
        }


def parse_timestamp(timestamp: str) -> datetime | None:
    """Parse an ISO-8601 string into an aware UTC datetime, or None."""
    try:
        parsed = datetime.fromisoformat(timestamp.strip().replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def record_day(record: LogRecord) -> str | None:
    """UTC calendar day (YYYY-MM-DD) of a record, None if the timestamp is unusable."""
    parsed = parse_timestamp(record.timestamp)
    if parsed is None:
        return None
    return parsed.date().isoformat()


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def aggregate(
    records: Iterable[LogRecord],
    today_func: Callable[[], date] | None = None,
) -> AggregateView:
    """Compute per-level, per-day, today and client/server-per-day counts.

    Records whose timestamp cannot be parsed still count towards the level
    totals but are left out of every per-day figure.
    """
    today = (today_func or _utc_today)().isoformat()

    level_counter = Counter()
    day_counter = Counter()
    client_counter = Counter()
    server_counter = Counter()

    for record in records:
        level_counter[record.level] += 1
        day = record_day(record)
        if day is None:
            continue
        day_counter[day] += 1
        if record.is_server:
            server_counter[day] += 1
        else:
            client_counter[day] += 1

    days = sorted(day_counter)
    return AggregateView(
        stats_by_level=dict(level_counter),
        daily_counts={day: day_counter[day] for day in days},
        today_count=day_counter.get(today, 0),
        daily_source_split=[
            DaySplit(date=day, client=client_counter[day], server=server_counter[day])
            for day in days
        ],
    )
