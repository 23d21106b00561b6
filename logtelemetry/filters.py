"""Optional record filters for the query endpoint: level, search, date range."""

from dataclasses import dataclass
from datetime import date
from typing import Callable, Mapping

from logtelemetry.aggregator import record_day
from logtelemetry.models import LogRecord


def filter_by_level(record: LogRecord, level: str) -> bool:
    """True if the record has the given level (case-insensitive)."""
    return record.level == level.upper()


def filter_by_search(record: LogRecord, keyword: str) -> bool:
    """True if keyword appears in the message (case-insensitive)."""
    return keyword.lower() in record.message.lower()


def filter_by_date_range(record: LogRecord, start: date | None, end: date | None) -> bool:
    """True if the record's UTC day falls within [start, end], both inclusive."""
    day = record_day(record)
    if day is None:
        return False
    if start is not None and day < start.isoformat():
        return False
    if end is not None and day > end.isoformat():
        return False
    return True


@dataclass(frozen=True)
class RecordFilter:
    level: str | None = None
    search: str | None = None
    start: date | None = None
    end: date | None = None

    @classmethod
    def from_args(cls, args: Mapping[str, str]) -> "RecordFilter":
        """Build from query-string arguments. Raises ValueError on a bad date."""
        return cls(
            level=args.get("level") or None,
            search=args.get("search") or None,
            start=_parse_day(args.get("start")),
            end=_parse_day(args.get("end")),
        )

    @property
    def active(self) -> bool:
        return any(v is not None for v in (self.level, self.search, self.start, self.end))

    def predicate(self) -> Callable[[LogRecord], bool]:
        """AND all active filters into a single callable."""
        predicates = []
        if self.level and self.level.upper() != "ALL":
            predicates.append(lambda r, l=self.level: filter_by_level(r, l))
        if self.search:
            predicates.append(lambda r, k=self.search: filter_by_search(r, k))
        if self.start is not None or self.end is not None:
            predicates.append(
                lambda r, s=self.start, e=self.end: filter_by_date_range(r, s, e)
            )

        if not predicates:
            return lambda record: True

        def combined(record: LogRecord) -> bool:
            return all(p(record) for p in predicates)

        return combined

    def apply(self, records: list[LogRecord]) -> list[LogRecord]:
        match = self.predicate()
        return [r for r in records if match(r)]


def _parse_day(value: str | None) -> date | None:
    if not value:
        return None
    return date.fromisoformat(value)
