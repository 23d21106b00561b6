"""Ingestion and query operations over the log store."""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Callable

from logtelemetry.aggregator import AggregateView, aggregate
from logtelemetry.codec import decode_lines, encode, sanitize_message
from logtelemetry.errors import ValidationError
from logtelemetry.filters import RecordFilter
from logtelemetry.models import ANONYMOUS_USER, LogRecord
from logtelemetry.store import Appender, Reader
from logtelemetry.validator import LogValidator, missing_fields

logger = logging.getLogger(__name__)


TEXT_FIELDS = ("timestamp", "level", "url", "message", "userId")

# lone UTF-16 surrogates survive json decoding but cannot be written as UTF-8
_SURROGATE_RE = re.compile("[\ud800-\udfff]")


def replace_unencodable(value: str) -> str:
    """Swap lone surrogates for U+FFFD so the value encodes as UTF-8."""
    return _SURROGATE_RE.sub("\ufffd", value)


def normalize_event(entry: dict[str, Any]) -> dict[str, Any]:
    """Upper-case the level, strip line breaks from the message, default userId."""
    normalized = dict(entry)
    for name in TEXT_FIELDS:
        if isinstance(normalized.get(name), str):
            normalized[name] = replace_unencodable(normalized[name])
    if isinstance(normalized.get("level"), str):
        normalized["level"] = normalized["level"].strip().upper()
    if isinstance(normalized.get("message"), str):
        normalized["message"] = sanitize_message(normalized["message"])
    if normalized.get("userId") in (None, ""):
        normalized["userId"] = ANONYMOUS_USER
    return normalized


class IngestionService:
    """Validates one inbound event and appends it to the store."""

    def __init__(self, validator: LogValidator, appender: Appender):
        self._validator = validator
        self._appender = appender

    async def ingest(self, entry: Any) -> LogRecord:
        """Persist one event.

        Raises:
            ValidationError: nothing was written.
            StoreWriteError: the append failed and the record is lost.
        """
        missing = missing_fields(entry)
        if missing:
            self._validator.record_missing()
            logger.info("Rejected log event, missing fields: %s", ", ".join(missing))
            raise ValidationError(
                ValidationError.MISSING,
                [f"'{name}' is a required property" for name in missing],
            )

        normalized = normalize_event(entry)
        is_valid, errors = self._validator.validate(normalized)
        if not is_valid:
            logger.info("Rejected log event: %s", "; ".join(errors))
            raise ValidationError(ValidationError.INVALID, errors)

        record = LogRecord(
            timestamp=normalized["timestamp"],
            level=normalized["level"],
            url=normalized["url"],
            message=normalized["message"],
            user_id=normalized["userId"],
        )
        await self._appender.append(encode(record))
        return record

    async def capture_exception(self, exc: BaseException, url: str) -> LogRecord:
        """Record a server-side failure as an ERROR event."""
        message = f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__
        return await self.ingest({
            "timestamp": utc_now_iso(),
            "level": "ERROR",
            "url": url,
            "message": message,
            "userId": "server",
        })


@dataclass
class QueryResult:
    records: list[LogRecord] = field(default_factory=list)
    view: AggregateView = field(default_factory=AggregateView)
    skipped: int = 0

    def to_dict(self) -> dict[str, Any]:
        payload = {"logs": [r.to_dict() for r in self.records]}
        payload.update(self.view.to_dict())
        return payload


class QueryService:
    """Reads, decodes and aggregates the whole store on every call."""

    def __init__(self, reader: Reader, today_func: Callable[[], date] | None = None):
        self._reader = reader
        self._today_func = today_func

    async def load_records(self, record_filter: RecordFilter | None = None) -> tuple[list[LogRecord], int]:
        """Decoded records in store order plus the count of skipped lines.

        Raises:
            StoreReadError: the store exists but could not be read.
        """
        lines = await self._reader.read_all()
        records, skipped = decode_lines(lines)
        if skipped:
            logger.debug("Skipped %d undecodable line(s)", skipped)
        if record_filter is not None:
            records = record_filter.apply(records)
        return records, skipped

    async def query(self, record_filter: RecordFilter | None = None) -> QueryResult:
        records, skipped = await self.load_records(record_filter)
        return QueryResult(
            records=records,
            view=aggregate(records, today_func=self._today_func),
            skipped=skipped,
        )


def utc_now_iso() -> str:
    """Current UTC time in the producer's format, e.g. 2024-01-01T00:00:00.000Z."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"
