"""Tests for logtelemetry/service.py"""

from datetime import date

import pytest

from logtelemetry.errors import StoreWriteError, ValidationError
from logtelemetry.filters import RecordFilter
from logtelemetry.models import LogRecord
from logtelemetry.service import IngestionService, QueryService, normalize_event, utc_now_iso


@pytest.fixture
def ingestion(validator, log_file):
    return IngestionService(validator, log_file.appender())


@pytest.fixture
def queries(log_file):
    return QueryService(log_file.reader(), today_func=lambda: date(2024, 1, 1))


class TestNormalizeEvent:
    def test_normalizes(self):
        event = normalize_event({"level": " warn ", "message": "a\nb", "url": "/"})
        assert event["level"] == "WARN"
        assert event["message"] == "a b"
        assert event["userId"] == "anonymous"

    def test_lone_surrogates_replaced(self):
        event = normalize_event({"message": "bad \ud800 char", "url": "/\udfff", "userId": "u\ud83d"})
        assert event["message"] == "bad \ufffd char"
        assert event["url"] == "/\ufffd"
        assert event["userId"] == "u\ufffd"

    def test_keeps_user_id(self):
        assert normalize_event({"userId": "u-1"})["userId"] == "u-1"

    def test_does_not_mutate_input(self):
        event = {"level": "info"}
        normalize_event(event)
        assert event == {"level": "info"}


class TestIngestion:
    @pytest.mark.asyncio
    async def test_ingest_persists_normalized_record(self, ingestion, log_file, sample_event):
        record = await ingestion.ingest(sample_event)
        assert record == LogRecord(
            timestamp="2024-01-01T00:00:00.000Z",
            level="ERROR",
            url="/checkout",
            message="boom",
            user_id="anonymous",
        )
        with open(log_file.path) as f:
            assert f.read() == "[2024-01-01T00:00:00.000Z] [ERROR] (anonymous) [/checkout] boom\n"

    @pytest.mark.asyncio
    async def test_missing_field_rejected_without_write(self, ingestion, log_file, sample_event):
        del sample_event["url"]
        with pytest.raises(ValidationError) as excinfo:
            await ingestion.ingest(sample_event)
        assert excinfo.value.reason == "Missing log data"
        assert await log_file.reader().read_all() == []

    @pytest.mark.asyncio
    async def test_invalid_level_rejected(self, ingestion, sample_event):
        sample_event["level"] = "fatal"
        with pytest.raises(ValidationError) as excinfo:
            await ingestion.ingest(sample_event)
        assert excinfo.value.reason == "Invalid log data"
        assert excinfo.value.details

    @pytest.mark.asyncio
    async def test_multiline_message_stored_on_one_line(self, ingestion, log_file, sample_event):
        sample_event["message"] = "Error: boom\n    at checkout.js:10\n    at main.js:2"
        await ingestion.ingest(sample_event)
        lines = await log_file.reader().read_all()
        assert len(lines) == 1

    @pytest.mark.asyncio
    async def test_write_failure_propagates(self, validator, tmp_path, sample_event):
        from logtelemetry.store import LogFile

        path = tmp_path / "store.txt"
        path.mkdir()
        service = IngestionService(validator, LogFile(str(path)).appender())
        with pytest.raises(StoreWriteError):
            await service.ingest(sample_event)

    @pytest.mark.asyncio
    async def test_capture_exception(self, ingestion):
        record = await ingestion.capture_exception(ValueError("bad\nthing"), url="/api/orders")
        assert record.level == "ERROR"
        assert record.message == "ValueError: bad thing"
        assert record.user_id == "server"
        assert record.is_server


class TestQuery:
    @pytest.mark.asyncio
    async def test_empty_store(self, queries):
        result = await queries.query()
        assert result.to_dict() == {
            "logs": [],
            "stats": {},
            "dailyCounts": {},
            "todayCount": 0,
            "stackedCounts": [],
        }

    @pytest.mark.asyncio
    async def test_end_to_end(self, ingestion, queries, sample_event):
        await ingestion.ingest(sample_event)
        result = (await queries.query()).to_dict()
        assert result["logs"] == [{
            "timestamp": "2024-01-01T00:00:00.000Z",
            "level": "ERROR",
            "url": "/checkout",
            "message": "boom",
            "userId": "anonymous",
        }]
        assert result["stats"] == {"ERROR": 1}
        assert result["dailyCounts"] == {"2024-01-01": 1}
        assert result["todayCount"] == 1
        assert result["stackedCounts"] == [{"date": "2024-01-01", "client": 1, "server": 0}]

    @pytest.mark.asyncio
    async def test_skips_malformed_lines(self, log_file, queries):
        with open(log_file.path, "w") as f:
            f.write("[2024-01-01T00:00:00Z] [INFO] (u) [/] fine\n")
            f.write("this line has no bracket structure\n")
        result = await queries.query()
        assert len(result.records) == 1
        assert result.skipped == 1

    @pytest.mark.asyncio
    async def test_mixed_line_generations(self, log_file, queries):
        with open(log_file.path, "w") as f:
            f.write("[2023-12-31T00:00:00Z] [WARN] [/old] before migration\n")
            f.write("[2024-01-01T00:00:00Z] [INFO] (u1) [/api/new] after migration\n")
        result = await queries.query()
        assert [r.user_id for r in result.records] == ["anonymous", "u1"]

    @pytest.mark.asyncio
    async def test_filter_applies_to_aggregates(self, ingestion, queries, sample_event):
        await ingestion.ingest(sample_event)
        await ingestion.ingest(dict(sample_event, level="info", message="fine"))
        result = await queries.query(RecordFilter(level="INFO"))
        assert result.view.stats_by_level == {"INFO": 1}
        assert len(result.records) == 1


def test_utc_now_iso_shape():
    value = utc_now_iso()
    assert value.endswith("Z")
    assert len(value) == len("2024-01-01T00:00:00.000Z")
