import logging
import os

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from logtelemetry.config import Config
from logtelemetry.errors import StoreReadError, StoreWriteError, TelemetryError, ValidationError
from logtelemetry.filters import RecordFilter
from logtelemetry.insights import build_insights
from logtelemetry.service import IngestionService, QueryService
from logtelemetry.store import LogFile
from logtelemetry.validator import LogValidator

logger = logging.getLogger(__name__)


def create_app(config=None, today_func=None):
    """Flask application factory."""
    app = Flask(__name__)

    if config is None:
        config = Config(os.environ.get("CONFIG_PATH", "config.yaml"))

    log_file = LogFile(config["storage"]["path"])
    validator = LogValidator(config["schema"]["path"])
    ingestion = IngestionService(validator, log_file.appender())
    queries = QueryService(log_file.reader(), today_func=today_func)

    # Store components on app for access in tests
    app.config["components"] = {
        "config": config,
        "log_file": log_file,
        "validator": validator,
        "ingestion": ingestion,
        "queries": queries,
    }

    # --- Error handlers ---

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc):
        return jsonify({"error": exc.reason, "details": exc.details}), 400

    @app.errorhandler(StoreWriteError)
    def handle_store_write_error(exc):
        return jsonify({"error": "Failed to save log"}), 500

    @app.errorhandler(StoreReadError)
    def handle_store_read_error(exc):
        return jsonify({"error": "Failed to read logs"}), 500

    @app.errorhandler(405)
    def handle_method_not_allowed(exc):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(Exception)
    async def handle_unexpected_error(exc):
        if isinstance(exc, HTTPException):
            return exc

        logger.exception("Unhandled error on %s", request.path)
        try:
            await ingestion.capture_exception(exc, url=request.path)
        except TelemetryError as capture_exc:
            logger.error("Could not record server error: %s", capture_exc)
        return jsonify({"error": "Internal server error"}), 500

    # --- Routes ---

    @app.route("/health")
    def health():
        return jsonify({
            "status": "healthy",
            "store": log_file.path,
            "validation": validator.get_stats(),
        })

    @app.route("/api/logs", methods=["POST"])
    async def ingest_log():
        log_entry = request.get_json(silent=True)
        await ingestion.ingest(log_entry)
        return jsonify({"message": "Log saved successfully"}), 200

    @app.route("/api/logs", methods=["GET"])
    async def query_logs():
        record_filter = _filter_from_request()
        if isinstance(record_filter, tuple):
            return record_filter
        result = await queries.query(record_filter)
        return jsonify(result.to_dict())

    @app.route("/api/logs/insights")
    async def log_insights():
        record_filter = _filter_from_request()
        if isinstance(record_filter, tuple):
            return record_filter
        top = request.args.get("top", config["query"]["top_pages"], type=int)
        records, _ = await queries.load_records(record_filter)
        return jsonify(build_insights(
            records,
            top=max(top, 0),
            errors=config["query"]["recent_errors"],
        ))

    @app.route("/api/test-server-error")
    def test_server_error():
        raise RuntimeError("Simulated server error from /api/test-server-error")

    return app


def _filter_from_request():
    try:
        record_filter = RecordFilter.from_args(request.args)
    except ValueError as exc:
        return jsonify({"error": "Invalid filter", "details": [str(exc)]}), 400
    return record_filter if record_filter.active else None
