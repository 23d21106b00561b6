"""Shared pytest fixtures for the log telemetry test suite."""

from datetime import date

import pytest

from logtelemetry.app import create_app
from logtelemetry.config import Config
from logtelemetry.models import LogRecord
from logtelemetry.store import LogFile
from logtelemetry.validator import LogValidator

FIXED_TODAY = date(2024, 1, 2)


@pytest.fixture
def store_path(tmp_path):
    return str(tmp_path / "logs" / "client-logs.txt")


@pytest.fixture
def log_file(store_path):
    return LogFile(store_path)


@pytest.fixture
def config(store_path):
    return Config(overrides={"storage": {"path": store_path}})


@pytest.fixture
def validator():
    return LogValidator()


@pytest.fixture
def sample_event():
    return {
        "level": "error",
        "message": "boom",
        "timestamp": "2024-01-01T00:00:00.000Z",
        "url": "/checkout",
    }


@pytest.fixture
def sample_record():
    return LogRecord(
        timestamp="2024-01-01T12:30:00.000Z",
        level="WARN",
        url="https://shop.example.com/cart?step=2",
        message="slow render",
        user_id="b7f3c2",
    )


@pytest.fixture
def app(config):
    """Create a Flask test app with a fixed 'today'."""
    application = create_app(config, today_func=lambda: FIXED_TODAY)
    application.config["TESTING"] = True
    return application


@pytest.fixture
def client(app):
    """Create a Flask test client."""
    return app.test_client()
