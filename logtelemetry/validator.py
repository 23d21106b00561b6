import json
import os
from collections import defaultdict
from datetime import datetime

import jsonschema

DEFAULT_SCHEMA_PATH = os.path.join(os.path.dirname(__file__), "schemas", "log_record.json")
REQUIRED_FIELDS = ("timestamp", "level", "url", "message")

format_checker = jsonschema.FormatChecker()


@format_checker.checks("iso-instant", raises=ValueError)
def _is_iso_instant(value):
    if not isinstance(value, str):
        return True
    datetime.fromisoformat(value.replace("Z", "+00:00"))
    return True


def missing_fields(entry) -> list[str]:
    """Mandatory fields that are absent, null or empty strings.

    `message` may legitimately be an empty string; it only has to be present.
    """
    if not isinstance(entry, dict):
        return list(REQUIRED_FIELDS)
    missing = []
    for field in REQUIRED_FIELDS:
        value = entry.get(field)
        if value is None or (field != "message" and value == ""):
            missing.append(field)
    return missing


class LogValidator:
    """Validates normalized log records against a JSON schema."""

    def __init__(self, schema_path=None):
        with open(schema_path or DEFAULT_SCHEMA_PATH, "r") as f:
            schema = json.load(f)

        self._validator = jsonschema.Draft202012Validator(
            schema, format_checker=format_checker
        )
        self._stats = self._empty_stats()

    @staticmethod
    def _empty_stats():
        return {
            "total": 0,
            "valid": 0,
            "invalid": 0,
            "error_types": defaultdict(int),
        }

    def validate(self, log_entry):
        """Validate a log entry against the schema.

        Returns:
            tuple: (is_valid: bool, errors: list[str])
        """
        self._stats["total"] += 1
        errors = sorted(self._validator.iter_errors(log_entry), key=lambda e: list(e.path))

        if not errors:
            self._stats["valid"] += 1
            return True, []

        self._stats["invalid"] += 1
        error_messages = []
        for error in errors:
            self._stats["error_types"][error.validator] += 1
            location = ".".join(str(p) for p in error.path)
            error_messages.append(f"{location}: {error.message}" if location else error.message)

        return False, error_messages

    def record_missing(self):
        """Count an entry rejected before schema validation for missing fields."""
        self._stats["total"] += 1
        self._stats["invalid"] += 1
        self._stats["error_types"]["required"] += 1

    def get_stats(self):
        """Return a copy of the stats dict."""
        stats = dict(self._stats)
        stats["error_types"] = dict(stats["error_types"])
        return stats

    def reset_stats(self):
        """Reset all stat counters."""
        self._stats = self._empty_stats()
