"""Exceptions raised by ingestion and the log store."""


class TelemetryError(Exception):
    """Base class for log telemetry failures."""


class ValidationError(TelemetryError):
    """Raised when an inbound event is rejected before it reaches the store."""

    MISSING = "Missing log data"
    INVALID = "Invalid log data"

    def __init__(self, reason: str, details=None):
        super().__init__(reason)
        self.reason = reason
        self.details = list(details or [])


class StoreWriteError(TelemetryError):
    """Raised when appending a line to the store fails."""


class StoreReadError(TelemetryError):
    """Raised when the store exists but cannot be read."""
