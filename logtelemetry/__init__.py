"""Client/server log telemetry: append-only line store, parser and aggregates."""

__version__ = "0.1.0"
