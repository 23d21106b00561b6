"""Line codec for the log store.

One record per line, newest shape first:

    [<timestamp>] [<LEVEL>] (<userId>) [<url>] <message>

Older stores written before user ids were tracked use:

    [<timestamp>] [<LEVEL>] [<url>] <message>

Decoding tries each rule in DECODE_RULES in order and returns None for lines
that match none of them.
"""

import re
from dataclasses import dataclass
from typing import Callable

from logtelemetry.models import ANONYMOUS_USER, LogRecord

# ---------------------------------------------------------------------------
# Compiled regex patterns
# ---------------------------------------------------------------------------

_USER_LINE_RE = re.compile(
    r"^\[(?P<timestamp>[^\]]*)\] "
    r"\[(?P<level>[A-Za-z]+)\] "
    r"\((?P<user_id>[^)]*)\) "
    r"\[(?P<url>.*?)\] "
    r"(?P<message>.*)$"
)

_LEGACY_LINE_RE = re.compile(
    r"^\[(?P<timestamp>[^\]]*)\] "
    r"\[(?P<level>[A-Za-z]+)\] "
    r"\[(?P<url>.*?)\] "
    r"(?P<message>.*)$"
)

_NEWLINES_RE = re.compile(r"\r\n|\r|\n")


@dataclass(frozen=True)
class DecodeRule:
    name: str
    pattern: re.Pattern
    build: Callable[[re.Match], LogRecord]

    def apply(self, line: str) -> LogRecord | None:
        m = self.pattern.match(line)
        if not m:
            return None
        return self.build(m)


def _build_with_user(m: re.Match) -> LogRecord:
    return LogRecord(
        timestamp=m.group("timestamp"),
        level=m.group("level").upper(),
        url=m.group("url"),
        message=m.group("message"),
        user_id=m.group("user_id") or ANONYMOUS_USER,
    )


def _build_legacy(m: re.Match) -> LogRecord:
    return LogRecord(
        timestamp=m.group("timestamp"),
        level=m.group("level").upper(),
        url=m.group("url"),
        message=m.group("message"),
    )


DECODE_RULES: tuple[DecodeRule, ...] = (
    DecodeRule("with-user", _USER_LINE_RE, _build_with_user),
    DecodeRule("legacy", _LEGACY_LINE_RE, _build_legacy),
)


def sanitize_message(message: str) -> str:
    """Replace embedded line breaks with single spaces."""
    return _NEWLINES_RE.sub(" ", message)


def encode(record: LogRecord) -> str:
    """Render a record as one newline-free store line (no terminator)."""
    return (
        f"[{record.timestamp}] [{record.level.upper()}] "
        f"({record.user_id or ANONYMOUS_USER}) "
        f"[{record.url}] {sanitize_message(record.message)}"
    )


def decode(line: str) -> LogRecord | None:
    """Parse one store line. Returns None if no rule matches."""
    stripped = line.rstrip("\n")
    if not stripped:
        return None
    for rule in DECODE_RULES:
        record = rule.apply(stripped)
        if record is not None:
            return record
    return None


def decode_lines(lines) -> tuple[list[LogRecord], int]:
    """Decode a sequence of lines, dropping the ones that don't parse.

    Returns (records, skipped) where skipped counts non-blank lines that
    matched no rule.
    """
    records = []
    skipped = 0
    for line in lines:
        record = decode(line)
        if record is not None:
            records.append(record)
        elif line.strip():
            skipped += 1
    return records, skipped
