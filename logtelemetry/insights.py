"""Page-level views used by the dashboard: top pages, level heatmap, recent errors."""

import re
from collections import Counter
from datetime import datetime, timezone

from logtelemetry.aggregator import parse_timestamp
from logtelemetry.models import LogRecord

HEATMAP_LEVELS = ("INFO", "WARN", "ERROR")

_ORIGIN_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*://[^/?#]*")
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def normalize_path(raw: str | None) -> str:
    """Strip scheme and host, drop query and fragment. Empty becomes '/'."""
    path = _ORIGIN_RE.sub("", raw or "", count=1)
    path = path.split("?", 1)[0].split("#", 1)[0]
    return path or "/"


def format_path_label(raw: str | None) -> str:
    """Human label for a url: 'Home', 'API: /api/...', or the path itself."""
    path = normalize_path(raw)
    if path == "/":
        return "Home"
    if path.startswith("/api"):
        return "API: " + path
    return path


def top_pages(records: list[LogRecord], limit: int = 10) -> list[dict]:
    """Most frequent normalized paths, highest count first.

    Counter.most_common keeps first-seen order for equal counts.
    """
    counts = Counter(normalize_path(r.url) for r in records)
    return [
        {"path": path, "label": format_path_label(path), "count": count}
        for path, count in counts.most_common(limit)
    ]


def level_heatmap(records: list[LogRecord], pages: list[dict]) -> list[dict]:
    """Per-level counts for each of the given pages, one series per level."""
    cells = Counter((normalize_path(r.url), r.level) for r in records)
    return [
        {
            "level": level,
            "data": [
                {"x": page["label"], "y": cells[(page["path"], level)]}
                for page in pages
            ],
        }
        for level in HEATMAP_LEVELS
    ]


def source_levels(records: list[LogRecord]) -> dict:
    """INFO/WARN/ERROR counts split by client and server origin."""
    result = {
        "client": {level: 0 for level in HEATMAP_LEVELS},
        "server": {level: 0 for level in HEATMAP_LEVELS},
    }
    for record in records:
        if record.level not in HEATMAP_LEVELS:
            continue
        side = "server" if record.is_server else "client"
        result[side][record.level] += 1
    return result


def recent_errors(records: list[LogRecord], limit: int = 10) -> list[LogRecord]:
    """Latest ERROR records by timestamp, newest first."""
    errors = [r for r in records if r.level == "ERROR"]
    errors.sort(key=lambda r: parse_timestamp(r.timestamp) or _EPOCH, reverse=True)
    return errors[:limit]


def build_insights(records: list[LogRecord], top: int = 10, errors: int = 10) -> dict:
    pages = top_pages(records, limit=top)
    return {
        "total": len(records),
        "topPages": pages,
        "heatmap": level_heatmap(records, pages),
        "sourceLevels": source_levels(records),
        "recentErrors": [r.to_dict() for r in recent_errors(records, limit=errors)],
    }
