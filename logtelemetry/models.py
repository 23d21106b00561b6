"""Log record dataclass shared by the codec, store and aggregator."""

from dataclasses import dataclass
from typing import Any

LEVELS = ("LOG", "INFO", "WARN", "ERROR")
ANONYMOUS_USER = "anonymous"
SERVER_URL_MARKER = "/api/"


@dataclass(frozen=True)
class LogRecord:
    timestamp: str
    level: str
    url: str
    message: str
    user_id: str = ANONYMOUS_USER

    @property
    def is_server(self) -> bool:
        """Server-originated if the url points at an API route."""
        return SERVER_URL_MARKER in self.url

    def to_dict(self) -> dict[str, Any]:
        """JSON shape used on the wire (camelCase userId)."""
        return {
            "timestamp": self.timestamp,
            "level": self.level,
            "url": self.url,
            "message": self.message,
            "userId": self.user_id,
        }
