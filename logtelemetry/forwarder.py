"""Forward a Python logger's calls to the ingestion endpoint.

The logger's original methods are captured once in an OriginalSinks object
held by the forwarder; every wrapper forwards first and then calls through to
the original. Diagnostics about forwarding itself always go to the original
sinks so they are never forwarded in turn.
"""

import json
import logging
import sys
import uuid
from dataclasses import dataclass
from typing import Any, Callable

import requests

from logtelemetry.service import utc_now_iso

# logger method -> wire level
METHOD_LEVELS = {
    "debug": "LOG",
    "info": "INFO",
    "warning": "WARN",
    "error": "ERROR",
}


@dataclass(frozen=True)
class OriginalSinks:
    debug: Callable[..., None]
    info: Callable[..., None]
    warning: Callable[..., None]
    error: Callable[..., None]
    excepthook: Callable[..., Any]

    @classmethod
    def capture(cls, target: logging.Logger) -> "OriginalSinks":
        return cls(
            debug=target.debug,
            info=target.info,
            warning=target.warning,
            error=target.error,
            excepthook=sys.excepthook,
        )


def render_message(msg: Any, args: tuple) -> str:
    """Format a logging call's message the way logging would, JSON for containers."""
    if isinstance(msg, (dict, list)):
        text = json.dumps(msg, default=str)
    else:
        text = str(msg)
    if args:
        try:
            text = text % args
        except (TypeError, ValueError):
            text = " ".join([text] + [_render_arg(a) for a in args])
    return text


def _render_arg(arg: Any) -> str:
    if isinstance(arg, (dict, list)):
        return json.dumps(arg, default=str)
    return str(arg)


class LogForwarder:
    """Intercepts a logger's debug/info/warning/error and the process excepthook."""

    def __init__(
        self,
        endpoint: str,
        target: logging.Logger,
        session: requests.Session | None = None,
        user_id: str | None = None,
        url: str | None = None,
        timeout: float = 2.0,
    ):
        self.endpoint = endpoint
        self.target = target
        self.session = session or requests.Session()
        self.user_id = user_id or uuid.uuid4().hex
        self.url = url or f"python://{target.name}"
        self.timeout = timeout
        self.originals: OriginalSinks | None = None
        self._shadowed: set[str] = set()

    @property
    def installed(self) -> bool:
        return self.originals is not None

    def install(self) -> "LogForwarder":
        if self.installed:
            return self
        self.originals = OriginalSinks.capture(self.target)
        self._shadowed = {m for m in METHOD_LEVELS if m in vars(self.target)}

        for method in METHOD_LEVELS:
            setattr(self.target, method, self._wrap(method))
        sys.excepthook = self._excepthook
        return self

    def uninstall(self) -> None:
        if not self.installed:
            return
        for method in METHOD_LEVELS:
            if method in self._shadowed:
                setattr(self.target, method, getattr(self.originals, method))
            else:
                # the class method shows through again
                vars(self.target).pop(method, None)
        sys.excepthook = self.originals.excepthook
        self.originals = None

    def __enter__(self):
        return self.install()

    def __exit__(self, exc_type, exc, tb):
        self.uninstall()

    def _wrap(self, method: str) -> Callable[..., None]:
        original = getattr(self.originals, method)
        level = METHOD_LEVELS[method]

        def wrapper(msg, *args, **kwargs):
            self.send(level, render_message(msg, args))
            # one extra frame so records point at the caller, not this wrapper
            kwargs["stacklevel"] = kwargs.get("stacklevel", 1) + 1
            original(msg, *args, **kwargs)

        wrapper.__name__ = method
        return wrapper

    def _excepthook(self, exc_type, exc, tb):
        originals = self.originals
        self.send("ERROR", f"Uncaught {exc_type.__name__}: {exc}")
        if originals is not None:
            originals.excepthook(exc_type, exc, tb)

    def build_event(self, level: str, message: str) -> dict:
        return {
            "level": level,
            "message": message,
            "timestamp": utc_now_iso(),
            "url": self.url,
            "userId": self.user_id,
        }

    def send(self, level: str, message: str) -> bool:
        """POST one event. Returns False instead of raising on delivery failure."""
        event = self.build_event(level, message)
        try:
            resp = self.session.post(self.endpoint, json=event, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            self._report_failure(exc)
            return False
        return True

    def _report_failure(self, exc: Exception) -> None:
        sink = self.originals.warning if self.originals else self.target.warning
        sink("Error sending log to server: %s", exc)
