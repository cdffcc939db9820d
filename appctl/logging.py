"""Diagnostic logging for appctl.

Lines go to stderr as text or JSON (LOG_FORMAT) at or above LOG_LEVEL.
User-facing command output goes through appctl.terminal instead.
"""

import json
import os
import sys
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Dict, Optional


class LogLevel(IntEnum):
    DEBUG = 10
    WARNING = 30
    ERROR = 40


DEFAULT_LEVEL = LogLevel.WARNING


def _threshold() -> LogLevel:
    """Level named by LOG_LEVEL; unknown names fall back to WARNING."""
    name = os.getenv("LOG_LEVEL", DEFAULT_LEVEL.name).upper()
    return LogLevel.__members__.get(name, DEFAULT_LEVEL)


def _error_details(error: Optional[Exception]) -> Optional[Dict[str, str]]:
    if error is None:
        return None
    return {"type": type(error).__name__, "message": str(error)}


def _format_json(entry: Dict[str, Any]) -> str:
    return json.dumps({key: value for key, value in entry.items() if value}, default=str)


def _format_text(entry: Dict[str, Any]) -> str:
    line = f"{entry['timestamp']} [{entry['level'].upper()}] [{entry['component']}] {entry['message']}"
    if entry["fields"]:
        line += " " + " ".join(f"{key}={value}" for key, value in entry["fields"].items())
    if entry["error"]:
        line += f" error={entry['error']['type']}: {entry['error']['message']}"
    return line


class StructuredLogger:
    """Logger for one appctl component (cluster, polling, deployment, ...).

    LOG_FORMAT and LOG_LEVEL are read on every call so that settings changed
    after import still apply.
    """

    def __init__(self, component: str = "appctl"):
        self.component = component

    def _log(
        self,
        level: LogLevel,
        message: str,
        fields: Optional[Dict[str, Any]] = None,
        error: Optional[Exception] = None
    ):
        if level < _threshold():
            return

        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level.name.lower(),
            "component": self.component,
            "message": message,
            "fields": fields,
            "error": _error_details(error),
        }
        formatter = _format_json if os.getenv("LOG_FORMAT", "text") == "json" else _format_text
        print(formatter(entry), file=sys.stderr)

    def debug(self, message: str, fields: Optional[Dict[str, Any]] = None):
        self._log(LogLevel.DEBUG, message, fields)

    def warning(self, message: str, fields: Optional[Dict[str, Any]] = None):
        self._log(LogLevel.WARNING, message, fields)

    def error(self, message: str, error: Optional[Exception] = None, fields: Optional[Dict[str, Any]] = None):
        self._log(LogLevel.ERROR, message, fields, error)


# Default logger for code outside a named component
logger = StructuredLogger()
