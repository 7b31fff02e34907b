"""
Logging setup for the migration service.

Every record carries the HTTP request and the migration session it was
emitted under, so the log lines of one import run can be pulled together
even when several collections are migrating at once.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

from catalog_migration.core.config import get_settings

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

# Set by a coordinator once the catalog API has opened its session
migration_session_var: ContextVar[str | None] = ContextVar("migration_session", default=None)

QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore")


def _context_fields() -> dict[str, str]:
    fields = {}
    request_id = request_id_var.get()
    if request_id:
        fields["request_id"] = request_id
    session_id = migration_session_var.get()
    if session_id:
        fields["migration_session"] = session_id
    return fields


class MigrationJSONFormatter(logging.Formatter):
    """One JSON object per line for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context_fields(),
        }
        entry.update(getattr(record, "extra_fields", {}))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Colored single-line output for local runs and the CLI."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        context = _context_fields()
        tags = ""
        if "request_id" in context:
            tags += f"[{context['request_id'][:8]}] "
        if "migration_session" in context:
            tags += f"<{context['migration_session']}> "
        collection = getattr(record, "extra_fields", {}).get("collection")
        if collection:
            tags += f"({collection}) "

        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = (
            f"{clock} {color}{record.levelname:<8}{self.RESET} "
            f"{tags}{record.name}: {record.getMessage()}"
        )
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level: str | None = None, json_output: bool | None = None) -> None:
    """
    Install a single stdout handler on the root logger.

    Both arguments fall back to settings: LOG_LEVEL for the level and JSON
    output whenever ENVIRONMENT is production.
    """
    settings = get_settings()
    if level is None:
        level = settings.LOG_LEVEL
    if json_output is None:
        json_output = settings.ENVIRONMENT == "production"

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(MigrationJSONFormatter() if json_output else ConsoleFormatter())

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers = [handler]

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class ContextLogger(logging.LoggerAdapter):
    """Adds bound fields to every record; per-call extra_fields take precedence."""

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        extra = dict(kwargs.get("extra") or {})
        extra["extra_fields"] = {**self.extra, **extra.get("extra_fields", {})}
        kwargs["extra"] = extra
        return msg, kwargs


def get_context_logger(name: str, **context: Any) -> ContextLogger:
    """Logger that tags each record with the given fields, e.g. collection."""
    return ContextLogger(get_logger(name), context)
