# stock_ledger/utils/logging.py
"""
Logging setup for the stock ledger.

One stdout handler on the root logger, in either of two formats:

    text  2024-01-15 10:30:00 | INFO     | 5f2c... | stock_ledger.services.ledger.service | ...
    json  {"timestamp": ..., "level": ..., "logger": ..., "correlation_id": ..., "message": ...}

Every record carries the request's correlation ID (or "-" outside a
request) and the ledger user the request works on, when known.

Environment:
    LOG_LEVEL=DEBUG|INFO|WARNING|ERROR
    LOG_FORMAT=text|json

Usage:
    from stock_ledger.utils import setup_logging

    setup_logging()
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from stock_ledger.config import settings
from stock_ledger.utils.context import get_correlation_id, get_ledger_user

TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(correlation_id)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

NO_CORRELATION_ID = "-"

# Third-party loggers kept at WARNING
QUIET_LOGGERS = (
    "yfinance",
    "peewee",
    "urllib3",
    "requests",
    "httpx",
    "httpcore",
    "multipart",
    "python_multipart",
    "sqlalchemy.engine",
)

# LogRecord attributes that are not user-supplied extras
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "correlation_id",
    "ledger_user",
}

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


class RequestContextFilter(logging.Filter):
    """Stamp records with the correlation ID and ledger user of the current request."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or NO_CORRELATION_ID
        record.ledger_user = get_ledger_user()
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line, extras nested under "extra"."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "correlation_id": getattr(record, "correlation_id", NO_CORRELATION_ID),
            "message": record.getMessage(),
        }
        ledger_user = getattr(record, "ledger_user", None)
        if ledger_user:
            entry["ledger_user"] = ledger_user
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extra = {key: value for key, value in record.__dict__.items() if key not in _RECORD_ATTRS}
        if extra:
            entry["extra"] = extra

        # default=str covers Decimal, date and anything else json cannot encode
        return json.dumps(entry, ensure_ascii=False, default=str)


def parse_log_level(level: str) -> int:
    """
    Map a level name to its logging constant.

    Raises:
        ValueError: For unknown names
    """
    try:
        return _LEVELS[level.strip().upper()]
    except KeyError:
        raise ValueError(
            f"Invalid log level: '{level}'. Valid levels are: {', '.join(_LEVELS)}"
        ) from None


def setup_logging(level: str | None = None, log_format: str | None = None) -> None:
    """
    Configure the root logger. Safe to call more than once.

    Args:
        level: Level name; defaults to settings.log_level
        log_format: "text" or "json"; defaults to settings.log_format
    """
    level_name = level or settings.log_level
    format_name = (log_format or settings.log_format).lower()

    if format_name == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(fmt=TEXT_FORMAT, datefmt=DATE_FORMAT)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    root.setLevel(parse_log_level(level_name))
    root.handlers.clear()
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging configured: level={level_name}, format={format_name}")
