# stock_ledger/utils/__init__.py
"""
Cross-cutting utilities: logging setup and request context.

Usage:
    from stock_ledger.utils import setup_logging, get_correlation_id
"""

from stock_ledger.utils.context import (
    bind_correlation_id,
    bind_ledger_user,
    get_correlation_id,
    get_ledger_user,
    reset_correlation_id,
    reset_ledger_user,
)
from stock_ledger.utils.logging import JsonFormatter, RequestContextFilter, parse_log_level, setup_logging

__all__ = [
    "setup_logging",
    "parse_log_level",
    "JsonFormatter",
    "RequestContextFilter",
    "get_correlation_id",
    "bind_correlation_id",
    "reset_correlation_id",
    "get_ledger_user",
    "bind_ledger_user",
    "reset_ledger_user",
]
