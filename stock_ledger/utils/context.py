# stock_ledger/utils/context.py
"""
Request-scoped context for log correlation.

Values live in contextvars, so they follow a request through async handlers
and are isolated between concurrent requests.

Usage:
    from stock_ledger.utils.context import bind_correlation_id, reset_correlation_id

    token = bind_correlation_id("abc-123")
    try:
        ...
    finally:
        reset_correlation_id(token)
"""

from contextvars import ContextVar, Token

_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)
_ledger_user_var: ContextVar[str | None] = ContextVar("ledger_user", default=None)


def get_correlation_id() -> str | None:
    return _correlation_id_var.get()


def bind_correlation_id(correlation_id: str) -> Token:
    """Set the correlation ID for the current context; returns a token for reset."""
    return _correlation_id_var.set(correlation_id)


def reset_correlation_id(token: Token) -> None:
    _correlation_id_var.reset(token)


def get_ledger_user() -> str | None:
    """User whose ledger the current request works on, if the route names one."""
    return _ledger_user_var.get()


def bind_ledger_user(user_id: str | None) -> Token:
    return _ledger_user_var.set(user_id)


def reset_ledger_user(token: Token) -> None:
    _ledger_user_var.reset(token)
