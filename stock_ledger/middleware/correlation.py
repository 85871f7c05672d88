# stock_ledger/middleware/correlation.py
"""
Correlation ID middleware.

Takes the request's trace ID from X-Correlation-ID, else X-Request-ID, else
generates a UUID4. The ID is bound to the logging context for the duration
of the request and echoed in the X-Correlation-ID response header.

When the query string names a user (?user_id=...), that user is bound too,
so log lines from the engine show whose ledger was computed.

Usage:
    app.add_middleware(CorrelationIdMiddleware)
"""

import logging
import time
import uuid
from typing import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from stock_ledger.utils.context import (
    bind_correlation_id,
    bind_ledger_user,
    reset_correlation_id,
    reset_ledger_user,
)

logger = logging.getLogger(__name__)

CORRELATION_ID_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"

# Longer inbound IDs are replaced rather than trusted
MAX_CORRELATION_ID_LENGTH = 128


def resolve_correlation_id(request: Request) -> str:
    for header in (CORRELATION_ID_HEADER, REQUEST_ID_HEADER):
        value = request.headers.get(header, "").strip()
        if value and len(value) <= MAX_CORRELATION_ID_LENGTH:
            return value
    return str(uuid.uuid4())


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Bind a correlation ID (and ledger user) to every request."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        correlation_id = resolve_correlation_id(request)
        id_token = bind_correlation_id(correlation_id)
        user_token = bind_ledger_user(request.query_params.get("user_id"))
        started = time.perf_counter()

        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = correlation_id
            logger.debug(
                f"{request.method} {request.url.path} -> {response.status_code} "
                f"in {(time.perf_counter() - started) * 1000:.1f} ms"
            )
            return response
        finally:
            reset_ledger_user(user_token)
            reset_correlation_id(id_token)
