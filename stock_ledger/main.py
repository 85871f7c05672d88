# stock_ledger/main.py
"""
FastAPI application entry point.

This file:
- Configures application-wide logging
- Creates the FastAPI application
- Registers global exception handlers
- Registers all routers
- Defines global endpoints (health checks)
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from stock_ledger.config import settings
from stock_ledger.database import get_db, init_db
from stock_ledger.dependencies import get_quote_service
from stock_ledger.middleware import CorrelationIdMiddleware
from stock_ledger.routers import (
    export_router,
    ledger_router,
    quotes_router,
    transactions_router,
    upload_router,
    users_router,
)
from stock_ledger.schemas.errors import ErrorDetail, ValidationErrorDetail
from stock_ledger.services.exceptions import (
    ServiceError,
    ValidationError,
    ArithmeticAnomaly,
    NotFoundError,
    ImportServiceError,
    TickerNotFoundError,
    ProviderUnavailableError,
    RateLimitError,
    MarketDataError,
    CircuitBreakerOpen,
)
from stock_ledger.utils import setup_logging

logger = logging.getLogger(__name__)

# =============================================================================
# LOGGING SETUP (must be before app creation)
# =============================================================================

setup_logging()


# =============================================================================
# APPLICATION SETUP
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info(f"{settings.app_name} started ({settings.environment})")
    yield


app = FastAPI(
    title=settings.app_name,
    description="Personal A-share trading ledger: positions, fees and realized P&L",
    version="0.1.0",
    lifespan=lifespan,
)

# =============================================================================
# MIDDLEWARE (order matters: last added = first executed)
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

app.add_middleware(CorrelationIdMiddleware)


# =============================================================================
# GLOBAL EXCEPTION HANDLERS
# =============================================================================
# Service-layer exceptions become consistent ErrorDetail responses. Subclasses
# are registered before their base classes.
# =============================================================================

def _error_response(
        status_code: int,
        exc: Exception,
        details: dict | None = None,
        headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorDetail(
            error=type(exc).__name__,
            message=str(exc),
            details=details,
        ).model_dump(),
        headers=headers,
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Handle validation errors (400)."""
    logger.warning(f"Validation error: {exc}")
    return _error_response(400, exc, {"field": exc.field} if exc.field else None)


@app.exception_handler(ArithmeticAnomaly)
async def arithmetic_anomaly_handler(request: Request, exc: ArithmeticAnomaly) -> JSONResponse:
    """Handle strict-mode oversells (409)."""
    logger.warning(f"Oversell rejected: {exc}")
    return _error_response(409, exc, {
        "user_id": exc.user_id,
        "stock_code": exc.stock_code,
        "held_quantity": exc.held_quantity,
        "sell_quantity": exc.sell_quantity,
        "transaction_date": exc.transaction_date.isoformat() if exc.transaction_date else None,
    })


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    """Handle unknown users and transactions (404)."""
    logger.warning(f"Not found: {exc}")
    return _error_response(404, exc, {
        "resource_type": exc.resource_type,
        "resource_id": exc.resource_id,
    })


@app.exception_handler(ImportServiceError)
async def import_error_handler(request: Request, exc: ImportServiceError) -> JSONResponse:
    """Handle files that cannot be imported at all (400)."""
    logger.warning(f"Import rejected: {exc}")
    return _error_response(400, exc)


@app.exception_handler(TickerNotFoundError)
async def ticker_not_found_handler(request: Request, exc: TickerNotFoundError) -> JSONResponse:
    """Handle stock codes unknown to the quote provider (404)."""
    logger.warning(f"Stock code not found on provider: {exc.stock_code}")
    return _error_response(404, exc, {"stock_code": exc.stock_code})


@app.exception_handler(RateLimitError)
async def rate_limit_handler(request: Request, exc: RateLimitError) -> JSONResponse:
    """Handle provider rate limiting (429)."""
    logger.warning(f"Rate limit exceeded: {exc}")
    return _error_response(
        429,
        exc,
        {"retry_after": exc.retry_after} if exc.retry_after else None,
        headers={"Retry-After": str(exc.retry_after)} if exc.retry_after else None,
    )


@app.exception_handler(ProviderUnavailableError)
async def provider_unavailable_handler(request: Request, exc: ProviderUnavailableError) -> JSONResponse:
    """Handle quote provider outages (502)."""
    logger.error(f"Provider unavailable: {exc}")
    return _error_response(502, exc, {"provider": exc.provider})


@app.exception_handler(MarketDataError)
async def market_data_error_handler(request: Request, exc: MarketDataError) -> JSONResponse:
    """Handle other quote provider errors (502)."""
    logger.error(f"Market data error: {exc}")
    return _error_response(502, exc, {"provider": exc.provider} if exc.provider else None)


@app.exception_handler(CircuitBreakerOpen)
async def circuit_breaker_handler(request: Request, exc: CircuitBreakerOpen) -> JSONResponse:
    """Handle circuit breaker open (503 with Retry-After)."""
    logger.warning(f"Circuit breaker open: {exc.breaker_name}")
    retry_after = int(exc.time_remaining) + 1  # Round up
    return JSONResponse(
        status_code=503,
        content=ErrorDetail(
            error="CircuitBreakerOpen",
            message=f"Service temporarily unavailable. The {exc.breaker_name} circuit breaker is open.",
            details={
                "breaker_name": exc.breaker_name,
                "retry_after": retry_after,
            },
        ).model_dump(),
        headers={"Retry-After": str(retry_after)},
    )


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Handle generic service errors (500)."""
    logger.error(f"Service error: {exc}")
    return JSONResponse(
        status_code=500,
        content=ErrorDetail(
            error="ServiceError",
            message=str(exc),
            details=None,
        ).model_dump(),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """
    Handle all HTTPExceptions with consistent error format.

    Converts the default {"detail": "..."} format to ErrorDetail, including
    404 and 405 raised by the router itself.
    """
    error_types = {
        400: "BadRequestError",
        404: "NotFoundError",
        405: "MethodNotAllowedError",
        409: "ConflictError",
        422: "ValidationError",
        429: "RateLimitError",
        500: "InternalServerError",
        503: "ServiceUnavailableError",
    }
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorDetail(
            error=error_types.get(exc.status_code, "HTTPError"),
            message=str(exc.detail) if exc.detail else "An error occurred",
            details=None,
        ).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle Pydantic validation errors with consistent format (422).
    """
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content=ValidationErrorDetail(
            error="ValidationError",
            message="Request validation failed",
            details=errors,
        ).model_dump(),
    )


# =============================================================================
# ROUTER REGISTRATION
# =============================================================================

app.include_router(users_router)  # /users/*
app.include_router(transactions_router)  # /transactions/*
app.include_router(ledger_router)  # /ledger/*
app.include_router(upload_router)  # /upload/*
app.include_router(export_router)  # /export/*
app.include_router(quotes_router)  # /quotes/*


# =============================================================================
# GLOBAL ENDPOINTS
# =============================================================================

@app.get("/", tags=["Health"])
def root():
    """
    API root - returns basic application info.
    """
    return {
        "message": f"Welcome to {settings.app_name}!",
        "docs": "/docs",
        "redoc": "/redoc",
    }


@app.get("/health", tags=["Health"])
def health_check(db: Session = Depends(get_db)):
    """
    Health of the database (critical) and the quote provider (non-critical).

    **Response Status Codes:**
    - 200: Healthy, or degraded because quotes are unavailable
    - 503: Database unreachable
    """
    checks = {}
    critical_healthy = True
    overall_status = "healthy"

    try:
        db.execute(text("SELECT 1"))
        checks["database"] = {"status": "healthy", "critical": True}
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        checks["database"] = {"status": "unhealthy", "critical": True, "error": str(e)}
        critical_healthy = False
        overall_status = "unhealthy"

    try:
        provider = get_quote_service().provider
        # the fallback wrapper reports on the provider it protects
        provider = getattr(provider, "primary", provider)
        breaker = getattr(provider, "circuit_breaker", None)
        check = {"status": "healthy", "critical": False, "provider": provider.name}
        if breaker is not None:
            stats = breaker.stats
            check.update({
                "circuit_breaker_state": breaker.state.value,
                "total_calls": stats.total_calls,
                "failed_calls": stats.failed_calls,
                "rejected_calls": stats.rejected_calls,
            })
        if not provider.is_available():
            check["status"] = "unhealthy"
            if overall_status == "healthy":
                overall_status = "degraded"
        checks["quotes"] = check
    except Exception as e:
        logger.warning(f"Quote provider health check failed: {e}")
        checks["quotes"] = {"status": "unknown", "critical": False, "error": str(e)}

    response_data = {"status": overall_status, "checks": checks}
    if not critical_healthy:
        return JSONResponse(status_code=503, content=response_data)
    return response_data


@app.get("/health/live", tags=["Health"])
def liveness_check():
    """
    Liveness check. Always succeeds while the process is alive; does not
    check dependencies.
    """
    return {"status": "alive"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "stock_ledger.main:app",
        host="127.0.0.1",
        port=8000,
        reload=settings.debug,
    )
