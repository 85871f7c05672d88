# stock_ledger/services/exceptions.py
"""
Service layer exceptions.

These exceptions represent domain-specific errors and contain NO HTTP knowledge.
The router layer is responsible for mapping these to appropriate HTTP responses.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError
    ├── ArithmeticAnomaly
    ├── NotFoundError
    │   ├── TransactionNotFoundError
    │   └── UserNotFoundError
    ├── ImportServiceError
    │   ├── UnsupportedFileTypeError
    │   └── UnsupportedBrokerError
    └── MarketDataError
        ├── ProviderUnavailableError
        ├── TickerNotFoundError
        └── RateLimitError

    CircuitBreakerOpen (from circuit_breaker module)
        - Raised when circuit breaker is open and blocking requests
"""

from datetime import date


class ServiceError(Exception):
    """
    Base exception for all service layer errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(ServiceError):
    """
    Raised when input validation fails.

    The calculation engine raises this for transactions that slipped past the
    input boundary (non-positive quantity or price, unknown type). Request
    bodies are validated by Pydantic before reaching the services.

    Attributes:
        field: The field that failed validation (optional)
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class ArithmeticAnomaly(ServiceError):
    """
    Raised in strict mode when a sell exceeds the quantity currently held.

    Outside strict mode the position is closed and the anomaly is reported
    alongside the results instead.

    Attributes:
        user_id: Owner of the position
        stock_code: Security that was oversold
        held_quantity: Quantity held before the sell
        sell_quantity: Quantity sold
        transaction_date: Date of the offending sell
    """

    def __init__(
            self,
            user_id: str,
            stock_code: str,
            held_quantity: int,
            sell_quantity: int,
            transaction_date: date | None = None,
    ) -> None:
        self.user_id = user_id
        self.stock_code = stock_code
        self.held_quantity = held_quantity
        self.sell_quantity = sell_quantity
        self.transaction_date = transaction_date
        when = f" on {transaction_date.isoformat()}" if transaction_date else ""
        super().__init__(
            f"Oversell of {stock_code} for user {user_id}{when}: "
            f"sold {sell_quantity} while holding {held_quantity}"
        )


# =============================================================================
# NOT FOUND ERRORS
# =============================================================================


class NotFoundError(ServiceError):
    """
    Base exception for resource not found errors.

    Attributes:
        resource_type: Type of resource (e.g., "Transaction", "User")
        resource_id: Identifier of the resource
    """

    def __init__(
            self,
            message: str,
            resource_type: str | None = None,
            resource_id: int | str | None = None,
    ) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(message)


class TransactionNotFoundError(NotFoundError):
    """Raised when a transaction id is unknown to the store."""

    def __init__(self, transaction_id: str) -> None:
        self.transaction_id = transaction_id
        super().__init__(
            f"Transaction {transaction_id} not found",
            resource_type="Transaction",
            resource_id=transaction_id,
        )


class UserNotFoundError(NotFoundError):
    """Raised when a user id is unknown to the store."""

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__(
            f"User {user_id} not found",
            resource_type="User",
            resource_id=user_id,
        )


# =============================================================================
# IMPORT ERRORS
# =============================================================================


class ImportServiceError(ServiceError):
    """Base exception for file import failures that abort the whole file."""
    pass


class UnsupportedFileTypeError(ImportServiceError):
    """
    Raised when no parser accepts the uploaded file.

    Attributes:
        filename: Name of the uploaded file
    """

    def __init__(self, filename: str, supported: list[str] | None = None) -> None:
        self.filename = filename
        self.supported = supported or []
        message = f"Unsupported file type: '{filename}'"
        if self.supported:
            message += f". Supported extensions: {', '.join(self.supported)}"
        super().__init__(message)


class UnsupportedBrokerError(ImportServiceError):
    """
    Raised when a broker template is requested that does not exist.

    Attributes:
        broker: The requested broker key
    """

    def __init__(self, broker: str, available: list[str] | None = None) -> None:
        self.broker = broker
        self.available = available or []
        message = f"Unknown broker template: '{broker}'"
        if self.available:
            message += f". Available: {', '.join(self.available)}"
        super().__init__(message)


# =============================================================================
# MARKET DATA PROVIDER ERRORS
# =============================================================================


class MarketDataError(ServiceError):
    """
    Base exception for quote provider failures.

    Attributes:
        provider: Name of the provider that failed
    """

    def __init__(self, message: str, provider: str | None = None) -> None:
        self.provider = provider
        super().__init__(message)


class ProviderUnavailableError(MarketDataError):
    """
    Raised when a quote provider is temporarily unavailable.

    Examples:
    - Network timeout
    - Server errors (500, 502, 503)

    This is a retryable error.
    """

    def __init__(self, provider: str, reason: str) -> None:
        message = f"Provider '{provider}' is unavailable: {reason}"
        super().__init__(message, provider=provider)
        self.reason = reason


class TickerNotFoundError(MarketDataError):
    """
    Raised when a stock code is not known to the provider.

    This is NOT a retryable error.
    """

    def __init__(self, stock_code: str, provider: str) -> None:
        message = f"Stock code '{stock_code}' not found by {provider}"
        super().__init__(message, provider=provider)
        self.stock_code = stock_code


class RateLimitError(MarketDataError):
    """
    Raised when the provider's rate limit has been exceeded.

    This is a retryable error (with backoff).

    Attributes:
        retry_after: Seconds to wait before retrying (if provided by API)
    """

    def __init__(self, provider: str, retry_after: int | None = None) -> None:
        message = f"Rate limit exceeded for provider '{provider}'"
        if retry_after:
            message += f" (retry after {retry_after}s)"
        super().__init__(message, provider=provider)
        self.retry_after = retry_after


# =============================================================================
# CIRCUIT BREAKER (re-exported for convenience)
# =============================================================================

from stock_ledger.services.circuit_breaker import CircuitBreakerOpen  # noqa: E402

__all__ = [
    "ServiceError",
    "ValidationError",
    "ArithmeticAnomaly",
    "NotFoundError",
    "TransactionNotFoundError",
    "UserNotFoundError",
    "ImportServiceError",
    "UnsupportedFileTypeError",
    "UnsupportedBrokerError",
    "MarketDataError",
    "ProviderUnavailableError",
    "TickerNotFoundError",
    "RateLimitError",
    "CircuitBreakerOpen",
]
