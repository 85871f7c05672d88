# stock_ledger/services/__init__.py
"""
Service layer for business logic.

Services:
- Have NO knowledge of HTTP (no HTTPException, no status codes)
- Raise domain-specific exceptions
- Receive their stores through the constructor
- Are easily testable with the in-memory stores

Usage:
    from stock_ledger.services import LedgerService, InMemoryTransactionStore
    from stock_ledger.services import ValidationError, ArithmeticAnomaly

Architecture:
    services/
    ├── __init__.py              # This file - main exports
    ├── exceptions.py            # Domain exceptions
    ├── constants.py             # Fee rates, rounding, limits
    ├── protocols.py             # Store and transaction interfaces
    ├── store.py                 # SQLAlchemy and in-memory stores
    ├── circuit_breaker.py       # Circuit breaker for quote sources
    ├── ledger/                  # Fee, position, profit and monthly engine
    ├── market_data/             # Quote providers and QuoteService
    ├── upload/                  # Broker CSV import
    └── export/                  # CSV exports and backups
"""

from stock_ledger.services.exceptions import (
    ServiceError,
    ValidationError,
    ArithmeticAnomaly,
    NotFoundError,
    TransactionNotFoundError,
    UserNotFoundError,
    ImportServiceError,
    UnsupportedFileTypeError,
    UnsupportedBrokerError,
    MarketDataError,
    ProviderUnavailableError,
    TickerNotFoundError,
    RateLimitError,
    CircuitBreakerOpen,
)
from stock_ledger.services.export import ExportService, LedgerBackup
from stock_ledger.services.ledger import LedgerService
from stock_ledger.services.market_data import QuoteService
from stock_ledger.services.store import (
    InMemoryTransactionStore,
    InMemoryUserStore,
    SqlAlchemyTransactionStore,
    SqlAlchemyUserStore,
)
from stock_ledger.services.upload import ImportService, ImportResult

__all__ = [
    # Services
    "LedgerService",
    "QuoteService",
    "ImportService",
    "ImportResult",
    "ExportService",
    "LedgerBackup",
    # Stores
    "SqlAlchemyTransactionStore",
    "SqlAlchemyUserStore",
    "InMemoryTransactionStore",
    "InMemoryUserStore",
    # Exceptions
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
