# stock_ledger/schemas/__init__.py
"""
Pydantic schemas for API request/response validation.

This package contains all Pydantic schemas organized by domain:
- errors: Error response formats
- pagination: Standardized pagination for list endpoints
- users: User CRUD operations
- transactions: Transaction CRUD operations
- ledger: Fees, positions, valuation summary, P&L, monthly stats and analytics
- upload: Broker CSV import results
- quotes: Current prices
- validators: Reusable field validators and money serializers

Usage:
    from stock_ledger.schemas import TransactionCreate, TransactionResponse
    from stock_ledger.schemas import PositionsResponse, LedgerSummaryResponse
    from stock_ledger.schemas import ImportResponse
    from stock_ledger.schemas import PaginationMeta
"""

from stock_ledger.schemas.errors import (
    ErrorDetail,
    ValidationErrorDetail,
)
from stock_ledger.schemas.ledger import (
    FeeRequest,
    FeeBreakdownResponse,
    PositionResponse,
    OversellAnomalyResponse,
    PositionsResponse,
    PositionValuationResponse,
    PortfolioSummaryResponse,
    LedgerSummaryResponse,
    UserProfitResponse,
    StockProfitResponse,
    MonthlyStatResponse,
    AnalyticsResponse,
)
from stock_ledger.schemas.pagination import PaginationMeta
from stock_ledger.schemas.quotes import (
    QuoteResponse,
    QuoteBatchResponse,
)
from stock_ledger.schemas.transactions import (
    TransactionBase,
    TransactionCreate,
    TransactionUpdate,
    TransactionResponse,
    TransactionListResponse,
)
from stock_ledger.schemas.upload import (
    ImportErrorResponse,
    ImportResponse,
    BrokerResponse,
    SupportedBrokersResponse,
)
from stock_ledger.schemas.users import (
    UserBase,
    UserCreate,
    UserUpdate,
    UserResponse,
)
from stock_ledger.schemas.validators import Money, Price, Percent

__all__ = [
    # User
    "UserBase",
    "UserCreate",
    "UserUpdate",
    "UserResponse",

    # Transaction
    "TransactionBase",
    "TransactionCreate",
    "TransactionUpdate",
    "TransactionResponse",
    "TransactionListResponse",

    # Ledger
    "FeeRequest",
    "FeeBreakdownResponse",
    "PositionResponse",
    "OversellAnomalyResponse",
    "PositionsResponse",
    "PositionValuationResponse",
    "PortfolioSummaryResponse",
    "LedgerSummaryResponse",
    "UserProfitResponse",
    "StockProfitResponse",
    "MonthlyStatResponse",
    "AnalyticsResponse",

    # Upload
    "ImportErrorResponse",
    "ImportResponse",
    "BrokerResponse",
    "SupportedBrokersResponse",

    # Quotes
    "QuoteResponse",
    "QuoteBatchResponse",

    # Errors
    "ErrorDetail",
    "ValidationErrorDetail",

    # Pagination
    "PaginationMeta",

    # Field types
    "Money",
    "Price",
    "Percent",
]
