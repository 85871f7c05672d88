# stock_ledger/services/market_data/__init__.py
"""
Quote services package.

This package contains:
- Abstract interface for quote providers (base.py)
- Yahoo Finance implementation (yahoo.py)
- Offline mock and fallback providers (mock.py)
- QuoteService, which turns provider failures into missing prices (service.py)

Usage:
    from stock_ledger.services.market_data import QuoteService

    prices = QuoteService().get_prices(["600519", "000001"])

Architecture:
    QuoteProvider (ABC)
    ├── YahooQuoteProvider (yfinance, circuit breaker)
    ├── MockQuoteProvider (fixed table + synthetic prices)
    └── FallbackQuoteProvider (primary → mock)
"""

from stock_ledger.services.market_data.base import (
    QuoteProvider,
    Quote,
    QuoteBatchResult,
    normalize_stock_code,
)
from stock_ledger.services.market_data.mock import (
    MOCK_QUOTES,
    MockQuoteProvider,
    FallbackQuoteProvider,
)
from stock_ledger.services.market_data.service import QuoteService, build_quote_provider
from stock_ledger.services.market_data.yahoo import YahooQuoteProvider

__all__ = [
    "QuoteProvider",
    "Quote",
    "QuoteBatchResult",
    "normalize_stock_code",
    "YahooQuoteProvider",
    "MockQuoteProvider",
    "FallbackQuoteProvider",
    "MOCK_QUOTES",
    "QuoteService",
    "build_quote_provider",
]
