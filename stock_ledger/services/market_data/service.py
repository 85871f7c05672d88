# stock_ledger/services/market_data/service.py
"""
Quote Service - the single entry point for current prices.

Wraps a QuoteProvider and converts failures into missing prices, so callers
valuing positions never see a network error.
"""

import logging
from decimal import Decimal

from stock_ledger.config import settings
from stock_ledger.services.market_data.base import (
    QuoteProvider,
    Quote,
    QuoteBatchResult,
    normalize_stock_code,
)
from stock_ledger.services.market_data.mock import FallbackQuoteProvider, MockQuoteProvider
from stock_ledger.services.market_data.yahoo import YahooQuoteProvider

logger = logging.getLogger(__name__)


def build_quote_provider(
        provider_name: str | None = None,
        timeout: float | None = None,
        max_workers: int | None = None,
) -> QuoteProvider:
    """
    Create the configured provider.

    "yahoo" gives Yahoo Finance with a mock fallback, "mock" gives offline
    quotes only.
    """
    provider_name = provider_name or settings.quote_provider
    timeout = timeout or settings.quote_timeout_seconds
    max_workers = max_workers or settings.quote_max_workers

    if provider_name == "mock":
        return MockQuoteProvider(timeout=timeout, max_workers=max_workers)
    if provider_name == "yahoo":
        return FallbackQuoteProvider(
            primary=YahooQuoteProvider(timeout=timeout, max_workers=max_workers),
            fallback=MockQuoteProvider(timeout=timeout, max_workers=max_workers),
            timeout=timeout,
            max_workers=max_workers,
        )
    raise ValueError(f"Unknown quote provider: '{provider_name}'. Valid options: yahoo, mock")


class QuoteService:
    """
    Fetches quotes and degrades failures to None.

    Attributes:
        provider: The underlying QuoteProvider
    """

    def __init__(self, provider: QuoteProvider | None = None) -> None:
        self.provider = provider or build_quote_provider()
        logger.info(f"QuoteService initialized with provider '{self.provider.name}'")

    def get_quote(self, stock_code: str) -> Quote:
        """
        Fetch one quote. Errors propagate; use get_quotes for tolerant access.
        """
        return self.provider.get_quote(normalize_stock_code(stock_code))

    def get_quote_batch(self, stock_codes: list[str]) -> QuoteBatchResult:
        codes = [normalize_stock_code(code) for code in stock_codes]
        return self.provider.get_quotes(codes)

    def get_quotes(self, stock_codes: list[str]) -> dict[str, Quote | None]:
        """Quote per code; None where the provider failed."""
        codes = [normalize_stock_code(code) for code in stock_codes]
        batch = self.provider.get_quotes(codes)
        for code, error in batch.failed.items():
            logger.warning(f"No quote for {code}: {error}")
        return {code: batch.quotes.get(code) for code in dict.fromkeys(codes)}

    def get_prices(self, stock_codes: list[str]) -> dict[str, Decimal | None]:
        """Current price per code; None where unavailable."""
        return {
            code: quote.price if quote is not None else None
            for code, quote in self.get_quotes(stock_codes).items()
        }
