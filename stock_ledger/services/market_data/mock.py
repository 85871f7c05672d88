# stock_ledger/services/market_data/mock.py
"""
Offline quote providers.

MockQuoteProvider serves a fixed table of well-known securities and
synthesizes a stable price for any other six-digit code, so valuations keep
working without network access.

FallbackQuoteProvider tries a primary provider and degrades to the mock on
provider failures or an open circuit.
"""

import logging
import random
from decimal import Decimal, ROUND_HALF_UP

from stock_ledger.services.circuit_breaker import CircuitBreakerOpen
from stock_ledger.services.constants import MONEY_QUANTUM, PERCENT_QUANTUM
from stock_ledger.services.exceptions import MarketDataError
from stock_ledger.services.market_data.base import (
    QuoteProvider,
    Quote,
    normalize_stock_code,
    utcnow,
)

logger = logging.getLogger(__name__)


# code → (name, price, change, change_percent)
MOCK_QUOTES: dict[str, tuple[str, str, str, str]] = {
    "000001": ("平安银行", "13.25", "0.15", "1.15"),
    "000002": ("万科A", "19.85", "-0.12", "-0.60"),
    "600036": ("招商银行", "45.78", "0.42", "0.93"),
    "600519": ("贵州茅台", "1685.50", "12.30", "0.74"),
    "000858": ("五粮液", "68.92", "-0.58", "-0.83"),
    "601318": ("中国平安", "48.65", "0.25", "0.52"),
    "000333": ("美的集团", "72.18", "1.05", "1.48"),
    "600000": ("浦发银行", "7.85", "-0.05", "-0.63"),
    "601166": ("兴业银行", "16.42", "0.08", "0.49"),
    "000651": ("格力电器", "42.35", "-0.45", "-1.05"),
}


class MockQuoteProvider(QuoteProvider):
    """
    Deterministic offline quotes.

    Unknown codes get a synthetic price between 10 and 110 with a change of
    at most ±1, seeded by the code so repeated calls agree.
    """

    @property
    def name(self) -> str:
        return "mock"

    def get_quote(self, stock_code: str) -> Quote:
        code = normalize_stock_code(stock_code)

        known = MOCK_QUOTES.get(code)
        if known is not None:
            name, price, change, change_percent = known
            return Quote(
                stock_code=code,
                price=Decimal(price),
                change=Decimal(change),
                change_percent=Decimal(change_percent),
                timestamp=utcnow(),
                source=self.name,
                name=name,
            )

        rng = random.Random(int(code))
        price = Decimal(str(10 + rng.random() * 100)).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)
        change = Decimal(str((rng.random() - 0.5) * 2)).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)
        return Quote(
            stock_code=code,
            price=price,
            change=change,
            change_percent=(change / price * 100).quantize(PERCENT_QUANTUM, rounding=ROUND_HALF_UP),
            timestamp=utcnow(),
            source=self.name,
            name=f"股票{code}",
        )


class FallbackQuoteProvider(QuoteProvider):
    """
    Primary provider with graceful degradation.

    Any MarketDataError or CircuitBreakerOpen from the primary makes the
    request fall through to the fallback.
    """

    def __init__(
            self,
            primary: QuoteProvider,
            fallback: QuoteProvider | None = None,
            timeout: float = 10.0,
            max_workers: int = 5,
    ) -> None:
        super().__init__(timeout=timeout, max_workers=max_workers)
        self._primary = primary
        self._fallback = fallback or MockQuoteProvider()

    @property
    def name(self) -> str:
        return f"{self._primary.name}+{self._fallback.name}"

    @property
    def primary(self) -> QuoteProvider:
        return self._primary

    def get_quote(self, stock_code: str) -> Quote:
        code = normalize_stock_code(stock_code)
        try:
            return self._primary.get_quote(code)
        except (MarketDataError, CircuitBreakerOpen) as e:
            logger.warning(
                f"{self._primary.name} quote for {code} failed ({e}); "
                f"using {self._fallback.name}"
            )
            return self._fallback.get_quote(code)
