# stock_ledger/services/market_data/yahoo.py
"""
Yahoo Finance quote provider.

Implements QuoteProvider with the yfinance library. Six-digit exchange codes
are mapped to Yahoo symbols by their leading digit:

    6xxxxx, 9xxxxx → .SS  (Shanghai)
    0xxxxx, 2xxxxx, 3xxxxx → .SZ  (Shenzhen)
    4xxxxx, 8xxxxx → .BJ  (Beijing)

The latest daily close is the quote price; change is measured against the
previous close.

Limitations:
- Unofficial rate limits
- Prices may be delayed 15-20 minutes
"""

import logging
import math
from decimal import Decimal, ROUND_HALF_UP

import pandas as pd
import yfinance as yf

from stock_ledger.services.circuit_breaker import CircuitBreaker
from stock_ledger.services.constants import (
    MONEY_QUANTUM,
    PERCENT_QUANTUM,
    QUOTE_CIRCUIT_FAILURE_THRESHOLD,
    QUOTE_CIRCUIT_RECOVERY_SECONDS,
)
from stock_ledger.services.exceptions import (
    ProviderUnavailableError,
    TickerNotFoundError,
    RateLimitError,
    ValidationError,
)
from stock_ledger.services.market_data.base import (
    QuoteProvider,
    Quote,
    normalize_stock_code,
    utcnow,
)

logger = logging.getLogger(__name__)


class YahooQuoteProvider(QuoteProvider):
    """
    Yahoo Finance implementation of QuoteProvider.

    Retry Behavior (inherited from QuoteProvider):
        - Retries on ProviderUnavailableError and RateLimitError
        - Does NOT retry on TickerNotFoundError

    Circuit Breaker:
        Every request passes through a CircuitBreaker. Unknown codes do not
        count as failures; repeated outages open the circuit and requests
        fail fast with CircuitBreakerOpen.

    Example:
        provider = YahooQuoteProvider(timeout=5)
        quote = provider.get_quote("600519")
        print(quote.price)
    """

    # Leading digit of the code → Yahoo exchange suffix
    EXCHANGE_SUFFIXES: dict[str, str] = {
        "6": ".SS",
        "9": ".SS",
        "0": ".SZ",
        "2": ".SZ",
        "3": ".SZ",
        "4": ".BJ",
        "8": ".BJ",
    }

    def __init__(
            self,
            timeout: float = 10.0,
            max_workers: int = 5,
            circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        super().__init__(timeout=timeout, max_workers=max_workers)
        self._breaker = circuit_breaker or CircuitBreaker(
            name="yahoo-quotes",
            failure_threshold=QUOTE_CIRCUIT_FAILURE_THRESHOLD,
            recovery_timeout=QUOTE_CIRCUIT_RECOVERY_SECONDS,
            excluded_exceptions=(TickerNotFoundError, ValidationError),
        )
        logger.info(f"YahooQuoteProvider initialized (timeout={timeout}s)")

    @property
    def name(self) -> str:
        return "yahoo"

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._breaker

    def is_available(self) -> bool:
        return not self._breaker.is_open

    def get_quote(self, stock_code: str) -> Quote:
        """
        Fetch the latest quote from Yahoo Finance.

        Raises:
            ValidationError: If the code is not six digits
            TickerNotFoundError: If Yahoo has no data for the code
            ProviderUnavailableError: If Yahoo Finance is unavailable
            CircuitBreakerOpen: If recent failures opened the circuit
        """
        code = normalize_stock_code(stock_code)
        with self._breaker:
            return self._execute_with_retry(self._fetch_quote, code)

    def _fetch_quote(self, stock_code: str) -> Quote:
        """Internal fetch (called by retry wrapper)."""
        yahoo_symbol = self._build_yahoo_symbol(stock_code)
        logger.debug(f"Fetching quote for {yahoo_symbol}")

        try:
            df = yf.Ticker(yahoo_symbol).history(
                period="5d",
                interval="1d",
                auto_adjust=False,
            )
        except Exception as e:
            error_str = str(e).lower()
            if "not found" in error_str or "no data" in error_str or "delisted" in error_str:
                raise TickerNotFoundError(stock_code=stock_code, provider=self.name)
            if "rate limit" in error_str or "too many requests" in error_str:
                raise RateLimitError(provider=self.name)

            logger.error(f"Yahoo Finance error for {yahoo_symbol}: {e}")
            raise ProviderUnavailableError(provider=self.name, reason=str(e))

        closes = self._valid_closes(df)
        if not closes:
            raise TickerNotFoundError(stock_code=stock_code, provider=self.name)

        price = closes[-1]
        previous = closes[-2] if len(closes) > 1 else price
        change = price - previous
        change_percent = (change / previous * 100) if previous else Decimal("0")

        return Quote(
            stock_code=stock_code,
            price=price,
            change=change.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP),
            change_percent=change_percent.quantize(PERCENT_QUANTUM, rounding=ROUND_HALF_UP),
            timestamp=utcnow(),
            source=self.name,
        )

    def _build_yahoo_symbol(self, stock_code: str) -> str:
        suffix = self.EXCHANGE_SUFFIXES.get(stock_code[0], ".SS")
        return f"{stock_code}{suffix}"

    def _valid_closes(self, df: pd.DataFrame | None) -> list[Decimal]:
        """Closing prices as Decimal, skipping NaN and non-positive rows."""
        if df is None or df.empty or "Close" not in df.columns:
            return []

        closes = []
        for value in df["Close"].tolist():
            if pd.isna(value) or math.isinf(value) or value <= 0:
                continue
            closes.append(Decimal(str(value)).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP))
        return closes
