# stock_ledger/services/market_data/base.py
"""
Abstract interface for quote providers.

This module defines the contract that all quote providers must follow.
Using an abstract base class allows for:
- Easy addition of new providers
- Provider fallback strategies (real source → mock)
- Mock implementations for testing
- Consistent retry and batch behavior across all providers

The ledger engine never calls a provider. It only ever receives a
current price (or None) per stock code from QuoteService.
"""

import logging
import re
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import TypeVar, Callable, Any

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from stock_ledger.services.constants import QUOTE_RETRY_ATTEMPTS, STOCK_CODE_LENGTH
from stock_ledger.services.exceptions import (
    ProviderUnavailableError,
    RateLimitError,
    ValidationError,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')

_STOCK_CODE_PATTERN = re.compile(rf"^\d{{{STOCK_CODE_LENGTH}}}$")


def normalize_stock_code(stock_code: str) -> str:
    """
    Strip whitespace and validate a six-digit code.

    Raises:
        ValidationError: If the code is not six digits
    """
    code = str(stock_code).strip()
    if not _STOCK_CODE_PATTERN.match(code):
        raise ValidationError(
            f"Stock code must be {STOCK_CODE_LENGTH} digits, got '{stock_code}'",
            field="stock_code",
        )
    return code


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class Quote:
    """
    Latest price for one security.

    Attributes:
        stock_code: Six-digit code
        price: Last traded price
        change: Absolute change against the previous close
        change_percent: Percentage change against the previous close
        timestamp: When the quote was produced (UTC)
        source: Provider name ("yahoo", "mock")
        name: Security name when the provider knows it
    """

    stock_code: str
    price: Decimal
    change: Decimal
    change_percent: Decimal
    timestamp: datetime
    source: str
    name: str | None = None

    def __post_init__(self) -> None:
        if self.price <= 0:
            raise ValueError(f"price must be positive, got {self.price}")


@dataclass
class QuoteBatchResult:
    """
    Result of a batch quote fetch.

    One failing code never aborts the batch; its exception lands in failed.

    Attributes:
        quotes: Quote per stock code that succeeded
        failed: Exception per stock code that failed or timed out
    """

    quotes: dict[str, Quote] = field(default_factory=dict)
    failed: dict[str, Exception] = field(default_factory=dict)

    @property
    def success_count(self) -> int:
        return len(self.quotes)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    @property
    def all_successful(self) -> bool:
        return self.failure_count == 0


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ABSTRACT BASE CLASS
# =============================================================================

class QuoteProvider(ABC):
    """
    Abstract base class for quote providers.

    Retry Behavior:
        `_execute_with_retry` retries ProviderUnavailableError and
        RateLimitError with exponential backoff. Subclasses can tune:

        - MAX_RETRY_ATTEMPTS: Total attempts (default: 3)
        - RETRY_MIN_WAIT: Minimum wait in seconds (default: 1)
        - RETRY_MAX_WAIT: Maximum wait in seconds (default: 10)

    Batch Behavior:
        `get_quotes` fans out single-code requests over a thread pool with a
        per-request timeout. Failures are collected per code.
    """

    MAX_RETRY_ATTEMPTS: int = QUOTE_RETRY_ATTEMPTS
    RETRY_MIN_WAIT: float = 1
    RETRY_MAX_WAIT: float = 10
    RETRY_MULTIPLIER: float = 1

    def __init__(self, timeout: float = 10.0, max_workers: int = 5) -> None:
        self._timeout = timeout
        self._max_workers = max_workers

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this provider, used in logs and Quote.source."""
        pass

    @abstractmethod
    def get_quote(self, stock_code: str) -> Quote:
        """
        Fetch the latest quote for one security.

        Raises:
            ValidationError: Code is not six digits
            TickerNotFoundError: Code unknown to the provider
            ProviderUnavailableError: Network or API error (retryable)
            RateLimitError: Rate limit exceeded (retryable)
        """
        pass

    def get_quotes(self, stock_codes: list[str]) -> QuoteBatchResult:
        """
        Fetch quotes for several codes in parallel.

        Each request is bounded by the provider timeout; a code that times
        out or fails is recorded in QuoteBatchResult.failed.
        """
        result = QuoteBatchResult()
        codes = list(dict.fromkeys(stock_codes))
        if not codes:
            return result

        executor = ThreadPoolExecutor(max_workers=min(self._max_workers, len(codes)))
        try:
            futures = {code: executor.submit(self.get_quote, code) for code in codes}
            for code, future in futures.items():
                try:
                    result.quotes[code] = future.result(timeout=self._timeout)
                except FutureTimeoutError:
                    future.cancel()
                    logger.warning(f"Quote request for {code} timed out after {self._timeout}s")
                    result.failed[code] = ProviderUnavailableError(
                        provider=self.name,
                        reason=f"timed out after {self._timeout}s",
                    )
                except Exception as e:
                    logger.warning(f"Quote request for {code} failed: {e}")
                    result.failed[code] = e
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        logger.info(
            f"{self.name}: fetched {result.success_count}/{len(codes)} quotes"
        )
        return result

    # =========================================================================
    # RETRY HELPER METHOD
    # =========================================================================

    def _execute_with_retry(
            self,
            func: Callable[..., T],
            *args: Any,
            **kwargs: Any,
    ) -> T:
        """
        Execute a function with retry logic for transient failures.

        Does NOT retry TickerNotFoundError or ValidationError.
        """

        @retry(
            stop=stop_after_attempt(self.MAX_RETRY_ATTEMPTS),
            wait=wait_exponential(
                multiplier=self.RETRY_MULTIPLIER,
                min=self.RETRY_MIN_WAIT,
                max=self.RETRY_MAX_WAIT,
            ),
            retry=retry_if_exception_type((ProviderUnavailableError, RateLimitError)),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        def _inner() -> T:
            return func(*args, **kwargs)

        return _inner()

    def is_available(self) -> bool:
        return True
