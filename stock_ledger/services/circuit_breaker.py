# stock_ledger/services/circuit_breaker.py
"""
Circuit breaker guarding calls to external quote sources.

After `failure_threshold` consecutive failures the circuit opens and calls
fail fast with CircuitBreakerOpen. Once `recovery_timeout` seconds have
passed a limited number of trial calls is let through; one success closes
the circuit, one failure opens it again.

States:
    CLOSED    - calls pass through
    OPEN      - calls rejected
    HALF_OPEN - trial calls allowed

Usage:
    breaker = CircuitBreaker(name="yahoo-quotes", failure_threshold=5)

    with breaker:
        quote = fetch_quote("600519")

    @breaker
    def fetch_quote(code):
        ...
"""

import logging
import threading
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from functools import wraps
from typing import Any, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpen(Exception):
    """
    Raised instead of calling the protected function while the circuit is open.

    Attributes:
        breaker_name: Name of the circuit breaker
        time_remaining: Seconds until a trial call is allowed
    """

    def __init__(self, breaker_name: str, time_remaining: float) -> None:
        self.breaker_name = breaker_name
        self.time_remaining = time_remaining
        super().__init__(
            f"Circuit breaker '{breaker_name}' is open. "
            f"Retry in {time_remaining:.1f} seconds."
        )


@dataclass
class CircuitBreakerStats:
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0
    state_changes: int = 0
    last_failure_time: float | None = None
    last_success_time: float | None = None


@dataclass
class CircuitBreaker:
    """
    Thread-safe circuit breaker.

    Attributes:
        name: Identifier used in logs and CircuitBreakerOpen
        failure_threshold: Consecutive failures that open the circuit
        recovery_timeout: Seconds the circuit stays open
        half_open_max_calls: Trial calls allowed while half-open
        excluded_exceptions: Exceptions that do not count as failures
            (e.g. an unknown stock code is the caller's problem, not an outage)
    """

    name: str
    failure_threshold: int = 5
    recovery_timeout: float = 60.0
    half_open_max_calls: int = 1
    excluded_exceptions: tuple[type[Exception], ...] = field(default_factory=tuple)

    _state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    _consecutive_failures: int = field(default=0, init=False)
    _opened_at: float = field(default=0.0, init=False)
    _trial_calls: int = field(default=0, init=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, init=False)
    _stats: CircuitBreakerStats = field(default_factory=CircuitBreakerStats, init=False)

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        if self.recovery_timeout < 0:
            raise ValueError("recovery_timeout cannot be negative")
        if self.half_open_max_calls < 1:
            raise ValueError("half_open_max_calls must be at least 1")

    @property
    def state(self) -> CircuitState:
        with self._lock:
            self._refresh()
            return self._state

    @property
    def stats(self) -> CircuitBreakerStats:
        """Snapshot of the counters."""
        with self._lock:
            return replace(self._stats)

    @property
    def is_closed(self) -> bool:
        return self.state == CircuitState.CLOSED

    @property
    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    # =========================================================================
    # STATE MACHINE (call with the lock held)
    # =========================================================================

    def _refresh(self) -> None:
        if self._state == CircuitState.OPEN and self._seconds_until_trial() == 0.0:
            self._move_to(CircuitState.HALF_OPEN)

    def _move_to(self, new_state: CircuitState) -> None:
        old_state = self._state
        self._state = new_state
        self._stats.state_changes += 1

        if new_state == CircuitState.OPEN:
            self._opened_at = time.monotonic()
        elif new_state == CircuitState.HALF_OPEN:
            self._trial_calls = 0
        else:
            self._consecutive_failures = 0

        log = logger.warning if new_state == CircuitState.OPEN else logger.info
        log(f"CircuitBreaker '{self.name}': {old_state.value} -> {new_state.value}")

    def _seconds_until_trial(self) -> float:
        elapsed = time.monotonic() - self._opened_at
        return max(0.0, self.recovery_timeout - elapsed)

    def _admit(self) -> bool:
        self._refresh()
        if self._state == CircuitState.CLOSED:
            return True
        if self._state == CircuitState.HALF_OPEN and self._trial_calls < self.half_open_max_calls:
            self._trial_calls += 1
            return True
        return False

    def _on_success(self) -> None:
        self._stats.successful_calls += 1
        self._stats.last_success_time = time.time()
        self._consecutive_failures = 0
        if self._state == CircuitState.HALF_OPEN:
            self._move_to(CircuitState.CLOSED)

    def _on_failure(self) -> None:
        self._stats.failed_calls += 1
        self._stats.last_failure_time = time.time()

        if self._state == CircuitState.HALF_OPEN:
            self._move_to(CircuitState.OPEN)
            return

        self._consecutive_failures += 1
        if self._state == CircuitState.CLOSED and self._consecutive_failures >= self.failure_threshold:
            self._move_to(CircuitState.OPEN)

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def __enter__(self) -> "CircuitBreaker":
        with self._lock:
            self._stats.total_calls += 1
            if not self._admit():
                self._stats.rejected_calls += 1
                raise CircuitBreakerOpen(self.name, self._seconds_until_trial())
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: Any) -> bool:
        with self._lock:
            if exc_val is None or isinstance(exc_val, self.excluded_exceptions):
                self._on_success()
            else:
                self._on_failure()
        return False

    def __call__(self, func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            with self:
                return func(*args, **kwargs)
        return wrapper

    def reset(self) -> None:
        """Close the circuit manually."""
        with self._lock:
            self._move_to(CircuitState.CLOSED)

    def force_open(self) -> None:
        """Open the circuit manually, e.g. while a source is known to be down."""
        with self._lock:
            self._move_to(CircuitState.OPEN)
