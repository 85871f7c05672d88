# tests/services/test_circuit_breaker.py
"""
Tests for the quote provider circuit breaker.
"""

import time

import pytest

from stock_ledger.services.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerOpen,
    CircuitState,
)
from stock_ledger.services.exceptions import ProviderUnavailableError, TickerNotFoundError


def _fail(breaker: CircuitBreaker, times: int = 1) -> None:
    for _ in range(times):
        with pytest.raises(ProviderUnavailableError):
            with breaker:
                raise ProviderUnavailableError(provider="test", reason="down")


class TestCircuitBreakerInit:
    """Tests for construction and validation."""

    def test_default_values(self):
        breaker = CircuitBreaker(name="quotes")

        assert breaker.failure_threshold == 5
        assert breaker.recovery_timeout == 60.0
        assert breaker.half_open_max_calls == 1
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.parametrize("kwargs", [
        {"failure_threshold": 0},
        {"recovery_timeout": -1},
        {"half_open_max_calls": 0},
    ])
    def test_rejects_invalid_settings(self, kwargs):
        with pytest.raises(ValueError):
            CircuitBreaker(name="quotes", **kwargs)


class TestClosedState:
    """Tests while the circuit is closed."""

    def test_allows_calls(self):
        breaker = CircuitBreaker(name="quotes")

        with breaker:
            pass

        assert breaker.stats.total_calls == 1
        assert breaker.stats.successful_calls == 1

    def test_opens_after_consecutive_failures(self):
        breaker = CircuitBreaker(name="quotes", failure_threshold=3)

        _fail(breaker, 2)
        assert breaker.is_closed

        _fail(breaker)
        assert breaker.is_open

    def test_success_resets_failure_count(self):
        breaker = CircuitBreaker(name="quotes", failure_threshold=3)

        _fail(breaker, 2)
        with breaker:
            pass
        _fail(breaker, 2)

        assert breaker.is_closed

    def test_excluded_exceptions_do_not_trip(self):
        """An unknown stock code is the caller's mistake, not an outage."""
        breaker = CircuitBreaker(
            name="quotes",
            failure_threshold=1,
            excluded_exceptions=(TickerNotFoundError,),
        )

        with pytest.raises(TickerNotFoundError):
            with breaker:
                raise TickerNotFoundError(stock_code="999999", provider="test")

        assert breaker.is_closed
        assert breaker.stats.failed_calls == 0


class TestOpenState:
    """Tests while the circuit is open and recovering."""

    def test_rejects_calls(self):
        breaker = CircuitBreaker(name="quotes", failure_threshold=1, recovery_timeout=60)
        _fail(breaker)

        with pytest.raises(CircuitBreakerOpen) as exc_info:
            with breaker:
                pytest.fail("should not run while open")

        assert exc_info.value.breaker_name == "quotes"
        assert 0 < exc_info.value.time_remaining <= 60
        assert breaker.stats.rejected_calls == 1

    def test_half_open_after_timeout(self):
        breaker = CircuitBreaker(name="quotes", failure_threshold=1, recovery_timeout=0.05)
        _fail(breaker)

        time.sleep(0.1)

        assert breaker.state == CircuitState.HALF_OPEN

    def test_trial_success_closes(self):
        breaker = CircuitBreaker(name="quotes", failure_threshold=1, recovery_timeout=0.05)
        _fail(breaker)
        time.sleep(0.1)

        with breaker:
            pass

        assert breaker.is_closed

    def test_trial_failure_reopens(self):
        breaker = CircuitBreaker(name="quotes", failure_threshold=1, recovery_timeout=0.05)
        _fail(breaker)
        time.sleep(0.1)

        _fail(breaker)

        assert breaker.is_open

    def test_limits_trial_calls(self):
        breaker = CircuitBreaker(name="quotes", failure_threshold=1, recovery_timeout=0.05)
        _fail(breaker)
        time.sleep(0.1)

        with breaker:
            with pytest.raises(CircuitBreakerOpen):
                with breaker:
                    pass


class TestManualControl:
    def test_decorator(self):
        breaker = CircuitBreaker(name="quotes", failure_threshold=1)

        @breaker
        def fetch():
            raise ProviderUnavailableError(provider="test", reason="down")

        with pytest.raises(ProviderUnavailableError):
            fetch()
        with pytest.raises(CircuitBreakerOpen):
            fetch()

    def test_force_open_and_reset(self):
        breaker = CircuitBreaker(name="quotes")

        breaker.force_open()
        assert breaker.is_open

        breaker.reset()
        assert breaker.is_closed
        assert breaker.stats.state_changes == 2

    def test_stats_are_a_snapshot(self):
        breaker = CircuitBreaker(name="quotes")
        stats = breaker.stats

        with breaker:
            pass

        assert stats.total_calls == 0
        assert breaker.stats.total_calls == 1
