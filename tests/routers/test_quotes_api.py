# tests/routers/test_quotes_api.py
"""
Integration tests for the quote endpoints.

The quote service is backed by the stub provider from conftest, so no
network calls are made.
"""

import pytest
from fastapi.testclient import TestClient

from stock_ledger.services.circuit_breaker import CircuitBreakerOpen
from stock_ledger.services.exceptions import ProviderUnavailableError, RateLimitError


class TestSingleQuote:
    def test_quote(self, client: TestClient, quote_provider):
        quote_provider.set_price("600519", "1700")

        response = client.get("/quotes/600519")

        assert response.status_code == 200
        data = response.json()
        assert data["stock_code"] == "600519"
        assert data["price"] == "1700.00"
        assert data["change_percent"] == "0.00"
        assert data["source"] == "stub"

    def test_unknown_code(self, client: TestClient):
        response = client.get("/quotes/999999")

        assert response.status_code == 404
        assert response.json()["details"] == {"stock_code": "999999"}

    def test_malformed_code(self, client: TestClient):
        response = client.get("/quotes/60051")

        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"

    def test_provider_outage(self, client: TestClient, quote_provider):
        quote_provider.set_error("600519", ProviderUnavailableError(provider="stub", reason="timeout"))

        response = client.get("/quotes/600519")

        assert response.status_code == 502
        assert response.json()["details"] == {"provider": "stub"}

    def test_rate_limited(self, client: TestClient, quote_provider):
        quote_provider.set_error("600519", RateLimitError(provider="stub", retry_after=30))

        response = client.get("/quotes/600519")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "30"

    def test_circuit_open(self, client: TestClient, quote_provider):
        quote_provider.set_error("600519", CircuitBreakerOpen("quotes", 12.4))

        response = client.get("/quotes/600519")

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "13"
        assert response.json()["details"]["breaker_name"] == "quotes"


class TestQuoteBatch:
    def test_partial_failure(self, client: TestClient, quote_provider):
        quote_provider.set_price("600519", "1700")

        response = client.get("/quotes", params={"codes": "600519, 000001"})

        assert response.status_code == 200
        data = response.json()
        assert [quote["stock_code"] for quote in data["quotes"]] == ["600519"]
        assert list(data["failed"]) == ["000001"]

    @pytest.mark.parametrize("codes", ["", " , "])
    def test_requires_codes(self, client: TestClient, codes):
        response = client.get("/quotes", params={"codes": codes})

        assert response.status_code == 400
        assert response.json()["details"] == {"field": "codes"}

    def test_too_many_codes(self, client: TestClient):
        codes = ",".join(f"{n:06d}" for n in range(51))

        response = client.get("/quotes", params={"codes": codes})

        assert response.status_code == 400
