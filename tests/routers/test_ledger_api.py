# tests/routers/test_ledger_api.py
"""
Integration tests for the ledger calculation endpoints.

Covers:
- POST /ledger/fees
- GET /ledger/positions (including oversell reporting and strict mode)
- GET /ledger/summary (quotes, missing quotes, valuation at cost)
- GET /ledger/profits/users, /ledger/profits/stocks
- GET /ledger/monthly
- GET /ledger/analytics
"""

from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from stock_ledger.config import settings
from stock_ledger.models import TransactionType
from tests.conftest import create_transaction, create_user


@pytest.fixture
def round_trip(db: Session, sample_user):
    """Buy 100 @ 10.00 in January, sell 100 @ 12.00 in February."""
    create_transaction(db, sample_user, price="10.00", transaction_date=date(2024, 1, 15))
    create_transaction(
        db, sample_user,
        transaction_type=TransactionType.SELL,
        price="12.00",
        transaction_date=date(2024, 2, 1),
    )
    return sample_user


# =============================================================================
# FEES
# =============================================================================

class TestFees:
    def test_sell_fees(self, client: TestClient):
        response = client.post("/ledger/fees", json={"amount": "10000", "transaction_type": "SELL"})

        assert response.status_code == 200
        assert response.json() == {
            "commission": "5.00",
            "stamp_duty": "10.00",
            "transfer_fee": "0.20",
            "total": "15.20",
        }

    def test_buy_has_no_stamp_duty(self, client: TestClient):
        data = client.post("/ledger/fees", json={"amount": "100000", "transaction_type": "BUY"}).json()

        assert data["stamp_duty"] == "0.00"
        assert data["total"] == "32.00"

    def test_negative_amount_rejected(self, client: TestClient):
        response = client.post("/ledger/fees", json={"amount": "-1", "transaction_type": "BUY"})

        assert response.status_code == 422


# =============================================================================
# POSITIONS
# =============================================================================

class TestPositions:
    def test_weighted_average_position(self, client: TestClient, db: Session, sample_user):
        create_transaction(db, sample_user, price="10.00")

        response = client.get("/ledger/positions")

        assert response.status_code == 200
        [position] = response.json()["positions"]
        assert position["stock_code"] == "600519"
        assert position["total_quantity"] == 100
        assert position["total_cost"] == "1005.02"
        assert position["total_fees"] == "5.02"
        assert position["average_price"] == "10.0502"

    def test_closed_position_not_listed(self, client: TestClient, round_trip):
        data = client.get("/ledger/positions").json()

        assert data["positions"] == []
        assert data["anomalies"] == []

    def test_oversell_reported(self, client: TestClient, db: Session, sample_user):
        create_transaction(db, sample_user, quantity=100)
        sell = create_transaction(
            db, sample_user,
            transaction_type=TransactionType.SELL,
            quantity=150,
            transaction_date=date(2024, 2, 1),
        )

        data = client.get("/ledger/positions").json()

        assert data["positions"] == []
        [anomaly] = data["anomalies"]
        assert anomaly["transaction_id"] == sell.id
        assert anomaly["held_quantity"] == 100
        assert anomaly["sell_quantity"] == 150
        assert len(data["warnings"]) == 1

    def test_oversell_conflict_in_strict_mode(self, client: TestClient, db: Session, sample_user, monkeypatch):
        monkeypatch.setattr(settings, "ledger_strict_oversell", True)
        create_transaction(db, sample_user, quantity=100)
        create_transaction(
            db, sample_user,
            transaction_type=TransactionType.SELL,
            quantity=150,
            transaction_date=date(2024, 2, 1),
        )

        response = client.get("/ledger/positions")

        assert response.status_code == 409
        data = response.json()
        assert data["error"] == "ArithmeticAnomaly"
        assert data["details"]["held_quantity"] == 100
        assert data["details"]["sell_quantity"] == 150
        assert data["details"]["transaction_date"] == "2024-02-01"

    def test_filter_by_user(self, client: TestClient, db: Session, sample_user):
        other = create_user(db, name="李四")
        create_transaction(db, sample_user)
        create_transaction(db, other, stock_code="000001")

        data = client.get("/ledger/positions", params={"user_id": other.id}).json()

        assert [p["stock_code"] for p in data["positions"]] == ["000001"]

    def test_unknown_user(self, client: TestClient):
        assert client.get("/ledger/positions", params={"user_id": "nobody"}).status_code == 404


# =============================================================================
# SUMMARY
# =============================================================================

class TestSummary:
    def test_valued_at_quote(self, client: TestClient, db: Session, sample_user, quote_provider):
        create_transaction(db, sample_user, price="10.00")
        quote_provider.set_price("600519", "11.00")

        data = client.get("/ledger/summary").json()

        [position] = data["positions"]
        assert position["current_price"] == "11.00"
        assert position["market_value"] == "1100.00"
        assert position["unrealized_pl"] == "94.98"
        assert position["unrealized_pl_percent"] == "9.45"
        assert position["price_source"] == "stub"
        assert data["summary"] == {
            "position_count": 1,
            "priced_positions": 1,
            "total_cost": "1005.02",
            "total_market_value": "1100.00",
            "total_unrealized_pl": "94.98",
            "return_rate": "9.45",
        }
        assert data["warnings"] == []

    def test_missing_quote_valued_at_cost(self, client: TestClient, db: Session, sample_user, quote_provider):
        create_transaction(db, sample_user, stock_code="000001", price="10.00")

        data = client.get("/ledger/summary").json()

        [position] = data["positions"]
        assert position["current_price"] is None
        assert position["market_value"] == "1005.02"
        assert position["unrealized_pl"] is None
        assert data["summary"]["priced_positions"] == 0
        assert data["summary"]["return_rate"] == "0.00"
        assert data["warnings"] == ["No current price for 000001; valued at cost"]

    def test_without_quotes(self, client: TestClient, db: Session, sample_user, quote_provider):
        create_transaction(db, sample_user)

        data = client.get("/ledger/summary", params={"with_quotes": False}).json()

        assert quote_provider.calls == []
        assert data["warnings"] == []
        assert data["summary"]["position_count"] == 1

    def test_empty_ledger(self, client: TestClient):
        data = client.get("/ledger/summary").json()

        assert data["positions"] == []
        assert data["summary"]["total_cost"] == "0.00"


# =============================================================================
# PROFITS AND MONTHLY STATS
# =============================================================================

class TestProfits:
    def test_user_profits(self, client: TestClient, round_trip):
        [profit] = client.get("/ledger/profits/users").json()

        assert profit["user_id"] == round_trip.id
        assert profit["realized_pl"] == "200.00"
        assert profit["total_buy_fees"] == "5.02"
        assert profit["total_sell_fees"] == "6.22"
        assert profit["net_realized_pl"] == "188.76"
        assert profit["transaction_count"] == 2

    def test_stock_profits(self, client: TestClient, round_trip):
        [profit] = client.get("/ledger/profits/stocks").json()

        assert profit["stock_code"] == "600519"
        assert profit["stock_name"] == "贵州茅台"
        assert profit["average_buy_price"] == "10.0000"
        assert profit["average_sell_price"] == "12.0000"
        assert profit["total_fees"] == "11.24"

    def test_unknown_user(self, client: TestClient):
        assert client.get("/ledger/profits/stocks", params={"user_id": "nobody"}).status_code == 404


class TestMonthly:
    def test_newest_month_first(self, client: TestClient, round_trip):
        data = client.get("/ledger/monthly").json()

        assert data == [
            {
                "month": "2024-02",
                "buy_amount": "0.00",
                "sell_amount": "1200.00",
                "buy_count": 0,
                "sell_count": 1,
                "net_amount": "1200.00",
            },
            {
                "month": "2024-01",
                "buy_amount": "1000.00",
                "sell_amount": "0.00",
                "buy_count": 1,
                "sell_count": 0,
                "net_amount": "-1000.00",
            },
        ]


class TestAnalytics:
    def test_weights_and_holding_period(self, client: TestClient, db: Session, sample_user, quote_provider):
        create_transaction(db, sample_user, price="10.00", transaction_date=date(2024, 1, 1))
        create_transaction(db, sample_user, stock_code="000001", stock_name="平安银行",
                           price="10.00", transaction_date=date(2024, 3, 1))
        quote_provider.set_price("600519", "30.00")
        quote_provider.set_price("000001", "10.00")

        response = client.get(
            "/ledger/analytics",
            params={"user_id": sample_user.id, "as_of": "2024-03-31"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["as_of"] == "2024-03-31"
        assert data["summary"]["total_market_value"] == "4000.00"
        assert [h["stock_code"] for h in data["concentration"]["top_holdings"]] == ["600519", "000001"]
        assert data["concentration"]["top_holdings"][0]["weight"] == "75.00"
        assert data["concentration"]["herfindahl_index"] == 6250
        assert data["concentration"]["concentration_risk"] == "high"
        assert data["risk"]["volatility"] == "25.00"
        assert data["diversification"]["level"] == "very_poor"
        assert data["holding_period"]["average_holding_days"] == 60
        assert data["holding_period"]["investment_style"] == "medium_term"
        assert data["trading"]["total_trades"] == 2
        assert data["trading"]["total_buy_amount"] == "2000.00"
        assert [p["trades"] for p in data["periods"]] == [0, 1, 2, 2]
        assert data["advice"]["risk_level"] == "high"
        assert data["advice"]["warnings"]
        assert data["warnings"] == []

    def test_without_quotes_weights_by_cost(self, client: TestClient, round_trip, db: Session, quote_provider):
        create_transaction(db, round_trip, stock_code="000001", stock_name="平安银行",
                           transaction_date=date(2024, 3, 1))

        data = client.get("/ledger/analytics", params={"with_quotes": False, "as_of": "2024-03-31"}).json()

        assert quote_provider.calls == []
        assert data["concentration"]["top_holdings"][0]["value"] == "1005.02"
        assert data["trading"]["sell_trades"] == 1
        assert data["trading"]["win_rate"] == "100.00"

    def test_empty_ledger(self, client: TestClient):
        data = client.get("/ledger/analytics", params={"with_quotes": False}).json()

        assert data["diversification"]["level"] == "none"
        assert data["concentration"]["top_holdings"] == []
        assert data["holding_period"]["stocks"] == []
        assert data["advice"]["suggestions"] == []

    def test_unknown_user(self, client: TestClient):
        assert client.get("/ledger/analytics", params={"user_id": "nobody"}).status_code == 404
