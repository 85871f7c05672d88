# tests/routers/test_transactions_api.py
"""
Integration tests for Transaction API endpoints.

These tests verify full HTTP request/response cycles for:
- POST /transactions (Create)
- GET /transactions (List with filters and pagination)
- GET /transactions/{id} (Read)
- PATCH /transactions/{id} (Update)
- DELETE /transactions/{id} (Delete)

Tests validate:
- Correct status codes
- Decimal fields serialized as fixed-point strings
- Pagination metadata
- Error responses (404, 400, 422)
"""

from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from stock_ledger.models import TransactionType
from tests.conftest import create_transaction, create_user


def trade_payload(user_id: str, **overrides) -> dict:
    payload = {
        "user_id": user_id,
        "stock_code": "600519",
        "stock_name": "贵州茅台",
        "transaction_type": "BUY",
        "quantity": 100,
        "price": "1685.50",
        "transaction_date": "2024-01-15",
    }
    payload.update(overrides)
    return payload


# =============================================================================
# TEST: POST /transactions
# =============================================================================

class TestCreateTransaction:
    """Tests for POST /transactions endpoint."""

    def test_create_transaction(self, client: TestClient, sample_user):
        response = client.post("/transactions", json=trade_payload(sample_user.id, notes="建仓"))

        assert response.status_code == 201
        data = response.json()
        assert data["user_id"] == sample_user.id
        assert data["stock_code"] == "600519"
        assert data["transaction_type"] == "BUY"
        assert data["quantity"] == 100
        assert data["price"] == "1685.5000"
        assert data["amount"] == "168550.00"
        assert data["notes"] == "建仓"

    def test_unknown_user(self, client: TestClient):
        response = client.post("/transactions", json=trade_payload("nobody"))

        assert response.status_code == 404
        assert response.json()["error"] == "UserNotFoundError"

    @pytest.mark.parametrize("overrides", [
        {"stock_code": "60051"},
        {"stock_code": "ABCDEF"},
        {"quantity": 0},
        {"quantity": -100},
        {"price": "0"},
        {"transaction_type": "HOLD"},
        {"transaction_date": "1989-12-31"},
    ])
    def test_invalid_payload(self, client: TestClient, sample_user, overrides):
        response = client.post("/transactions", json=trade_payload(sample_user.id, **overrides))

        assert response.status_code == 422
        assert response.json()["error"] == "ValidationError"

    def test_future_date_rejected(self, client: TestClient, sample_user):
        tomorrow = (date.today() + timedelta(days=1)).isoformat()

        response = client.post("/transactions", json=trade_payload(sample_user.id, transaction_date=tomorrow))

        assert response.status_code == 422

    def test_oversell_is_accepted(self, client: TestClient, sample_user):
        """Oversells are reported by the ledger, not rejected on entry."""
        response = client.post(
            "/transactions",
            json=trade_payload(sample_user.id, transaction_type="SELL", quantity=500),
        )

        assert response.status_code == 201


# =============================================================================
# TEST: GET /transactions
# =============================================================================

class TestListTransactions:
    """Tests for GET /transactions endpoint."""

    def test_newest_first_with_pagination(self, client: TestClient, db: Session, sample_user):
        for day in (10, 20, 15):
            create_transaction(db, sample_user, transaction_date=date(2024, 1, day))

        response = client.get("/transactions", params={"limit": 2})

        assert response.status_code == 200
        data = response.json()
        assert [item["transaction_date"] for item in data["items"]] == ["2024-01-20", "2024-01-15"]
        assert data["pagination"] == {
            "total": 3,
            "skip": 0,
            "limit": 2,
            "page": 1,
            "pages": 2,
            "has_next": True,
            "has_previous": False,
        }

    def test_filters(self, client: TestClient, db: Session, sample_user):
        other = create_user(db, name="李四")
        create_transaction(db, sample_user, stock_code="600519")
        create_transaction(db, sample_user, stock_code="000001", transaction_type=TransactionType.SELL)
        create_transaction(db, other, stock_code="000001")

        by_user = client.get("/transactions", params={"user_id": other.id}).json()
        by_code = client.get("/transactions", params={"stock_code": "000001"}).json()
        by_type = client.get("/transactions", params={"transaction_type": "SELL"}).json()

        assert by_user["pagination"]["total"] == 1
        assert by_code["pagination"]["total"] == 2
        assert by_type["items"][0]["stock_code"] == "000001"

    def test_date_range(self, client: TestClient, db: Session, sample_user):
        create_transaction(db, sample_user, transaction_date=date(2024, 1, 10))
        create_transaction(db, sample_user, transaction_date=date(2024, 2, 10))

        data = client.get(
            "/transactions",
            params={"start_date": "2024-02-01", "end_date": "2024-02-28"},
        ).json()

        assert [item["transaction_date"] for item in data["items"]] == ["2024-02-10"]

    def test_inverted_date_range(self, client: TestClient):
        response = client.get(
            "/transactions",
            params={"start_date": "2024-03-01", "end_date": "2024-02-01"},
        )

        assert response.status_code == 400
        assert response.json()["details"] == {"field": "start_date"}

    def test_invalid_stock_code_filter(self, client: TestClient):
        assert client.get("/transactions", params={"stock_code": "12345"}).status_code == 422

    def test_empty(self, client: TestClient):
        data = client.get("/transactions").json()

        assert data["items"] == []
        assert data["pagination"]["pages"] == 1


# =============================================================================
# TEST: GET / PATCH / DELETE /transactions/{id}
# =============================================================================

class TestSingleTransaction:
    def test_get(self, client: TestClient, db: Session, sample_user):
        txn = create_transaction(db, sample_user)

        response = client.get(f"/transactions/{txn.id}")

        assert response.status_code == 200
        assert response.json()["id"] == txn.id

    def test_get_unknown(self, client: TestClient):
        response = client.get("/transactions/missing")

        assert response.status_code == 404
        assert response.json()["details"]["resource_type"] == "Transaction"

    def test_update(self, client: TestClient, db: Session, sample_user):
        txn = create_transaction(db, sample_user, notes="初始")

        response = client.patch(
            f"/transactions/{txn.id}",
            json={"price": "10.25", "quantity": 200, "notes": None},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["price"] == "10.2500"
        assert data["quantity"] == 200
        assert data["amount"] == "2050.00"
        assert data["notes"] is None

    def test_update_ignores_nulls_for_required_fields(self, client: TestClient, db: Session, sample_user):
        txn = create_transaction(db, sample_user)

        response = client.patch(f"/transactions/{txn.id}", json={"stock_code": None, "quantity": 300})

        assert response.status_code == 200
        assert response.json()["stock_code"] == "600519"

    def test_owner_cannot_change(self, client: TestClient, db: Session, sample_user):
        txn = create_transaction(db, sample_user)

        response = client.patch(f"/transactions/{txn.id}", json={"user_id": "someone-else"})

        assert response.status_code == 200
        assert response.json()["user_id"] == sample_user.id

    def test_update_unknown(self, client: TestClient):
        assert client.patch("/transactions/missing", json={"quantity": 1}).status_code == 404

    def test_delete(self, client: TestClient, db: Session, sample_user):
        txn = create_transaction(db, sample_user)

        assert client.delete(f"/transactions/{txn.id}").status_code == 204
        assert client.get(f"/transactions/{txn.id}").status_code == 404

    def test_delete_unknown(self, client: TestClient):
        assert client.delete("/transactions/missing").status_code == 404
