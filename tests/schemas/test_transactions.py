# tests/schemas/test_transactions.py
"""
Tests for transaction and user request schemas and the shared validators.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError

from stock_ledger.models import TransactionType
from stock_ledger.schemas.ledger import FeeBreakdownResponse
from stock_ledger.schemas.transactions import TransactionCreate, TransactionResponse, TransactionUpdate
from stock_ledger.schemas.users import UserCreate
from stock_ledger.schemas.validators import validate_date_range, validate_stock_code
from tests.conftest import trade


def valid_payload(**overrides) -> dict:
    payload = {
        "user_id": "u1",
        "stock_code": "600519",
        "transaction_type": "BUY",
        "quantity": 100,
        "price": "1685.50",
        "transaction_date": "2024-01-15",
    }
    payload.update(overrides)
    return payload


class TestTransactionCreate:
    """Tests for TransactionCreate schema."""

    def test_valid_transaction_create(self):
        txn = TransactionCreate(**valid_payload(stock_name=" 贵州茅台 "))

        assert txn.stock_code == "600519"
        assert txn.stock_name == "贵州茅台"
        assert txn.transaction_type == TransactionType.BUY
        assert txn.price == Decimal("1685.50")

    def test_stock_code_trimmed(self):
        assert TransactionCreate(**valid_payload(stock_code=" 000001 ")).stock_code == "000001"

    @pytest.mark.parametrize("code", ["60051", "6005190", "SH6005", ""])
    def test_stock_code_must_be_six_digits(self, code):
        with pytest.raises(ValidationError):
            TransactionCreate(**valid_payload(stock_code=code))

    @pytest.mark.parametrize("field,value", [
        ("quantity", 0),
        ("quantity", -5),
        ("price", "0"),
        ("price", "-1.5"),
        ("price", "1.12345"),
    ])
    def test_numeric_constraints(self, field, value):
        with pytest.raises(ValidationError):
            TransactionCreate(**valid_payload(**{field: value}))

    def test_future_date_rejected(self):
        tomorrow = (date.today() + timedelta(days=1)).isoformat()

        with pytest.raises(ValidationError) as exc_info:
            TransactionCreate(**valid_payload(transaction_date=tomorrow))
        assert "future" in str(exc_info.value)

    def test_today_accepted(self):
        txn = TransactionCreate(**valid_payload(transaction_date=date.today().isoformat()))
        assert txn.transaction_date == date.today()

    def test_type_must_be_buy_or_sell(self):
        with pytest.raises(ValidationError):
            TransactionCreate(**valid_payload(transaction_type="DIVIDEND"))


class TestTransactionUpdate:
    def test_all_fields_optional(self):
        assert TransactionUpdate().model_dump(exclude_unset=True) == {}

    def test_partial_update(self):
        update = TransactionUpdate(quantity=200)
        assert update.model_dump(exclude_unset=True) == {"quantity": 200}

    def test_constraints_still_apply(self):
        with pytest.raises(ValidationError):
            TransactionUpdate(stock_code="12345")
        with pytest.raises(ValidationError):
            TransactionUpdate(transaction_date=date.today() + timedelta(days=1))


class TestSerialization:
    def test_response_serializes_money_as_strings(self):
        response = TransactionResponse.from_record(trade(price="10.5", quantity=300))

        data = response.model_dump(mode="json")

        assert data["price"] == "10.5000"
        assert data["amount"] == "3150.00"

    def test_python_mode_keeps_decimals(self):
        response = TransactionResponse.from_record(trade(price="10.5"))

        assert response.model_dump()["price"] == Decimal("10.5")

    def test_money_rounds_half_up(self):
        fees = FeeBreakdownResponse(
            commission=Decimal("5.005"),
            stamp_duty=Decimal("0"),
            transfer_fee=Decimal("0.2469"),
            total=Decimal("5.2519"),
        )

        assert fees.model_dump(mode="json") == {
            "commission": "5.01",
            "stamp_duty": "0.00",
            "transfer_fee": "0.25",
            "total": "5.25",
        }


class TestUserCreate:
    def test_blank_contact_fields_become_none(self):
        user = UserCreate(name="张三", phone=" ", email="")

        assert user.phone is None
        assert user.email is None

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError):
            UserCreate(name="  ")


class TestValidators:
    def test_validate_stock_code(self):
        assert validate_stock_code("600519") == "600519"
        with pytest.raises(ValueError):
            validate_stock_code(None)

    def test_validate_date_range(self):
        validate_date_range(date(2024, 1, 1), date(2024, 1, 1))
        validate_date_range(None, date(2024, 1, 1))
        with pytest.raises(ValueError):
            validate_date_range(date(2024, 2, 1), date(2024, 1, 1))
