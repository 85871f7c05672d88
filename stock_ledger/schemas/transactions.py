# stock_ledger/schemas/transactions.py
"""
Pydantic schemas for Transaction validation.

- TransactionCreate: what clients send to record a trade
- TransactionUpdate: correctable fields (owner cannot change)
- TransactionResponse: what the API returns

Validation layers:
- Field constraints: six-digit code, positive whole quantity, positive price
- Field validators: trade date not in the future, trimming
- Router: user existence

Prices are Decimal end to end. Never use float for money!
"""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from stock_ledger.models import TransactionType
from stock_ledger.schemas.pagination import PaginationMeta
from stock_ledger.schemas.validators import Money, Price, validate_stock_code, validate_trade_date


class TransactionBase(BaseModel):
    stock_code: str = Field(
        ...,
        description="Six-digit A-share code",
        examples=["600519", "000001"],
    )
    stock_name: str = Field(default="", max_length=100, examples=["贵州茅台"])
    transaction_type: TransactionType = Field(..., examples=[TransactionType.BUY])
    quantity: int = Field(..., gt=0, description="Shares traded", examples=[100])
    price: Price = Field(
        ...,
        gt=0,
        max_digits=18,
        decimal_places=4,
        description="Price per share",
        examples=["1685.50"],
    )
    transaction_date: date = Field(..., examples=["2024-01-15"])
    notes: str | None = Field(default=None, max_length=500)

    @field_validator("stock_code")
    @classmethod
    def check_stock_code(cls, v: str) -> str:
        return validate_stock_code(v)

    @field_validator("stock_name")
    @classmethod
    def strip_stock_name(cls, v: str) -> str:
        return v.strip()


class TransactionCreate(TransactionBase):
    user_id: str = Field(..., min_length=1, description="Owner of the trade")

    @field_validator("transaction_date")
    @classmethod
    def check_trade_date(cls, v: date) -> date:
        return validate_trade_date(v)


class TransactionUpdate(BaseModel):
    """
    Correctable fields. The owning user cannot be changed; delete and
    re-create the transaction instead.
    """

    stock_code: str | None = None
    stock_name: str | None = Field(default=None, max_length=100)
    transaction_type: TransactionType | None = None
    quantity: int | None = Field(default=None, gt=0)
    price: Price | None = Field(default=None, gt=0, max_digits=18, decimal_places=4)
    transaction_date: date | None = None
    notes: str | None = Field(default=None, max_length=500)

    @field_validator("stock_code")
    @classmethod
    def check_stock_code(cls, v: str | None) -> str | None:
        return None if v is None else validate_stock_code(v)

    @field_validator("transaction_date")
    @classmethod
    def check_trade_date(cls, v: date | None) -> date | None:
        return None if v is None else validate_trade_date(v)


class TransactionResponse(TransactionBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    amount: Money = Field(..., description="price × quantity")
    created_at: datetime | None = None

    @classmethod
    def from_record(cls, txn) -> "TransactionResponse":
        return cls(
            id=str(txn.id),
            user_id=txn.user_id,
            stock_code=txn.stock_code,
            stock_name=txn.stock_name or "",
            transaction_type=txn.transaction_type,
            quantity=txn.quantity,
            price=txn.price,
            transaction_date=txn.transaction_date,
            notes=txn.notes,
            amount=txn.price * txn.quantity,
            created_at=txn.created_at,
        )


class TransactionListResponse(BaseModel):
    items: list[TransactionResponse]
    pagination: PaginationMeta
