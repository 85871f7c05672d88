# stock_ledger/schemas/quotes.py
"""
Pydantic schemas for quote endpoints.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from stock_ledger.schemas.validators import Money, Percent


class QuoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    stock_code: str
    name: str | None = None
    price: Money
    change: Money
    change_percent: Percent
    timestamp: datetime
    source: str


class QuoteBatchResponse(BaseModel):
    """Quotes that succeeded, and an error message per code that did not."""

    quotes: list[QuoteResponse]
    failed: dict[str, str] = Field(default_factory=dict)
