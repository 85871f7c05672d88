# stock_ledger/schemas/validators.py
"""
Reusable validators and serialized field types for the API schemas.

- Stock code validation (six digits)
- Date range validation
- Money / Price: Decimal fields serialized as fixed-point strings
"""

import re
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Annotated

from pydantic import PlainSerializer

from stock_ledger.services.constants import MONEY_QUANTUM, PERCENT_QUANTUM, PRICE_QUANTUM

STOCK_CODE_PATTERN = re.compile(r"^\d{6}$")

# Earliest trade date accepted (Shanghai Stock Exchange opened in December 1990)
MIN_TRADE_DATE = date(1990, 1, 1)


# =============================================================================
# SERIALIZED DECIMAL TYPES
# =============================================================================

def _quantized(quantum: Decimal):
    return lambda value: str(value.quantize(quantum, rounding=ROUND_HALF_UP))


# Cash amounts: "1234.50"
Money = Annotated[Decimal, PlainSerializer(_quantized(MONEY_QUANTUM), return_type=str, when_used="json")]

# Per-share prices and averages: "10.5025"
Price = Annotated[Decimal, PlainSerializer(_quantized(PRICE_QUANTUM), return_type=str, when_used="json")]

# Percentages: "12.34"
Percent = Annotated[Decimal, PlainSerializer(_quantized(PERCENT_QUANTUM), return_type=str, when_used="json")]


# =============================================================================
# STOCK CODE
# =============================================================================

def validate_stock_code(value: str) -> str:
    """
    Validate a six-digit A-share code.

    Raises:
        ValueError: If the code is not exactly six digits
    """
    normalized = (value or "").strip()
    if not STOCK_CODE_PATTERN.match(normalized):
        raise ValueError(f"Invalid stock code: '{value}'. Stock codes are exactly 6 digits")
    return normalized


def validate_stock_code_query(value: str | None) -> str | None:
    """Query-parameter variant: None passes through."""
    if value is None:
        return None
    return validate_stock_code(value)


# =============================================================================
# DATES
# =============================================================================

def validate_trade_date(value: date) -> date:
    if value < MIN_TRADE_DATE:
        raise ValueError(f"Trade date cannot be before {MIN_TRADE_DATE.isoformat()}")
    if value > date.today():
        raise ValueError("Trade date cannot be in the future")
    return value


def validate_date_range(start_date: date | None, end_date: date | None) -> None:
    """
    Raises:
        ValueError: If start_date is after end_date
    """
    if start_date is not None and end_date is not None and start_date > end_date:
        raise ValueError(
            f"start_date ({start_date.isoformat()}) must not be after end_date ({end_date.isoformat()})"
        )
