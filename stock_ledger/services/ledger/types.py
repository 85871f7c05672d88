# stock_ledger/services/ledger/types.py
"""
Internal data types for the ledger engine.

These dataclasses are produced by the calculators in calculators.py.
They are NOT Pydantic schemas - those live in stock_ledger/schemas/ledger.py
for API serialization.

Design Principles:
- Frozen value objects, recomputed from the transaction history on every call
- Decimal for ALL monetary values (never float), unrounded until presentation
- Integer share quantities

Type Hierarchy:
    EngineVariant       - Fee-aware (canonical) or gross (deprecated) engine
    FeeSchedule         - Rates used by the fee calculator
    FeeBreakdown        - Fees for one trade
    Position            - Open weighted-average-cost holding
    OversellAnomaly     - Sell that exceeded the held quantity
    PositionsResult     - Positions plus anomalies and warnings
    UserProfit          - Lifetime cash-flow ledger per user
    StockProfit         - Lifetime cash-flow ledger per security
    MonthlyStat         - Buy/sell activity per calendar month
    PositionValuation   - Position marked to a current price
    PortfolioSummary    - Totals across valued positions
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from stock_ledger.services.constants import (
    COMMISSION_RATE,
    MIN_COMMISSION,
    STAMP_DUTY_RATE,
    TRANSFER_FEE_RATE,
)


# =============================================================================
# ENGINE CONFIGURATION
# =============================================================================

class EngineVariant(str, enum.Enum):
    """
    Calculation engine variants.

    FEE_AWARE folds commission, stamp duty and transfer fee into cost basis
    and profit figures. GROSS ignores fees entirely: cost basis equals
    quantity × price and net P&L equals gross P&L. GROSS reproduces the
    numbers of older reports and is deprecated.
    """
    FEE_AWARE = "fee_aware"
    GROSS = "gross"


@dataclass(frozen=True)
class FeeSchedule:
    """Rates applied by FeeCalculator."""

    commission_rate: Decimal
    min_commission: Decimal
    stamp_duty_rate: Decimal
    transfer_fee_rate: Decimal


STANDARD_FEE_SCHEDULE = FeeSchedule(
    commission_rate=COMMISSION_RATE,
    min_commission=MIN_COMMISSION,
    stamp_duty_rate=STAMP_DUTY_RATE,
    transfer_fee_rate=TRANSFER_FEE_RATE,
)

ZERO_FEE_SCHEDULE = FeeSchedule(
    commission_rate=Decimal("0"),
    min_commission=Decimal("0"),
    stamp_duty_rate=Decimal("0"),
    transfer_fee_rate=Decimal("0"),
)


# =============================================================================
# FEES
# =============================================================================

@dataclass(frozen=True)
class FeeBreakdown:
    """
    Fees charged on a single trade, each rounded to 0.01.

    Note:
        total is the rounded sum of the unrounded components, so it can
        differ by 0.01 from commission + stamp_duty + transfer_fee.
    """

    commission: Decimal
    stamp_duty: Decimal
    transfer_fee: Decimal
    total: Decimal


# =============================================================================
# POSITIONS
# =============================================================================

@dataclass(frozen=True)
class Position:
    """
    An open holding of one security for one user.

    Attributes:
        user_id: Owner of the position
        stock_code: Six-digit security code
        stock_name: Display name taken from the latest transaction
        total_quantity: Shares held, always > 0 in engine output
        total_cost: Fee-inclusive cost basis of the held shares
        total_fees: Buy-side fees attributed to the held shares
        average_price: total_cost / total_quantity
    """

    user_id: str
    stock_code: str
    stock_name: str
    total_quantity: int
    total_cost: Decimal
    total_fees: Decimal
    average_price: Decimal

    @property
    def key(self) -> tuple[str, str]:
        return (self.user_id, self.stock_code)


@dataclass(frozen=True)
class OversellAnomaly:
    """
    A sell whose quantity exceeded the shares held at that point.

    The position is closed regardless; the anomaly lets callers tell a clean
    exit from a data integrity problem.
    """

    user_id: str
    stock_code: str
    stock_name: str
    transaction_id: str | None
    transaction_date: date
    held_quantity: int
    sell_quantity: int

    @property
    def excess_quantity(self) -> int:
        return self.sell_quantity - self.held_quantity

    def describe(self) -> str:
        return (
            f"Sell of {self.sell_quantity} {self.stock_code} on "
            f"{self.transaction_date.isoformat()} exceeds held quantity "
            f"{self.held_quantity}; position closed"
        )


@dataclass
class PositionsResult:
    """
    Result of the position fold including data integrity findings.

    Attributes:
        positions: Open positions (total_quantity > 0)
        anomalies: Oversells detected during the fold
        warnings: Human-readable messages, one per anomaly
    """

    positions: list[Position]
    anomalies: list[OversellAnomaly] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def has_anomalies(self) -> bool:
        return bool(self.anomalies)


# =============================================================================
# PROFITS
# =============================================================================

@dataclass(frozen=True)
class UserProfit:
    """
    Lifetime cash-flow ledger for one user.

    realized_pl is total sells minus total buys. It equals true realized
    profit only once every position is closed.
    """

    user_id: str
    total_buy_amount: Decimal
    total_sell_amount: Decimal
    total_buy_fees: Decimal
    total_sell_fees: Decimal
    total_fees: Decimal
    realized_pl: Decimal
    net_realized_pl: Decimal
    transaction_count: int


@dataclass(frozen=True)
class StockProfit:
    """Lifetime cash-flow ledger for one security across all users."""

    stock_code: str
    stock_name: str
    total_buy_amount: Decimal
    total_sell_amount: Decimal
    total_buy_quantity: int
    total_sell_quantity: int
    average_buy_price: Decimal
    average_sell_price: Decimal
    total_buy_fees: Decimal
    total_sell_fees: Decimal
    total_fees: Decimal
    realized_pl: Decimal
    net_realized_pl: Decimal
    transaction_count: int


@dataclass(frozen=True)
class MonthlyStat:
    """Trading activity in one calendar month ("YYYY-MM")."""

    month: str
    buy_amount: Decimal
    sell_amount: Decimal
    buy_count: int
    sell_count: int

    @property
    def net_amount(self) -> Decimal:
        return self.sell_amount - self.buy_amount


# =============================================================================
# VALUATION
# =============================================================================

@dataclass(frozen=True)
class PositionValuation:
    """
    A position marked to the current price.

    Without a price, market_value falls back to the cost basis and the
    unrealized figures are None.
    """

    position: Position
    current_price: Decimal | None
    market_value: Decimal
    unrealized_pl: Decimal | None
    unrealized_pl_percent: Decimal | None
    price_source: str | None = None

    @property
    def is_priced(self) -> bool:
        return self.current_price is not None


@dataclass(frozen=True)
class PortfolioSummary:
    """Totals across all valued positions of one user (or everyone)."""

    position_count: int
    priced_positions: int
    total_cost: Decimal
    total_market_value: Decimal
    total_unrealized_pl: Decimal
    return_rate: Decimal


@dataclass
class LedgerValuation:
    """
    Valued positions with their summary.

    Attributes:
        positions: One PositionValuation per open position
        summary: Totals across positions
        warnings: Oversell and missing-price messages
    """

    positions: list[PositionValuation]
    summary: PortfolioSummary
    warnings: list[str] = field(default_factory=list)
