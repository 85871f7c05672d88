# stock_ledger/schemas/ledger.py
"""
Pydantic schemas for ledger endpoints.

Response models mirror the engine's frozen dataclasses (services/ledger/types.py)
and are built with model_validate(..., from_attributes=True). Money is
serialized as a 2-place string, average prices as 4-place strings.
"""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from stock_ledger.models import TransactionType
from stock_ledger.services.ledger.analytics import DiversificationLevel, InvestmentStyle, RiskLevel
from stock_ledger.schemas.validators import Money, Percent, Price


# =============================================================================
# FEES
# =============================================================================

class FeeRequest(BaseModel):
    amount: Decimal = Field(..., ge=0, max_digits=18, decimal_places=4, examples=["10000"])
    transaction_type: TransactionType


class FeeBreakdownResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    commission: Money
    stamp_duty: Money
    transfer_fee: Money
    total: Money


# =============================================================================
# POSITIONS
# =============================================================================

class PositionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    stock_code: str
    stock_name: str
    total_quantity: int
    total_cost: Money
    total_fees: Money
    average_price: Price


class OversellAnomalyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    stock_code: str
    stock_name: str
    transaction_id: str | None
    transaction_date: date
    held_quantity: int
    sell_quantity: int


class PositionsResponse(BaseModel):
    """Open positions plus any oversell found while folding the history."""

    positions: list[PositionResponse]
    anomalies: list[OversellAnomalyResponse] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


# =============================================================================
# VALUATION
# =============================================================================

class PositionValuationResponse(PositionResponse):
    """A position with its market value. Unpriced positions are valued at cost."""

    current_price: Money | None = None
    market_value: Money
    unrealized_pl: Money | None = None
    unrealized_pl_percent: Percent | None = None
    price_source: str | None = None

    @classmethod
    def from_valuation(cls, valuation) -> "PositionValuationResponse":
        position = valuation.position
        return cls(
            user_id=position.user_id,
            stock_code=position.stock_code,
            stock_name=position.stock_name,
            total_quantity=position.total_quantity,
            total_cost=position.total_cost,
            total_fees=position.total_fees,
            average_price=position.average_price,
            current_price=valuation.current_price,
            market_value=valuation.market_value,
            unrealized_pl=valuation.unrealized_pl,
            unrealized_pl_percent=valuation.unrealized_pl_percent,
            price_source=valuation.price_source,
        )


class PortfolioSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    position_count: int
    priced_positions: int
    total_cost: Money
    total_market_value: Money
    total_unrealized_pl: Money
    return_rate: Percent


class LedgerSummaryResponse(BaseModel):
    summary: PortfolioSummaryResponse
    positions: list[PositionValuationResponse]
    warnings: list[str] = Field(default_factory=list)


# =============================================================================
# PROFITS
# =============================================================================

class UserProfitResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    total_buy_amount: Money
    total_sell_amount: Money
    total_buy_fees: Money
    total_sell_fees: Money
    total_fees: Money
    realized_pl: Money
    net_realized_pl: Money
    transaction_count: int


class StockProfitResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    stock_code: str
    stock_name: str
    total_buy_amount: Money
    total_sell_amount: Money
    total_buy_quantity: int
    total_sell_quantity: int
    average_buy_price: Price
    average_sell_price: Price
    total_buy_fees: Money
    total_sell_fees: Money
    total_fees: Money
    realized_pl: Money
    net_realized_pl: Money
    transaction_count: int


# =============================================================================
# MONTHLY
# =============================================================================

class MonthlyStatResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    month: str = Field(..., examples=["2024-01"])
    buy_amount: Money
    sell_amount: Money
    buy_count: int
    sell_count: int
    net_amount: Money


# =============================================================================
# ANALYTICS
# =============================================================================

class HoldingWeightResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    stock_code: str
    stock_name: str
    value: Money
    weight: Percent


class ConcentrationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    top_holdings: list[HoldingWeightResponse]
    top3_weight: Percent
    top5_weight: Percent
    herfindahl_index: int
    concentration_risk: RiskLevel


class DiversificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    stock_count: int
    score: Percent
    level: DiversificationLevel
    recommendation: str


class RiskMetricsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    volatility: Percent
    max_weight: Percent
    risk_level: RiskLevel


class StockHoldingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    stock_code: str
    stock_name: str
    first_buy_date: date
    holding_days: int


class HoldingPeriodResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    average_holding_days: int
    average_holding_months: Decimal = Field(..., examples=["2.5"])
    investment_style: InvestmentStyle
    stocks: list[StockHoldingResponse]


class TradingStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_trades: int
    buy_trades: int
    sell_trades: int
    total_buy_amount: Money
    total_sell_amount: Money
    average_trade_size: Money
    trading_frequency: Decimal = Field(..., description="Trades per 30 days", examples=["4.5"])
    win_rate: Percent | None = None


class PeriodActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    period: str = Field(..., examples=["last_30_days"])
    start_date: date
    trades: int
    amount: Money


class InvestmentAdviceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    risk_level: RiskLevel
    warnings: list[str]
    suggestions: list[str]
    optimizations: list[str]


class AnalyticsResponse(BaseModel):
    """Concentration, diversification, risk, holding period and activity for a portfolio."""

    model_config = ConfigDict(from_attributes=True)

    as_of: date
    summary: PortfolioSummaryResponse
    concentration: ConcentrationResponse
    diversification: DiversificationResponse
    risk: RiskMetricsResponse
    holding_period: HoldingPeriodResponse
    trading: TradingStatsResponse
    periods: list[PeriodActivityResponse]
    advice: InvestmentAdviceResponse
    warnings: list[str] = Field(default_factory=list)
