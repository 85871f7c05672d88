# stock_ledger/services/ledger/__init__.py
"""
Ledger Engine Package.

Pure calculations over a user's transaction history:
- compute_fees(): Fee breakdown for one trade
- compute_positions(): Weighted-average-cost open positions
- compute_user_profits(): Cash-flow P&L per user
- compute_stock_profits(): Cash-flow P&L per security
- compute_monthly_stats(): Activity per calendar month, newest first

Usage:
    from stock_ledger.services.ledger import compute_positions

    positions = compute_positions(transactions)

Architecture:
    ledger/
    ├── __init__.py              # This file - package exports
    ├── types.py                 # Internal data classes
    ├── calculators.py           # Fee, position, profit, monthly, valuation
    ├── analytics.py             # Concentration, diversification, activity, advice
    └── service.py               # LedgerService (store + quotes orchestrator)

Data Flow:
    Transactions → PositionCalculator → Positions (+ oversell anomalies)
    Transactions → ProfitCalculator → UserProfit / StockProfit
    Transactions → MonthlyStatsCalculator → MonthlyStat
    Positions + Quotes → ValuationCalculator → PositionValuation → PortfolioSummary
    Valuation + Transactions → AnalyticsCalculator → PortfolioAnalytics
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from stock_ledger.models import TransactionType
from stock_ledger.services.ledger.analytics import AnalyticsCalculator, PortfolioAnalytics
from stock_ledger.services.ledger.calculators import (
    FeeCalculator,
    MonthlyStatsCalculator,
    PositionCalculator,
    ProfitCalculator,
    ValuationCalculator,
    Trade,
    calculate_return_rate,
    round_money,
    to_trade,
)
from stock_ledger.services.ledger.service import LedgerService
from stock_ledger.services.ledger.types import (
    EngineVariant,
    FeeBreakdown,
    FeeSchedule,
    LedgerValuation,
    MonthlyStat,
    OversellAnomaly,
    PortfolioSummary,
    Position,
    PositionsResult,
    PositionValuation,
    StockProfit,
    UserProfit,
)
from stock_ledger.services.protocols import TransactionLike


def compute_fees(
        amount: Decimal,
        transaction_type: TransactionType | str,
        variant: EngineVariant | str = EngineVariant.FEE_AWARE,
) -> FeeBreakdown:
    return FeeCalculator.for_variant(variant).calculate(amount, transaction_type)


def compute_positions(
        transactions: Iterable[TransactionLike],
        *,
        strict: bool = False,
        variant: EngineVariant | str = EngineVariant.FEE_AWARE,
) -> list[Position]:
    """
    Open positions after folding the transactions in date order.

    Oversells close the position silently unless strict is set, in which
    case ArithmeticAnomaly is raised. Use PositionCalculator directly to get
    the anomaly records.
    """
    calculator = PositionCalculator(FeeCalculator.for_variant(variant), strict=strict)
    return calculator.calculate(transactions).positions


def compute_user_profits(
        transactions: Iterable[TransactionLike],
        *,
        variant: EngineVariant | str = EngineVariant.FEE_AWARE,
) -> list[UserProfit]:
    return ProfitCalculator(FeeCalculator.for_variant(variant)).by_user(transactions)


def compute_stock_profits(
        transactions: Iterable[TransactionLike],
        *,
        variant: EngineVariant | str = EngineVariant.FEE_AWARE,
) -> list[StockProfit]:
    return ProfitCalculator(FeeCalculator.for_variant(variant)).by_stock(transactions)


def compute_monthly_stats(transactions: Iterable[TransactionLike]) -> list[MonthlyStat]:
    return MonthlyStatsCalculator().calculate(transactions)


__all__ = [
    # Pure functions
    "compute_fees",
    "compute_positions",
    "compute_user_profits",
    "compute_stock_profits",
    "compute_monthly_stats",

    # Service
    "LedgerService",

    # Data types
    "EngineVariant",
    "FeeSchedule",
    "FeeBreakdown",
    "Position",
    "OversellAnomaly",
    "PositionsResult",
    "UserProfit",
    "StockProfit",
    "MonthlyStat",
    "PositionValuation",
    "PortfolioSummary",
    "LedgerValuation",
    "PortfolioAnalytics",

    # Calculators (for testing)
    "FeeCalculator",
    "PositionCalculator",
    "ProfitCalculator",
    "MonthlyStatsCalculator",
    "ValuationCalculator",
    "AnalyticsCalculator",
    "Trade",
    "to_trade",
    "round_money",
    "calculate_return_rate",
]
