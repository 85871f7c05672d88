# stock_ledger/services/ledger/analytics.py
"""
Portfolio analytics over valued positions and the trade history.

Derived figures for a portfolio dashboard:
- Concentration: holding weights, top-3/top-5 share, Herfindahl index
- Diversification: score and level from the number of securities held
- Risk: dispersion of weights and the largest single weight
- Holding period: days since the first buy of each security
- Trading activity: counts, amounts, average size, trades per month, win rate
- Activity by period: trades in the last 7/30/90 days and this year
- Advice: warnings and suggestions derived from the figures above

All figures are deterministic for a given history, valuation and as-of
date. Weights are computed from market value, which falls back to cost for
positions without a current price.

Usage:
    calculator = AnalyticsCalculator()
    analytics = calculator.calculate(valuation, transactions, as_of=date.today())
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP

from stock_ledger.services.constants import MONEY_QUANTUM, PERCENT_QUANTUM
from stock_ledger.services.ledger.calculators import HUNDRED, ONE, ZERO, Trade, to_trades
from stock_ledger.services.ledger.types import LedgerValuation, PortfolioSummary, PositionValuation
from stock_ledger.services.protocols import TransactionLike

logger = logging.getLogger(__name__)

TOP_HOLDINGS = 5
DAYS_PER_MONTH = 30

# Top-3 weight (percent) above which concentration is high / medium
HIGH_CONCENTRATION = Decimal("60")
MEDIUM_CONCENTRATION = Decimal("40")

# Largest single weight (percent) bounds for the risk level
HIGH_RISK_WEIGHT = Decimal("40")
LOW_RISK_WEIGHT = Decimal("20")
LOW_RISK_MIN_HOLDINGS = 8

# Trades per month above which trading counts as frequent
FREQUENT_TRADING = Decimal("10")

# Average holding days below which holdings count as short
SHORT_HOLDING_DAYS = 30


class RiskLevel(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class DiversificationLevel(str, enum.Enum):
    NONE = "none"
    VERY_POOR = "very_poor"
    POOR = "poor"
    FAIR = "fair"
    GOOD = "good"
    EXCELLENT = "excellent"


class InvestmentStyle(str, enum.Enum):
    """Style label from the average holding period."""

    DAY_TRADING = "day_trading"          # < 7 days
    SHORT_TERM = "short_term"            # < 30 days
    MEDIUM_TERM = "medium_term"          # < 90 days
    MEDIUM_LONG_TERM = "medium_long_term"  # < 365 days
    LONG_TERM = "long_term"


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass(frozen=True)
class HoldingWeight:
    stock_code: str
    stock_name: str
    value: Decimal
    weight: Decimal  # percent of total portfolio value


@dataclass(frozen=True)
class Concentration:
    top_holdings: list[HoldingWeight]
    top3_weight: Decimal
    top5_weight: Decimal
    herfindahl_index: int
    concentration_risk: RiskLevel


@dataclass(frozen=True)
class Diversification:
    stock_count: int
    score: Decimal
    level: DiversificationLevel
    recommendation: str


@dataclass(frozen=True)
class RiskMetrics:
    volatility: Decimal
    max_weight: Decimal
    risk_level: RiskLevel


@dataclass(frozen=True)
class StockHolding:
    stock_code: str
    stock_name: str
    first_buy_date: date
    holding_days: int


@dataclass(frozen=True)
class HoldingPeriod:
    average_holding_days: int
    average_holding_months: Decimal
    investment_style: InvestmentStyle
    stocks: list[StockHolding]


@dataclass(frozen=True)
class TradingStats:
    """
    Activity across the whole history.

    Attributes:
        trading_frequency: Trades per 30 days over the span between the
            first and last trade; 0 with fewer than two trading days
        win_rate: Percent of sold securities whose average sell price beats
            their average buy price; None when nothing was sold
    """

    total_trades: int
    buy_trades: int
    sell_trades: int
    total_buy_amount: Decimal
    total_sell_amount: Decimal
    average_trade_size: Decimal
    trading_frequency: Decimal
    win_rate: Decimal | None


@dataclass(frozen=True)
class PeriodActivity:
    period: str
    start_date: date
    trades: int
    amount: Decimal


@dataclass(frozen=True)
class InvestmentAdvice:
    risk_level: RiskLevel
    warnings: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    optimizations: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PortfolioAnalytics:
    as_of: date
    summary: PortfolioSummary
    concentration: Concentration
    diversification: Diversification
    risk: RiskMetrics
    holding_period: HoldingPeriod
    trading: TradingStats
    periods: list[PeriodActivity]
    advice: InvestmentAdvice
    warnings: list[str] = field(default_factory=list)


# =============================================================================
# CALCULATOR
# =============================================================================

def _percent(part: Decimal, whole: Decimal) -> Decimal:
    if whole <= ZERO:
        return ZERO
    return part / whole * HUNDRED


def _quantize_percent(value: Decimal) -> Decimal:
    return value.quantize(PERCENT_QUANTUM, rounding=ROUND_HALF_UP)


class AnalyticsCalculator:
    """
    Computes PortfolioAnalytics from a LedgerValuation and the trades behind it.

    Holdings of the same security by different users are combined, so the
    figures describe whatever set of trades is passed in.
    """

    def calculate(
            self,
            valuation: LedgerValuation,
            transactions: Iterable[TransactionLike],
            as_of: date,
    ) -> PortfolioAnalytics:
        trades = to_trades(transactions)
        weights = self.holding_weights(valuation.positions)

        concentration = self.concentration(weights)
        diversification = self.diversification(len(weights))
        risk = self.risk_metrics(weights)
        holding_period = self.holding_period(trades, as_of)
        trading = self.trading_stats(trades)

        analytics = PortfolioAnalytics(
            as_of=as_of,
            summary=valuation.summary,
            concentration=concentration,
            diversification=diversification,
            risk=risk,
            holding_period=holding_period,
            trading=trading,
            periods=self.activity_by_period(trades, as_of),
            advice=self.advice(concentration, diversification, risk, holding_period, trading),
            warnings=list(valuation.warnings),
        )
        logger.debug(
            f"Analytics for {len(weights)} holdings and {len(trades)} trades: "
            f"concentration={concentration.concentration_risk.value}, risk={risk.risk_level.value}"
        )
        return analytics

    # -------------------------------------------------------------------------
    # Holdings
    # -------------------------------------------------------------------------

    def holding_weights(self, valuations: Iterable[PositionValuation]) -> list[HoldingWeight]:
        """Weights per security, largest first."""
        values: dict[str, list] = {}
        for valuation in valuations:
            position = valuation.position
            entry = values.setdefault(position.stock_code, [position.stock_name, ZERO])
            entry[1] += valuation.market_value

        total = sum((value for _, value in values.values()), ZERO)
        weights = [
            HoldingWeight(
                stock_code=code,
                stock_name=name,
                value=value.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP),
                weight=_quantize_percent(_percent(value, total)),
            )
            for code, (name, value) in values.items()
        ]
        weights.sort(key=lambda w: (-w.value, w.stock_code))
        return weights

    def concentration(self, weights: list[HoldingWeight]) -> Concentration:
        top3 = sum((w.weight for w in weights[:3]), ZERO)
        top5 = sum((w.weight for w in weights[:TOP_HOLDINGS]), ZERO)
        herfindahl = sum(((w.weight / HUNDRED) ** 2 for w in weights), ZERO) * Decimal("10000")

        if top3 > HIGH_CONCENTRATION:
            risk = RiskLevel.HIGH
        elif top3 > MEDIUM_CONCENTRATION:
            risk = RiskLevel.MEDIUM
        else:
            risk = RiskLevel.LOW

        return Concentration(
            top_holdings=weights[:TOP_HOLDINGS],
            top3_weight=_quantize_percent(top3),
            top5_weight=_quantize_percent(top5),
            herfindahl_index=int(herfindahl.quantize(ONE, rounding=ROUND_HALF_UP)),
            concentration_risk=risk,
        )

    def diversification(self, stock_count: int) -> Diversification:
        """
        Score out of 100 from the number of securities held.

        Bands: 20+ excellent, 15+ good, 10+ fair, 5+ poor, otherwise very poor.
        """
        n = Decimal(stock_count)
        if stock_count == 0:
            score, level = ZERO, DiversificationLevel.NONE
        elif stock_count >= 20:
            score, level = 90 + min(Decimal("10"), (n - 20) * Decimal("0.5")), DiversificationLevel.EXCELLENT
        elif stock_count >= 15:
            score, level = 80 + (n - 15) * 2, DiversificationLevel.GOOD
        elif stock_count >= 10:
            score, level = 60 + (n - 10) * 4, DiversificationLevel.FAIR
        elif stock_count >= 5:
            score, level = 30 + (n - 5) * 6, DiversificationLevel.POOR
        else:
            score, level = n * 6, DiversificationLevel.VERY_POOR

        if stock_count < 5:
            recommendation = "Hold more securities to reduce single-stock risk"
        elif stock_count < 10:
            recommendation = "Consider adding securities from other industries"
        elif stock_count < 15:
            recommendation = "Portfolio is reasonably diversified"
        else:
            recommendation = "Portfolio is well diversified; keep the number of holdings manageable"

        return Diversification(
            stock_count=stock_count,
            score=min(score, HUNDRED).quantize(Decimal("0.1")),
            level=level,
            recommendation=recommendation,
        )

    def risk_metrics(self, weights: list[HoldingWeight]) -> RiskMetrics:
        """
        Dispersion of holding weights around an equal split.

        Formula:
            volatility = sqrt(mean((w_i - 1/n)^2)) × 100, with w_i as fractions
        """
        if not weights:
            return RiskMetrics(volatility=Decimal("0.00"), max_weight=Decimal("0.00"), risk_level=RiskLevel.MEDIUM)

        fractions = [w.weight / HUNDRED for w in weights]
        equal = ONE / len(fractions)
        variance = sum(((f - equal) ** 2 for f in fractions), ZERO) / len(fractions)
        max_weight = max(w.weight for w in weights)

        if max_weight > HIGH_RISK_WEIGHT:
            level = RiskLevel.HIGH
        elif max_weight < LOW_RISK_WEIGHT and len(weights) > LOW_RISK_MIN_HOLDINGS:
            level = RiskLevel.LOW
        else:
            level = RiskLevel.MEDIUM

        return RiskMetrics(
            volatility=_quantize_percent(variance.sqrt() * HUNDRED),
            max_weight=max_weight,
            risk_level=level,
        )

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    def holding_period(self, trades: list[Trade], as_of: date) -> HoldingPeriod:
        """Days from each security's first buy to as_of, and their mean."""
        first_buys: dict[str, Trade] = {}
        for trade in trades:
            if not trade.is_buy:
                continue
            current = first_buys.get(trade.stock_code)
            if current is None or trade.transaction_date < current.transaction_date:
                first_buys[trade.stock_code] = trade

        stocks = [
            StockHolding(
                stock_code=code,
                stock_name=trade.stock_name,
                first_buy_date=trade.transaction_date,
                holding_days=max((as_of - trade.transaction_date).days, 0),
            )
            for code, trade in sorted(first_buys.items())
        ]
        average = sum(s.holding_days for s in stocks) // len(stocks) if stocks else 0

        return HoldingPeriod(
            average_holding_days=average,
            average_holding_months=(Decimal(average) / DAYS_PER_MONTH).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP),
            investment_style=self._investment_style(average),
            stocks=stocks,
        )

    @staticmethod
    def _investment_style(average_days: int) -> InvestmentStyle:
        if average_days < 7:
            return InvestmentStyle.DAY_TRADING
        if average_days < 30:
            return InvestmentStyle.SHORT_TERM
        if average_days < 90:
            return InvestmentStyle.MEDIUM_TERM
        if average_days < 365:
            return InvestmentStyle.MEDIUM_LONG_TERM
        return InvestmentStyle.LONG_TERM

    def trading_stats(self, trades: list[Trade]) -> TradingStats:
        buys = [t for t in trades if t.is_buy]
        sells = [t for t in trades if not t.is_buy]
        buy_amount = sum((t.amount for t in buys), ZERO)
        sell_amount = sum((t.amount for t in sells), ZERO)

        average_size = ZERO
        if trades:
            average_size = (buy_amount + sell_amount) / len(trades)

        frequency = ZERO
        if len(trades) > 1:
            dates = [t.transaction_date for t in trades]
            span = (max(dates) - min(dates)).days
            if span > 0:
                frequency = Decimal(len(trades)) / span * DAYS_PER_MONTH

        return TradingStats(
            total_trades=len(trades),
            buy_trades=len(buys),
            sell_trades=len(sells),
            total_buy_amount=buy_amount,
            total_sell_amount=sell_amount,
            average_trade_size=average_size.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP),
            trading_frequency=frequency.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP),
            win_rate=self._win_rate(buys, sells),
        )

    @staticmethod
    def _win_rate(buys: list[Trade], sells: list[Trade]) -> Decimal | None:
        sold_codes = {t.stock_code for t in sells}
        if not sold_codes:
            return None

        def average_price(rows: list[Trade], code: str) -> Decimal | None:
            matching = [t for t in rows if t.stock_code == code]
            quantity = sum(t.quantity for t in matching)
            if quantity == 0:
                return None
            return sum((t.amount for t in matching), ZERO) / quantity

        wins = 0
        for code in sold_codes:
            buy_price = average_price(buys, code)
            if buy_price is not None and average_price(sells, code) > buy_price:
                wins += 1
        return _quantize_percent(_percent(Decimal(wins), Decimal(len(sold_codes))))

    def activity_by_period(self, trades: list[Trade], as_of: date) -> list[PeriodActivity]:
        """Trades dated on or after each period's start date."""
        starts = [
            ("last_7_days", as_of - timedelta(days=7)),
            ("last_30_days", as_of - timedelta(days=30)),
            ("last_90_days", as_of - timedelta(days=90)),
            ("this_year", date(as_of.year, 1, 1)),
        ]
        periods = []
        for name, start in starts:
            matching = [t for t in trades if t.transaction_date >= start]
            periods.append(PeriodActivity(
                period=name,
                start_date=start,
                trades=len(matching),
                amount=sum((t.amount for t in matching), ZERO),
            ))
        return periods

    # -------------------------------------------------------------------------
    # Advice
    # -------------------------------------------------------------------------

    def advice(
            self,
            concentration: Concentration,
            diversification: Diversification,
            risk: RiskMetrics,
            holding_period: HoldingPeriod,
            trading: TradingStats,
    ) -> InvestmentAdvice:
        warnings: list[str] = []
        suggestions: list[str] = []
        optimizations: list[str] = []

        if concentration.concentration_risk == RiskLevel.HIGH:
            warnings.append("Portfolio is highly concentrated; diversify to reduce risk")
            suggestions.append("Reduce the weight of the largest holdings")

        if diversification.level in (DiversificationLevel.POOR, DiversificationLevel.VERY_POOR):
            suggestions.append("Hold at least 8-10 different securities")
            optimizations.append("Choose securities from different industries and sectors")

        if trading.trading_frequency > FREQUENT_TRADING:
            warnings.append("Frequent trading; fees weigh on returns")
            suggestions.append("Trade less often and hold for longer")

        if holding_period.stocks and holding_period.average_holding_days < SHORT_HOLDING_DAYS:
            suggestions.append("Holding periods are short; longer holding tends to improve returns")

        return InvestmentAdvice(
            risk_level=risk.risk_level,
            warnings=warnings,
            suggestions=suggestions,
            optimizations=optimizations,
        )
