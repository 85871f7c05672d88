# stock_ledger/services/ledger/calculators.py
"""
Ledger calculators.

Each calculator follows the Single Responsibility Principle:
- FeeCalculator: Commission, stamp duty and transfer fee for one trade
- PositionCalculator: Folds transactions into weighted-average-cost positions
- ProfitCalculator: Lifetime cash-flow P&L per user and per security
- MonthlyStatsCalculator: Buy/sell activity per calendar month
- ValuationCalculator: Marks positions to current prices

Design Principles:
- Stateless apart from configuration given at construction
- Pure: no I/O, identical input gives identical output
- Decimal for ALL financial calculations, unrounded until presentation
- Input validation: malformed transactions raise ValidationError

Usage:
    calculator = PositionCalculator(strict=False)
    result = calculator.calculate(transactions)
    for position in result.positions:
        ...
"""

from __future__ import annotations

import logging
import re
import warnings
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from functools import reduce
from typing import Any

from stock_ledger.models import TransactionType
from stock_ledger.services.constants import MONEY_QUANTUM, PERCENT_QUANTUM, STOCK_CODE_LENGTH
from stock_ledger.services.exceptions import ArithmeticAnomaly, ValidationError
from stock_ledger.services.ledger.types import (
    EngineVariant,
    FeeBreakdown,
    FeeSchedule,
    MonthlyStat,
    OversellAnomaly,
    PortfolioSummary,
    Position,
    PositionsResult,
    PositionValuation,
    StockProfit,
    STANDARD_FEE_SCHEDULE,
    UserProfit,
    ZERO_FEE_SCHEDULE,
)
from stock_ledger.services.protocols import TransactionLike

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")

_STOCK_CODE_PATTERN = re.compile(rf"^\d{{{STOCK_CODE_LENGTH}}}$")


def round_money(value: Decimal) -> Decimal:
    """Round half away from zero to 0.01."""
    return value.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def calculate_return_rate(cost: Decimal, value: Decimal) -> Decimal:
    """
    Percentage return of value over cost.

    Returns 0 when cost is not positive.
    """
    if cost <= ZERO:
        return Decimal("0.00")
    return ((value - cost) / cost * HUNDRED).quantize(PERCENT_QUANTUM, rounding=ROUND_HALF_UP)


# =============================================================================
# INPUT NORMALIZATION
# =============================================================================

@dataclass(frozen=True)
class Trade:
    """A validated transaction in the shape the calculators work with."""

    id: str | None
    user_id: str
    stock_code: str
    stock_name: str
    transaction_type: TransactionType
    quantity: int
    price: Decimal
    transaction_date: date

    @property
    def amount(self) -> Decimal:
        return self.price * self.quantity

    @property
    def position_key(self) -> tuple[str, str]:
        return (self.user_id, self.stock_code)

    @property
    def is_buy(self) -> bool:
        return self.transaction_type == TransactionType.BUY


def coerce_transaction_type(value: Any) -> TransactionType:
    if isinstance(value, TransactionType):
        return value
    try:
        return TransactionType(str(value).strip().upper())
    except ValueError:
        raise ValidationError(
            f"Unknown transaction type: '{value}'. Valid types: BUY, SELL",
            field="transaction_type",
        ) from None


def _coerce_decimal(value: Any, field: str) -> Decimal:
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number", field=field)
    else:
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number, got '{value}'", field=field) from None
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number", field=field)
    return result


def _coerce_quantity(value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        quantity = value
    else:
        number = _coerce_decimal(value, "quantity")
        if number != number.to_integral_value():
            raise ValidationError(f"quantity must be a whole number of shares, got {value}", field="quantity")
        quantity = int(number)
    if quantity <= 0:
        raise ValidationError(f"quantity must be greater than 0, got {quantity}", field="quantity")
    return quantity


def _coerce_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            pass
    raise ValidationError(f"Unparsable transaction date: '{value}'", field="transaction_date")


def to_trade(transaction: TransactionLike) -> Trade:
    """
    Validate a transaction record and convert it to a Trade.

    Raises:
        ValidationError: If quantity or price is not positive, the type is
            unknown, the stock code is not six digits or the date is unparsable
    """
    stock_code = str(transaction.stock_code)
    if not _STOCK_CODE_PATTERN.match(stock_code):
        raise ValidationError(
            f"stock_code must be {STOCK_CODE_LENGTH} digits, got '{stock_code}'",
            field="stock_code",
        )

    price = _coerce_decimal(transaction.price, "price")
    if price <= ZERO:
        raise ValidationError(f"price must be greater than 0, got {price}", field="price")

    raw_id = getattr(transaction, "id", None)
    return Trade(
        id=str(raw_id) if raw_id is not None else None,
        user_id=str(transaction.user_id),
        stock_code=stock_code,
        stock_name=getattr(transaction, "stock_name", None) or "",
        transaction_type=coerce_transaction_type(transaction.transaction_type),
        quantity=_coerce_quantity(transaction.quantity),
        price=price,
        transaction_date=_coerce_date(transaction.transaction_date),
    )


def to_trades(transactions: Iterable[TransactionLike]) -> list[Trade]:
    return [to_trade(txn) for txn in transactions]


# =============================================================================
# FEE CALCULATOR
# =============================================================================

class FeeCalculator:
    """
    Calculates trading fees for a single trade.

    Rules:
        commission   = max(amount × 0.03%, 5.00)       both sides
        stamp_duty   = amount × 0.1%                  sells only
        transfer_fee = amount × 0.002%                both sides
        total        = commission + stamp_duty + transfer_fee

    Each component is rounded to 0.01 (half away from zero). The total is
    the rounded sum of the unrounded components.
    """

    def __init__(self, schedule: FeeSchedule = STANDARD_FEE_SCHEDULE) -> None:
        self.schedule = schedule

    @classmethod
    def for_variant(cls, variant: EngineVariant | str = EngineVariant.FEE_AWARE) -> FeeCalculator:
        """
        Build the fee calculator for an engine variant.

        The GROSS variant charges no fees and emits a DeprecationWarning.
        """
        variant = EngineVariant(variant)
        if variant == EngineVariant.GROSS:
            warnings.warn(
                "The 'gross' ledger engine ignores trading fees and is deprecated. "
                "Cost basis and P&L from it exclude commission, stamp duty and "
                "transfer fee; switch to 'fee_aware'.",
                DeprecationWarning,
                stacklevel=3,
            )
            return cls(ZERO_FEE_SCHEDULE)
        return cls(STANDARD_FEE_SCHEDULE)

    def calculate(self, amount: Decimal, transaction_type: TransactionType | str) -> FeeBreakdown:
        """
        Calculate fees for a trade amount (quantity × price).

        Raises:
            ValidationError: If amount is not positive or the type is unknown
        """
        amount = _coerce_decimal(amount, "amount")
        if amount <= ZERO:
            raise ValidationError(f"amount must be greater than 0, got {amount}", field="amount")
        txn_type = coerce_transaction_type(transaction_type)

        schedule = self.schedule
        commission = max(amount * schedule.commission_rate, schedule.min_commission)
        stamp_duty = amount * schedule.stamp_duty_rate if txn_type == TransactionType.SELL else ZERO
        transfer_fee = amount * schedule.transfer_fee_rate

        return FeeBreakdown(
            commission=round_money(commission),
            stamp_duty=round_money(stamp_duty),
            transfer_fee=round_money(transfer_fee),
            total=round_money(commission + stamp_duty + transfer_fee),
        )


# =============================================================================
# POSITION CALCULATOR
# =============================================================================

@dataclass(frozen=True)
class _FoldState:
    """Accumulator threaded through the position fold. Never mutated."""

    positions: dict[tuple[str, str], Position]
    anomalies: tuple[OversellAnomaly, ...] = ()


class PositionCalculator:
    """
    Folds transactions into weighted-average-cost positions.

    Transactions are processed by transaction date; same-day transactions
    keep their input order.

    BUY:
        total_cost     += amount + fees
        total_quantity += quantity
        total_fees     += fees
        average_price   = total_cost / total_quantity

    SELL:
        The remaining shares keep their share of cost and fees:
        both are scaled by (1 - sold / held). Sell-side fees never touch
        the position. A sell that leaves zero or fewer shares removes the
        position. Selling more than held is an oversell: recorded as an
        anomaly, or raised as ArithmeticAnomaly in strict mode.
    """

    def __init__(
            self,
            fee_calculator: FeeCalculator | None = None,
            strict: bool = False,
    ) -> None:
        self.fee_calculator = fee_calculator or FeeCalculator()
        self.strict = strict

    def calculate(self, transactions: Iterable[TransactionLike]) -> PositionsResult:
        """
        Calculate open positions.

        Args:
            transactions: Transactions in insertion order, any users

        Returns:
            PositionsResult with positions ordered by first purchase

        Raises:
            ValidationError: If a transaction is malformed
            ArithmeticAnomaly: On oversell when strict
        """
        trades = sorted(to_trades(transactions), key=lambda trade: trade.transaction_date)
        final = reduce(self.apply, trades, _FoldState(positions={}))

        warning_messages = []
        for anomaly in final.anomalies:
            message = anomaly.describe()
            logger.warning(f"Oversell for user {anomaly.user_id}: {message}")
            warning_messages.append(message)

        return PositionsResult(
            positions=list(final.positions.values()),
            anomalies=list(final.anomalies),
            warnings=warning_messages,
        )

    def apply(self, state: _FoldState, trade: Trade) -> _FoldState:
        """Apply one trade, returning a new fold state."""
        if trade.is_buy:
            return self._apply_buy(state, trade)
        return self._apply_sell(state, trade)

    def _apply_buy(self, state: _FoldState, trade: Trade) -> _FoldState:
        fees = self.fee_calculator.calculate(trade.amount, TransactionType.BUY)
        current = state.positions.get(trade.position_key)

        if current is None:
            total_quantity = trade.quantity
            total_cost = trade.amount + fees.total
            total_fees = fees.total
            stock_name = trade.stock_name
        else:
            total_quantity = current.total_quantity + trade.quantity
            total_cost = current.total_cost + trade.amount + fees.total
            total_fees = current.total_fees + fees.total
            stock_name = trade.stock_name or current.stock_name

        position = Position(
            user_id=trade.user_id,
            stock_code=trade.stock_code,
            stock_name=stock_name,
            total_quantity=total_quantity,
            total_cost=total_cost,
            total_fees=total_fees,
            average_price=total_cost / total_quantity,
        )
        return _FoldState(
            positions={**state.positions, trade.position_key: position},
            anomalies=state.anomalies,
        )

    def _apply_sell(self, state: _FoldState, trade: Trade) -> _FoldState:
        current = state.positions.get(trade.position_key)
        held = current.total_quantity if current is not None else 0
        remaining = held - trade.quantity

        if remaining <= 0:
            positions = {key: pos for key, pos in state.positions.items() if key != trade.position_key}
            anomalies = state.anomalies
            if remaining < 0:
                anomalies = anomalies + (self._oversell(trade, held, current),)
            return _FoldState(positions=positions, anomalies=anomalies)

        keep_ratio = ONE - Decimal(trade.quantity) / Decimal(held)
        total_cost = current.total_cost * keep_ratio
        position = replace(
            current,
            stock_name=trade.stock_name or current.stock_name,
            total_quantity=remaining,
            total_cost=total_cost,
            total_fees=current.total_fees * keep_ratio,
            average_price=total_cost / remaining,
        )
        return _FoldState(
            positions={**state.positions, trade.position_key: position},
            anomalies=state.anomalies,
        )

    def _oversell(self, trade: Trade, held: int, current: Position | None) -> OversellAnomaly:
        if self.strict:
            raise ArithmeticAnomaly(
                user_id=trade.user_id,
                stock_code=trade.stock_code,
                held_quantity=held,
                sell_quantity=trade.quantity,
                transaction_date=trade.transaction_date,
            )
        return OversellAnomaly(
            user_id=trade.user_id,
            stock_code=trade.stock_code,
            stock_name=trade.stock_name or (current.stock_name if current else ""),
            transaction_id=trade.id,
            transaction_date=trade.transaction_date,
            held_quantity=held,
            sell_quantity=trade.quantity,
        )


# =============================================================================
# PROFIT CALCULATOR
# =============================================================================

@dataclass
class _CashFlow:
    """Running totals for one grouping key."""

    name: str = ""
    buy_amount: Decimal = ZERO
    sell_amount: Decimal = ZERO
    buy_quantity: int = 0
    sell_quantity: int = 0
    buy_fees: Decimal = ZERO
    sell_fees: Decimal = ZERO
    count: int = 0

    @property
    def realized_pl(self) -> Decimal:
        return self.sell_amount - self.buy_amount

    @property
    def total_fees(self) -> Decimal:
        return self.buy_fees + self.sell_fees

    @property
    def net_realized_pl(self) -> Decimal:
        return self.realized_pl - self.total_fees


class ProfitCalculator:
    """
    Calculates lifetime cash-flow P&L.

    This is NOT inventory-matched realized profit: it is all money received
    from sells minus all money spent on buys. While a position is open the
    figure mixes realized and unrealized economics.

    Formula (per key):
        realized_pl     = total_sell_amount - total_buy_amount
        total_fees      = total_buy_fees + total_sell_fees
        net_realized_pl = realized_pl - total_fees

    Order of transactions does not matter.
    """

    def __init__(self, fee_calculator: FeeCalculator | None = None) -> None:
        self.fee_calculator = fee_calculator or FeeCalculator()

    def by_user(self, transactions: Iterable[TransactionLike]) -> list[UserProfit]:
        """Profit ledger per user, in order of first appearance."""
        flows = self._accumulate(to_trades(transactions), key=lambda trade: trade.user_id)
        return [
            UserProfit(
                user_id=user_id,
                total_buy_amount=flow.buy_amount,
                total_sell_amount=flow.sell_amount,
                total_buy_fees=flow.buy_fees,
                total_sell_fees=flow.sell_fees,
                total_fees=flow.total_fees,
                realized_pl=flow.realized_pl,
                net_realized_pl=flow.net_realized_pl,
                transaction_count=flow.count,
            )
            for user_id, flow in flows.items()
        ]

    def by_stock(self, transactions: Iterable[TransactionLike]) -> list[StockProfit]:
        """Profit ledger per security across all users, in order of first appearance."""
        flows = self._accumulate(to_trades(transactions), key=lambda trade: trade.stock_code)
        return [
            StockProfit(
                stock_code=stock_code,
                stock_name=flow.name,
                total_buy_amount=flow.buy_amount,
                total_sell_amount=flow.sell_amount,
                total_buy_quantity=flow.buy_quantity,
                total_sell_quantity=flow.sell_quantity,
                average_buy_price=_safe_average(flow.buy_amount, flow.buy_quantity),
                average_sell_price=_safe_average(flow.sell_amount, flow.sell_quantity),
                total_buy_fees=flow.buy_fees,
                total_sell_fees=flow.sell_fees,
                total_fees=flow.total_fees,
                realized_pl=flow.realized_pl,
                net_realized_pl=flow.net_realized_pl,
                transaction_count=flow.count,
            )
            for stock_code, flow in flows.items()
        ]

    def _accumulate(
            self,
            trades: list[Trade],
            key: Callable[[Trade], str],
    ) -> dict[str, _CashFlow]:
        flows: dict[str, _CashFlow] = {}
        for trade in trades:
            flow = flows.setdefault(key(trade), _CashFlow())
            fees = self.fee_calculator.calculate(trade.amount, trade.transaction_type)

            if trade.is_buy:
                flow.buy_amount += trade.amount
                flow.buy_quantity += trade.quantity
                flow.buy_fees += fees.total
            else:
                flow.sell_amount += trade.amount
                flow.sell_quantity += trade.quantity
                flow.sell_fees += fees.total

            flow.count += 1
            if trade.stock_name:
                flow.name = trade.stock_name
        return flows


def _safe_average(amount: Decimal, quantity: int) -> Decimal:
    if quantity == 0:
        return ZERO
    return amount / quantity


# =============================================================================
# MONTHLY STATS CALCULATOR
# =============================================================================

class MonthlyStatsCalculator:
    """
    Buckets transactions by calendar month of the transaction date.

    Returns:
        MonthlyStat per "YYYY-MM", most recent month first
    """

    def calculate(self, transactions: Iterable[TransactionLike]) -> list[MonthlyStat]:
        buckets: dict[str, dict[str, Any]] = {}

        for trade in to_trades(transactions):
            month = f"{trade.transaction_date.year:04d}-{trade.transaction_date.month:02d}"
            bucket = buckets.setdefault(month, {
                "buy_amount": ZERO,
                "sell_amount": ZERO,
                "buy_count": 0,
                "sell_count": 0,
            })
            if trade.is_buy:
                bucket["buy_amount"] += trade.amount
                bucket["buy_count"] += 1
            else:
                bucket["sell_amount"] += trade.amount
                bucket["sell_count"] += 1

        return [
            MonthlyStat(month=month, **buckets[month])
            for month in sorted(buckets, reverse=True)
        ]


# =============================================================================
# VALUATION CALCULATOR
# =============================================================================

class ValuationCalculator:
    """
    Marks positions to current prices.

    Formula:
        market_value          = current_price × total_quantity
        unrealized_pl         = market_value - total_cost
        unrealized_pl_percent = unrealized_pl / total_cost × 100

    Note:
        A missing or non-positive price is treated as unknown: market_value
        falls back to total_cost and the unrealized figures are None.
    """

    def calculate(
            self,
            position: Position,
            current_price: Decimal | None,
            price_source: str | None = None,
    ) -> PositionValuation:
        if current_price is None or current_price <= ZERO:
            return PositionValuation(
                position=position,
                current_price=None,
                market_value=position.total_cost,
                unrealized_pl=None,
                unrealized_pl_percent=None,
                price_source=None,
            )

        market_value = current_price * position.total_quantity
        unrealized_pl = market_value - position.total_cost
        return PositionValuation(
            position=position,
            current_price=current_price,
            market_value=market_value,
            unrealized_pl=unrealized_pl,
            unrealized_pl_percent=calculate_return_rate(position.total_cost, market_value),
            price_source=price_source,
        )

    def summarize(self, valuations: Iterable[PositionValuation]) -> PortfolioSummary:
        valuations = list(valuations)
        total_cost = sum((v.position.total_cost for v in valuations), ZERO)
        total_market_value = sum((v.market_value for v in valuations), ZERO)
        total_unrealized = sum(
            (v.unrealized_pl for v in valuations if v.unrealized_pl is not None),
            ZERO,
        )
        return PortfolioSummary(
            position_count=len(valuations),
            priced_positions=sum(1 for v in valuations if v.is_priced),
            total_cost=total_cost,
            total_market_value=total_market_value,
            total_unrealized_pl=total_unrealized,
            return_rate=calculate_return_rate(total_cost, total_market_value),
        )
