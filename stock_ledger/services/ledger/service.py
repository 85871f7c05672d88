# stock_ledger/services/ledger/service.py
"""
Ledger Service - orchestrates the calculators over stored transactions.

- get_positions(): Open positions with oversell findings
- get_valuation(): Positions marked to current quotes, with a summary
- get_user_profits() / get_stock_profits(): Cash-flow P&L ledgers
- get_monthly_stats(): Activity per calendar month
- get_analytics(): Concentration, diversification, holding period and advice
- calculate_fees(): Fee breakdown for a hypothetical trade

Design Principles:
- Dependency Injection: transaction store and quote service via constructor
- No HTTP Knowledge: raises domain exceptions, not HTTPException
- Quote failures never fail a calculation; prices degrade to unknown
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from stock_ledger.config import settings
from stock_ledger.models import TransactionType
from stock_ledger.services.ledger.analytics import AnalyticsCalculator, PortfolioAnalytics
from stock_ledger.services.ledger.calculators import (
    FeeCalculator,
    MonthlyStatsCalculator,
    PositionCalculator,
    ProfitCalculator,
    ValuationCalculator,
)
from stock_ledger.services.ledger.types import (
    EngineVariant,
    FeeBreakdown,
    LedgerValuation,
    MonthlyStat,
    PortfolioSummary,
    PositionValuation,
    PositionsResult,
    StockProfit,
    UserProfit,
)

if TYPE_CHECKING:
    from stock_ledger.services.market_data.service import QuoteService
    from stock_ledger.services.protocols import TransactionStoreProtocol

logger = logging.getLogger(__name__)


class LedgerService:
    """
    Main service for ledger calculations.

    Attributes:
        variant: Engine variant used for fees
        strict: Raise ArithmeticAnomaly on oversell instead of reporting it
    """

    def __init__(
            self,
            transaction_store: TransactionStoreProtocol,
            quote_service: QuoteService | None = None,
            variant: EngineVariant | str | None = None,
            strict: bool | None = None,
    ) -> None:
        self._store = transaction_store
        self._quote_service = quote_service
        self.variant = EngineVariant(variant or settings.ledger_engine_variant)
        self.strict = settings.ledger_strict_oversell if strict is None else strict

        fee_calc = FeeCalculator.for_variant(self.variant)
        self._fee_calc = fee_calc
        self._position_calc = PositionCalculator(fee_calculator=fee_calc, strict=self.strict)
        self._profit_calc = ProfitCalculator(fee_calculator=fee_calc)
        self._monthly_calc = MonthlyStatsCalculator()
        self._valuation_calc = ValuationCalculator()
        self._analytics_calc = AnalyticsCalculator()

        logger.debug(f"LedgerService initialized: variant={self.variant.value}, strict={self.strict}")

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def calculate_fees(self, amount: Decimal, transaction_type: TransactionType | str) -> FeeBreakdown:
        return self._fee_calc.calculate(amount, transaction_type)

    def get_positions(self, user_id: str | None = None) -> PositionsResult:
        transactions = self._store.list(user_id=user_id)
        result = self._position_calc.calculate(transactions)
        logger.info(
            f"Computed {len(result.positions)} positions from {len(transactions)} transactions"
            + (f" for user {user_id}" if user_id else "")
        )
        return result

    def get_valuation(self, user_id: str | None = None, with_quotes: bool = True) -> LedgerValuation:
        """
        Value open positions at current prices.

        Args:
            user_id: Restrict to one user, or None for everyone
            with_quotes: Fetch quotes; when False every position is valued at cost

        Returns:
            LedgerValuation with per-position values and a summary
        """
        positions_result = self.get_positions(user_id)
        positions = positions_result.positions
        warnings = list(positions_result.warnings)

        quotes = {}
        if with_quotes and positions and self._quote_service is not None:
            codes = sorted({position.stock_code for position in positions})
            quotes = self._quote_service.get_quotes(codes)

        valuations = []
        for position in positions:
            quote = quotes.get(position.stock_code)
            if with_quotes and quote is None:
                warnings.append(f"No current price for {position.stock_code}; valued at cost")
            valuations.append(self._valuation_calc.calculate(
                position,
                current_price=quote.price if quote else None,
                price_source=quote.source if quote else None,
            ))

        return LedgerValuation(
            positions=valuations,
            summary=self._valuation_calc.summarize(valuations),
            warnings=warnings,
        )

    def get_position_valuations(self, user_id: str | None = None, with_quotes: bool = True) -> list[PositionValuation]:
        return self.get_valuation(user_id, with_quotes).positions

    def get_portfolio_summary(self, user_id: str | None = None, with_quotes: bool = True) -> PortfolioSummary:
        return self.get_valuation(user_id, with_quotes).summary

    def get_user_profits(self, user_id: str | None = None) -> list[UserProfit]:
        return self._profit_calc.by_user(self._store.list(user_id=user_id))

    def get_stock_profits(self, user_id: str | None = None) -> list[StockProfit]:
        return self._profit_calc.by_stock(self._store.list(user_id=user_id))

    def get_monthly_stats(self, user_id: str | None = None) -> list[MonthlyStat]:
        return self._monthly_calc.calculate(self._store.list(user_id=user_id))

    def get_analytics(
            self,
            user_id: str | None = None,
            with_quotes: bool = True,
            as_of: date | None = None,
    ) -> PortfolioAnalytics:
        """
        Dashboard analytics for the current holdings and trade history.

        Args:
            user_id: Restrict to one user, or None for everyone
            with_quotes: Weight holdings by market value; when False by cost
            as_of: Reference date for holding periods and activity windows
        """
        valuation = self.get_valuation(user_id, with_quotes)
        transactions = self._store.list(user_id=user_id)
        return self._analytics_calc.calculate(valuation, transactions, as_of or date.today())
