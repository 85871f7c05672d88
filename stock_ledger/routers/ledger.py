# stock_ledger/routers/ledger.py
"""
Ledger calculation endpoints.

All figures are computed on request from the stored transactions; nothing
derived is persisted. Every endpoint accepts an optional user_id to restrict
the calculation to one user's trades.

Endpoints:
- POST /ledger/fees              Fee breakdown for a hypothetical trade
- GET  /ledger/positions         Open positions and oversell findings
- GET  /ledger/summary           Positions valued at current quotes
- GET  /ledger/profits/users     Realized P&L per user
- GET  /ledger/profits/stocks    Realized P&L per security
- GET  /ledger/monthly           Buy/sell activity per month, newest first
- GET  /ledger/analytics         Concentration, diversification, activity and advice
"""

import logging
from datetime import date

from fastapi import APIRouter, Depends, Query

from stock_ledger.dependencies import get_ledger_service, get_user_store
from stock_ledger.schemas.ledger import (
    AnalyticsResponse,
    FeeBreakdownResponse,
    FeeRequest,
    LedgerSummaryResponse,
    MonthlyStatResponse,
    OversellAnomalyResponse,
    PortfolioSummaryResponse,
    PositionResponse,
    PositionsResponse,
    PositionValuationResponse,
    StockProfitResponse,
    UserProfitResponse,
)
from stock_ledger.services.ledger import LedgerService
from stock_ledger.services.store import SqlAlchemyUserStore

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/ledger",
    tags=["Ledger"],
)

_USER_QUERY = Query(default=None, description="Restrict to one user's transactions")


def _check_user(user_id: str | None, users: SqlAlchemyUserStore) -> None:
    if user_id is not None:
        users.get(user_id)


@router.post("/fees", response_model=FeeBreakdownResponse, summary="Calculate trade fees")
def calculate_fees(
        payload: FeeRequest,
        service: LedgerService = Depends(get_ledger_service),
) -> FeeBreakdownResponse:
    """
    Commission (0.03%, minimum 5.00), stamp duty (0.1%, sells only) and
    transfer fee (0.002%) for a trade of the given amount.
    """
    fees = service.calculate_fees(payload.amount, payload.transaction_type)
    return FeeBreakdownResponse.model_validate(fees)


@router.get(
    "/positions",
    response_model=PositionsResponse,
    summary="Open positions",
    responses={404: {"description": "User not found"}, 409: {"description": "Oversell in strict mode"}},
)
def get_positions(
        user_id: str | None = _USER_QUERY,
        service: LedgerService = Depends(get_ledger_service),
        users: SqlAlchemyUserStore = Depends(get_user_store),
) -> PositionsResponse:
    _check_user(user_id, users)
    result = service.get_positions(user_id)
    return PositionsResponse(
        positions=[PositionResponse.model_validate(p) for p in result.positions],
        anomalies=[OversellAnomalyResponse.model_validate(a) for a in result.anomalies],
        warnings=result.warnings,
    )


@router.get(
    "/summary",
    response_model=LedgerSummaryResponse,
    summary="Positions at market value",
    responses={404: {"description": "User not found"}},
)
def get_summary(
        user_id: str | None = _USER_QUERY,
        with_quotes: bool = Query(default=True, description="Fetch current prices; False values at cost"),
        service: LedgerService = Depends(get_ledger_service),
        users: SqlAlchemyUserStore = Depends(get_user_store),
) -> LedgerSummaryResponse:
    """
    Market value, unrealized P&L and return rate. A position whose quote is
    unavailable is valued at cost and listed in warnings.
    """
    _check_user(user_id, users)
    valuation = service.get_valuation(user_id, with_quotes=with_quotes)
    return LedgerSummaryResponse(
        summary=PortfolioSummaryResponse.model_validate(valuation.summary),
        positions=[PositionValuationResponse.from_valuation(v) for v in valuation.positions],
        warnings=valuation.warnings,
    )


@router.get(
    "/profits/users",
    response_model=list[UserProfitResponse],
    summary="Realized P&L per user",
)
def get_user_profits(
        user_id: str | None = _USER_QUERY,
        service: LedgerService = Depends(get_ledger_service),
        users: SqlAlchemyUserStore = Depends(get_user_store),
) -> list[UserProfitResponse]:
    _check_user(user_id, users)
    return [UserProfitResponse.model_validate(p) for p in service.get_user_profits(user_id)]


@router.get(
    "/profits/stocks",
    response_model=list[StockProfitResponse],
    summary="Realized P&L per security",
)
def get_stock_profits(
        user_id: str | None = _USER_QUERY,
        service: LedgerService = Depends(get_ledger_service),
        users: SqlAlchemyUserStore = Depends(get_user_store),
) -> list[StockProfitResponse]:
    _check_user(user_id, users)
    return [StockProfitResponse.model_validate(p) for p in service.get_stock_profits(user_id)]


@router.get(
    "/monthly",
    response_model=list[MonthlyStatResponse],
    summary="Monthly activity",
)
def get_monthly_stats(
        user_id: str | None = _USER_QUERY,
        service: LedgerService = Depends(get_ledger_service),
        users: SqlAlchemyUserStore = Depends(get_user_store),
) -> list[MonthlyStatResponse]:
    _check_user(user_id, users)
    return [MonthlyStatResponse.model_validate(m) for m in service.get_monthly_stats(user_id)]


@router.get(
    "/analytics",
    response_model=AnalyticsResponse,
    summary="Portfolio analytics",
    responses={404: {"description": "User not found"}},
)
def get_analytics(
        user_id: str | None = _USER_QUERY,
        with_quotes: bool = Query(default=True, description="Weight holdings by market value; False weights by cost"),
        as_of: date | None = Query(default=None, description="Reference date for holding periods; defaults to today"),
        service: LedgerService = Depends(get_ledger_service),
        users: SqlAlchemyUserStore = Depends(get_user_store),
) -> AnalyticsResponse:
    """
    Holding concentration, diversification score, weight dispersion, average
    holding period, trading activity and the advice derived from them.
    """
    _check_user(user_id, users)
    analytics = service.get_analytics(user_id, with_quotes=with_quotes, as_of=as_of)
    return AnalyticsResponse.model_validate(analytics)
