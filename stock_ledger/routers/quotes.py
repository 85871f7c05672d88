# stock_ledger/routers/quotes.py
"""
Current quote endpoints.

Quotes come from the configured provider (Yahoo Finance with an offline
fallback by default) and are never stored.
"""

import logging

from fastapi import APIRouter, Depends, Query

from stock_ledger.dependencies import get_quote_service
from stock_ledger.schemas.quotes import QuoteBatchResponse, QuoteResponse
from stock_ledger.services.exceptions import ValidationError
from stock_ledger.services.market_data import QuoteService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/quotes",
    tags=["Quotes"],
)

MAX_BATCH_CODES = 50


@router.get(
    "",
    response_model=QuoteBatchResponse,
    summary="Quotes for several codes",
)
def get_quotes(
        codes: str = Query(..., description="Comma-separated six-digit codes", examples=["600519,000001"]),
        quotes: QuoteService = Depends(get_quote_service),
) -> QuoteBatchResponse:
    """
    One failing code never fails the request; it is listed in failed with
    the reason.
    """
    requested = [code.strip() for code in codes.split(",") if code.strip()]
    if not requested:
        raise ValidationError("At least one stock code is required", field="codes")
    if len(requested) > MAX_BATCH_CODES:
        raise ValidationError(f"At most {MAX_BATCH_CODES} codes per request", field="codes")

    batch = quotes.get_quote_batch(requested)
    return QuoteBatchResponse(
        quotes=[QuoteResponse.model_validate(quote) for quote in batch.quotes.values()],
        failed={code: str(error) for code, error in batch.failed.items()},
    )


@router.get(
    "/{stock_code}",
    response_model=QuoteResponse,
    summary="Quote for one code",
    responses={
        400: {"description": "Invalid stock code"},
        404: {"description": "Unknown stock code"},
        502: {"description": "Quote provider unavailable"},
    },
)
def get_quote(
        stock_code: str,
        quotes: QuoteService = Depends(get_quote_service),
) -> QuoteResponse:
    return QuoteResponse.model_validate(quotes.get_quote(stock_code))
