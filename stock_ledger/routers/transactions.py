# stock_ledger/routers/transactions.py
"""
Transaction management endpoints.

Key concepts:
- Each transaction belongs to ONE user
- The owner cannot be changed after creation
- A sell larger than the holding is accepted here; the ledger engine reports
  it as an oversell when positions are computed
"""

import logging
from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from pydantic import AfterValidator

from stock_ledger.dependencies import get_transaction_store, get_user_store
from stock_ledger.models import TransactionType
from stock_ledger.schemas.pagination import PaginationMeta
from stock_ledger.schemas.transactions import (
    TransactionCreate,
    TransactionListResponse,
    TransactionResponse,
    TransactionUpdate,
)
from stock_ledger.schemas.validators import validate_date_range, validate_stock_code_query
from stock_ledger.services.exceptions import ValidationError
from stock_ledger.services.store import SqlAlchemyTransactionStore, SqlAlchemyUserStore

logger = logging.getLogger(__name__)

StockCodeQuery = Annotated[str | None, AfterValidator(validate_stock_code_query)]

router = APIRouter(
    prefix="/transactions",
    tags=["Transactions"],
)


@router.post(
    "",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a trade",
    responses={404: {"description": "User not found"}},
)
def create_transaction(
        payload: TransactionCreate,
        transactions: SqlAlchemyTransactionStore = Depends(get_transaction_store),
        users: SqlAlchemyUserStore = Depends(get_user_store),
) -> TransactionResponse:
    users.get(payload.user_id)
    return TransactionResponse.from_record(transactions.add(payload.model_dump()))


@router.get(
    "",
    response_model=TransactionListResponse,
    summary="List transactions",
)
def list_transactions(
        user_id: str | None = Query(default=None, description="Only this user's trades"),
        stock_code: StockCodeQuery = Query(default=None, description="Six-digit code"),
        transaction_type: TransactionType | None = Query(default=None),
        start_date: date | None = Query(default=None, description="Inclusive"),
        end_date: date | None = Query(default=None, description="Inclusive"),
        skip: int = Query(default=0, ge=0),
        limit: int = Query(default=100, ge=1, le=1000),
        transactions: SqlAlchemyTransactionStore = Depends(get_transaction_store),
) -> TransactionListResponse:
    """
    Transactions matching the filters, newest trade date first.
    """
    try:
        validate_date_range(start_date, end_date)
    except ValueError as e:
        raise ValidationError(str(e), field="start_date") from e

    records = transactions.list(
        user_id=user_id,
        stock_code=stock_code,
        transaction_type=transaction_type,
        start_date=start_date,
        end_date=end_date,
    )
    records = sorted(records, key=lambda txn: txn.transaction_date, reverse=True)

    return TransactionListResponse(
        items=[TransactionResponse.from_record(txn) for txn in records[skip:skip + limit]],
        pagination=PaginationMeta(total=len(records), skip=skip, limit=limit),
    )


@router.get(
    "/{transaction_id}",
    response_model=TransactionResponse,
    summary="Get a transaction",
    responses={404: {"description": "Transaction not found"}},
)
def get_transaction(
        transaction_id: str,
        transactions: SqlAlchemyTransactionStore = Depends(get_transaction_store),
) -> TransactionResponse:
    return TransactionResponse.from_record(transactions.get(transaction_id))


@router.patch(
    "/{transaction_id}",
    response_model=TransactionResponse,
    summary="Correct a transaction",
    responses={404: {"description": "Transaction not found"}},
)
def update_transaction(
        transaction_id: str,
        payload: TransactionUpdate,
        transactions: SqlAlchemyTransactionStore = Depends(get_transaction_store),
) -> TransactionResponse:
    # notes is the only field that may be cleared
    patch = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key == "notes"
    }
    updated = transactions.update(transaction_id, patch)
    logger.info(f"Updated transaction {transaction_id}: {', '.join(sorted(patch)) or 'no changes'}")
    return TransactionResponse.from_record(updated)


@router.delete(
    "/{transaction_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a transaction",
    responses={404: {"description": "Transaction not found"}},
)
def delete_transaction(
        transaction_id: str,
        transactions: SqlAlchemyTransactionStore = Depends(get_transaction_store),
) -> None:
    transactions.delete(transaction_id)
