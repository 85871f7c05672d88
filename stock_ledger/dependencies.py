# stock_ledger/dependencies.py
"""
Dependency injection for FastAPI routers.

The quote service is a process-wide singleton so every request shares one
provider and therefore one circuit breaker. Stores and the services built on
them are created per request from the request's database session.

Usage in routers:
    from stock_ledger.dependencies import get_ledger_service

    @router.get("/positions")
    def list_positions(service: LedgerService = Depends(get_ledger_service)):
        ...
"""

import logging
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from stock_ledger.database import get_db
from stock_ledger.services.export import ExportService
from stock_ledger.services.ledger import LedgerService
from stock_ledger.services.market_data import QuoteService
from stock_ledger.services.store import SqlAlchemyTransactionStore, SqlAlchemyUserStore
from stock_ledger.services.upload import ImportService

logger = logging.getLogger(__name__)


# =============================================================================
# SINGLETONS
# =============================================================================

@lru_cache(maxsize=1)
def get_quote_service() -> QuoteService:
    """Shared QuoteService; the provider and its circuit breaker live for the process."""
    logger.debug("Initializing singleton QuoteService")
    return QuoteService()


# =============================================================================
# PER-REQUEST STORES AND SERVICES
# =============================================================================

def get_transaction_store(db: Session = Depends(get_db)) -> SqlAlchemyTransactionStore:
    return SqlAlchemyTransactionStore(db)


def get_user_store(db: Session = Depends(get_db)) -> SqlAlchemyUserStore:
    return SqlAlchemyUserStore(db)


def get_ledger_service(
        transactions: SqlAlchemyTransactionStore = Depends(get_transaction_store),
        quotes: QuoteService = Depends(get_quote_service),
) -> LedgerService:
    return LedgerService(transactions, quote_service=quotes)


def get_import_service(
        transactions: SqlAlchemyTransactionStore = Depends(get_transaction_store),
        users: SqlAlchemyUserStore = Depends(get_user_store),
) -> ImportService:
    return ImportService(transactions, users)


def get_export_service(
        ledger: LedgerService = Depends(get_ledger_service),
        transactions: SqlAlchemyTransactionStore = Depends(get_transaction_store),
        users: SqlAlchemyUserStore = Depends(get_user_store),
) -> ExportService:
    return ExportService(ledger, transactions, users)
