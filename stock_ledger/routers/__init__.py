# stock_ledger/routers/__init__.py
"""
API routers for the Stock Ledger.

Each router handles a specific domain:
- users: People whose trades are recorded
- transactions: Buy/sell records
- ledger: Fees, positions, valuations, P&L and monthly stats
- upload: Broker CSV import
- export: CSV reports and JSON backup/restore
- quotes: Current prices
"""

from stock_ledger.routers.export import router as export_router
from stock_ledger.routers.ledger import router as ledger_router
from stock_ledger.routers.quotes import router as quotes_router
from stock_ledger.routers.transactions import router as transactions_router
from stock_ledger.routers.upload import router as upload_router
from stock_ledger.routers.users import router as users_router

__all__ = [
    "users_router",
    "transactions_router",
    "ledger_router",
    "upload_router",
    "export_router",
    "quotes_router",
]
