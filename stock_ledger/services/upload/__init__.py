# stock_ledger/services/upload/__init__.py
"""
Broker export import package.

Usage:
    from stock_ledger.services.upload import ImportService

    service = ImportService(transaction_store, user_store)
    result = service.import_file(file, "trades.csv", user_id=user.id, broker="auto")

Architecture:
    upload/
    ├── __init__.py          # This file - main exports
    ├── service.py           # ImportService (orchestration, duplicates, reports)
    ├── templates.py         # Broker column layouts and header detection
    └── parsers/
        ├── base.py          # Abstract parser + row/result types
        └── csv_parser.py    # CSV implementation
"""

from stock_ledger.services.upload.parsers import (
    get_parser,
    get_supported_extensions,
    TransactionFileParser,
    CSVTransactionParser,
    ParsedTransactionRow,
    ParseError,
    ParseResult,
    UnsupportedFileTypeError,
)
from stock_ledger.services.upload.service import (
    BrokerInfo,
    ImportResult,
    ImportService,
)
from stock_ledger.services.upload.templates import (
    ALL_TEMPLATES,
    AUTO_DETECT,
    BROKER_TEMPLATES,
    BrokerTemplate,
    TemplateDetection,
    detect_template,
    get_template,
)

__all__ = [
    "ImportService",
    "ImportResult",
    "BrokerInfo",
    "BrokerTemplate",
    "TemplateDetection",
    "ALL_TEMPLATES",
    "BROKER_TEMPLATES",
    "AUTO_DETECT",
    "detect_template",
    "get_template",
    "get_parser",
    "get_supported_extensions",
    "TransactionFileParser",
    "CSVTransactionParser",
    "ParsedTransactionRow",
    "ParseError",
    "ParseResult",
    "UnsupportedFileTypeError",
]
