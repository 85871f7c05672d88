# stock_ledger/services/upload/parsers/__init__.py
"""
Transaction file parsers package.

Usage:
    from stock_ledger.services.upload.parsers import get_parser

    parser = get_parser("trades.csv", "text/csv")

    with open("trades.csv", "rb") as f:
        result = parser.parse(f, "trades.csv")
"""

import logging
from pathlib import Path

from stock_ledger.services.exceptions import UnsupportedFileTypeError
from stock_ledger.services.upload.parsers.base import (
    TransactionFileParser,
    ParsedTransactionRow,
    ParseError,
    ParseResult,
)
from stock_ledger.services.upload.parsers.csv_parser import CSVTransactionParser

logger = logging.getLogger(__name__)

# =============================================================================
# PARSER REGISTRY
# =============================================================================

_PARSERS: list[TransactionFileParser] = [
    CSVTransactionParser(),
]


def get_parser(
        filename: str,
        content_type: str | None = None
) -> TransactionFileParser:
    """
    Get the parser for a file, by extension first and then content type.

    Raises:
        UnsupportedFileTypeError: If no parser supports this file type
    """
    logger.debug(
        f"Finding parser for: {filename} "
        f"(extension={Path(filename).suffix.lower()}, content_type={content_type})"
    )

    for parser in _PARSERS:
        if parser.supports_file(filename, content_type):
            logger.debug(f"Selected parser: {parser.name}")
            return parser

    raise UnsupportedFileTypeError(filename, supported=get_supported_extensions())


def get_supported_extensions() -> list[str]:
    extensions = set()
    for parser in _PARSERS:
        extensions.update(parser.supported_extensions)
    return sorted(extensions)


__all__ = [
    "get_parser",
    "get_supported_extensions",
    "TransactionFileParser",
    "ParsedTransactionRow",
    "ParseError",
    "ParseResult",
    "CSVTransactionParser",
    "UnsupportedFileTypeError",
]
