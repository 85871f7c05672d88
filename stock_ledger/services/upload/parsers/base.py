# stock_ledger/services/upload/parsers/base.py
"""
Abstract interface for transaction file parsers.

A parser turns an uploaded file into ParsedTransactionRow objects using a
broker template. Parsers collect per-row problems in ParseResult.errors and
only raise for file-level problems, so a bad row never aborts an import.
"""

import dataclasses
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, BinaryIO

from stock_ledger.models import TransactionType
from stock_ledger.services.upload.templates import BrokerTemplate, TemplateDetection


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class ParsedTransactionRow:
    """
    A row that passed conversion and validation.

    Attributes:
        row_number: 1-based row number in the source file (header is row 1)
        transaction_date: Trade date
        stock_code: Six-digit code
        stock_name: Security name, may be empty
        transaction_type: BUY or SELL
        quantity: Positive share count
        price: Price per share, rounded to 2 places
        raw_data: Original row for error reports
    """

    row_number: int
    transaction_date: date
    stock_code: str
    stock_name: str
    transaction_type: TransactionType
    quantity: int
    price: Decimal
    notes: str | None = None
    raw_data: dict[str, Any] = field(default_factory=dict)

    @property
    def duplicate_key(self) -> tuple:
        return (self.transaction_date, self.stock_code, self.price, self.quantity, self.transaction_type)


@dataclass
class ParseError:
    """
    A row (or file) that could not be converted.

    Attributes:
        row_number: 1-based row number, 0 for file-level problems
        error_type: Category ("invalid_row", "missing_columns", ...)
        message: Human-readable description, may list several problems
        field: Offending field when a single one is to blame
        raw_data: Original row for context
    """

    row_number: int
    error_type: str
    message: str
    field: str | None = None
    raw_data: dict[str, Any] = dataclasses.field(default_factory=dict)

    def display(self) -> str:
        if self.row_number == 0:
            return self.message
        return f"Row {self.row_number}: {self.message}"


@dataclass
class ParseResult:
    """
    Result of parsing one file.

    Attributes:
        rows: Converted rows
        errors: Rows that failed, plus file-level errors
        total_rows: Data rows seen (header excluded)
        detection: Template used and how well it matched
    """

    rows: list[ParsedTransactionRow] = field(default_factory=list)
    errors: list[ParseError] = field(default_factory=list)
    total_rows: int = 0
    detection: TemplateDetection | None = None

    @property
    def success_count(self) -> int:
        return len(self.rows)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def has_data(self) -> bool:
        return self.success_count > 0


# =============================================================================
# ABSTRACT BASE CLASS
# =============================================================================

class TransactionFileParser(ABC):
    """
    Base class for file-format parsers.

    Example:
        parser = CSVTransactionParser()
        result = parser.parse(file, "trades.csv")

        for error in result.errors:
            print(error.display())
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Parser name used in logs ("CSV")."""

    @property
    @abstractmethod
    def supported_extensions(self) -> set[str]:
        """Lowercase extensions with the leading dot."""

    @property
    @abstractmethod
    def supported_content_types(self) -> set[str]:
        """MIME types accepted when the extension is not conclusive."""

    @abstractmethod
    def parse(
            self,
            file: BinaryIO,
            filename: str,
            template: BrokerTemplate | None = None,
    ) -> ParseResult:
        """
        Parse file contents into transaction rows.

        Args:
            file: Binary file object
            filename: Original filename, for messages
            template: Broker template to apply; detected from headers when None

        Returns:
            ParseResult with rows, row errors and the template detection
        """

    def supports_file(self, filename: str, content_type: str | None = None) -> bool:
        extension = Path(filename).suffix.lower()
        if extension in self.supported_extensions:
            return True
        return bool(content_type) and content_type.split(";")[0].strip().lower() in self.supported_content_types
