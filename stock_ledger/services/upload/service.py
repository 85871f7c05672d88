# stock_ledger/services/upload/service.py
"""
Import service for broker trade exports.

Flow:
1. Check the owning user exists
2. Parse the file with the matching parser and broker template
3. Skip rows already in the ledger (same date, code, price, quantity, type)
4. Save the remaining rows in one batch

Rows that fail conversion are reported and skipped; they do not block the
valid rows. A dry run stops after step 3.

Usage:
    from stock_ledger.services.upload import ImportService

    service = ImportService(transaction_store, user_store)

    with open("huatai.csv", "rb") as f:
        result = service.import_file(f, "huatai.csv", user_id=user.id)

    print(result.broker_name, result.saved_count, result.duplicate_count)
    for error in result.errors:
        print(error.display())
"""

import csv
import io
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import BinaryIO

from stock_ledger.services.constants import MAX_UPLOAD_BYTES
from stock_ledger.services.exceptions import ValidationError
from stock_ledger.services.ledger.calculators import coerce_transaction_type
from stock_ledger.services.protocols import TransactionStoreProtocol, UserStoreProtocol
from stock_ledger.services.upload.parsers import get_parser, ParseError, ParsedTransactionRow
from stock_ledger.services.upload.templates import (
    ALL_TEMPLATES,
    AUTO_DETECT,
    BrokerTemplate,
    get_template,
)

logger = logging.getLogger(__name__)

IMPORT_NOTE = "Imported"


# =============================================================================
# RESULT DATA CLASSES
# =============================================================================

@dataclass
class ImportResult:
    """
    Outcome of importing one file.

    Attributes:
        success: True when at least one row was valid and no file-level error occurred
        filename: Original filename
        broker: Template key used ("huatai", "generic", ...)
        broker_name: Template display name
        confidence: Header match ratio of the template (0 for the generic fallback)
        total_rows: Data rows in the file
        valid_count: Rows that converted cleanly
        saved_count: Rows written to the ledger
        duplicate_count: Valid rows skipped as already recorded
        errors: Row and file errors
        dry_run: True if nothing was written
        created_transaction_ids: IDs of the saved transactions
    """

    success: bool = False
    filename: str = ""
    broker: str = ""
    broker_name: str = ""
    confidence: Decimal = Decimal("0")
    total_rows: int = 0
    valid_count: int = 0
    saved_count: int = 0
    duplicate_count: int = 0
    errors: list[ParseError] = field(default_factory=list)
    dry_run: bool = False
    created_transaction_ids: list[str] = field(default_factory=list)

    @property
    def invalid_count(self) -> int:
        return sum(1 for error in self.errors if error.row_number > 0)

    @property
    def confidence_percent(self) -> int:
        return int((self.confidence * 100).to_integral_value())

    @property
    def error_messages(self) -> list[str]:
        return [error.display() for error in self.errors]


@dataclass(frozen=True)
class BrokerInfo:
    key: str
    display_name: str
    date_format: str
    columns: tuple[str, ...]


# =============================================================================
# IMPORT SERVICE
# =============================================================================

class ImportService:
    """
    Imports broker CSV exports into the transaction store.

    Attributes:
        transactions: Transaction store receiving the rows
        users: User store, used to reject imports for unknown users
    """

    def __init__(
            self,
            transaction_store: TransactionStoreProtocol,
            user_store: UserStoreProtocol | None = None,
    ) -> None:
        self.transactions = transaction_store
        self.users = user_store

    def import_file(
            self,
            file: BinaryIO,
            filename: str,
            user_id: str,
            broker: str = AUTO_DETECT,
            content_type: str | None = None,
            dry_run: bool = False,
    ) -> ImportResult:
        """
        Import a broker export for one user.

        Args:
            file: Binary file object
            filename: Original filename, used to pick the parser
            user_id: Owner of the imported transactions
            broker: Template key or display name, or "auto" to detect from headers
            content_type: MIME type from the upload, if any
            dry_run: Parse and check duplicates without saving

        Returns:
            ImportResult with counts, the template used and row errors

        Raises:
            UserNotFoundError: If the user does not exist
            UnsupportedFileTypeError: If no parser handles the file
            UnsupportedBrokerError: If broker names no template
            ValidationError: If the file is too large
        """
        logger.info(f"Importing {filename} for user {user_id} (broker={broker}, dry_run={dry_run})")

        if self.users is not None:
            self.users.get(user_id)

        template = None if broker == AUTO_DETECT else get_template(broker)
        parser = get_parser(filename, content_type)

        content = file.read(MAX_UPLOAD_BYTES + 1)
        if len(content) > MAX_UPLOAD_BYTES:
            raise ValidationError(
                f"File exceeds the maximum upload size of {MAX_UPLOAD_BYTES // (1024 * 1024)} MB",
                field="file",
            )

        parsed = parser.parse(io.BytesIO(content), filename, template)

        result = ImportResult(
            filename=filename,
            total_rows=parsed.total_rows,
            valid_count=parsed.success_count,
            errors=list(parsed.errors),
            dry_run=dry_run,
        )
        if parsed.detection is not None:
            result.broker = parsed.detection.template.key
            result.broker_name = parsed.detection.template.display_name
            result.confidence = parsed.detection.confidence

        fresh = self._drop_duplicates(parsed.rows, user_id)
        result.duplicate_count = len(parsed.rows) - len(fresh)

        if fresh and not dry_run:
            saved = self.transactions.add_many(self._to_record(row, user_id) for row in fresh)
            result.created_transaction_ids = [str(txn.id) for txn in saved]
            result.saved_count = len(saved)

        result.success = parsed.has_data and not any(error.row_number == 0 for error in parsed.errors)

        logger.info(
            f"Import of {filename} finished: {result.valid_count}/{result.total_rows} valid, "
            f"{result.saved_count} saved, {result.duplicate_count} duplicates, "
            f"{result.invalid_count} invalid"
        )
        return result

    def _drop_duplicates(
            self,
            rows: list[ParsedTransactionRow],
            user_id: str,
    ) -> list[ParsedTransactionRow]:
        existing = {
            (
                txn.transaction_date,
                txn.stock_code,
                Decimal(txn.price),
                int(txn.quantity),
                coerce_transaction_type(txn.transaction_type),
            )
            for txn in self.transactions.list(user_id=user_id)
        }
        fresh = [row for row in rows if row.duplicate_key not in existing]
        for row in rows:
            if row.duplicate_key in existing:
                logger.debug(f"Row {row.row_number}: already recorded, skipping")
        return fresh

    @staticmethod
    def _to_record(row: ParsedTransactionRow, user_id: str) -> dict:
        return {
            "user_id": user_id,
            "stock_code": row.stock_code,
            "stock_name": row.stock_name,
            "transaction_type": row.transaction_type,
            "quantity": row.quantity,
            "price": row.price,
            "transaction_date": row.transaction_date,
            "notes": row.notes or IMPORT_NOTE,
        }

    # =========================================================================
    # TEMPLATES AND REPORTS
    # =========================================================================

    @staticmethod
    def list_brokers() -> list[BrokerInfo]:
        return [
            BrokerInfo(
                key=template.key,
                display_name=template.display_name,
                date_format=template.date_format,
                columns=tuple(template.primary_headers()),
            )
            for template in ALL_TEMPLATES.values()
        ]

    @staticmethod
    def generate_template(broker: str = "generic") -> str:
        """
        Sample CSV for a broker template.

        Raises:
            UnsupportedBrokerError: If broker names no template
        """
        template: BrokerTemplate = get_template(broker)
        output = io.StringIO()
        writer = csv.DictWriter(output, fieldnames=template.primary_headers(), extrasaction="ignore")
        writer.writeheader()
        writer.writerows(template.sample_rows)
        return output.getvalue()

    @staticmethod
    def build_error_report(errors: list[ParseError]) -> str:
        """CSV with one line per error: row number and message."""
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(["row", "error"])
        for error in errors:
            writer.writerow([error.row_number, error.message])
        return output.getvalue()
