# stock_ledger/services/upload/parsers/csv_parser.py
"""
CSV transaction file parser.

Reads broker trade exports and converts each row through a BrokerTemplate.

Encoding:
    UTF-8 (with or without BOM) first, then GB18030 for exports from Chinese
    broker terminals, Latin-1 as the last resort.

Row conversion:
    transaction_date  YYYYMMDD, YYYY-MM-DD or YYYY/MM/DD, optional time part
    stock_code        digits only, left-padded to 6
    transaction_type  template type mapping, case-insensitive
    price             thousands separators removed, rounded to 2 places
    quantity          thousands separators removed, absolute value, whole shares

Every problem in a row is collected into one ParseError, e.g.
"Row 3: trade date is required; price must be greater than 0".
"""

import csv
import io
import logging
import re
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import BinaryIO

from stock_ledger.models import TransactionType
from stock_ledger.services.constants import MONEY_QUANTUM, STOCK_CODE_LENGTH
from stock_ledger.services.upload.parsers.base import (
    TransactionFileParser,
    ParsedTransactionRow,
    ParseError,
    ParseResult,
)
from stock_ledger.services.upload.templates import (
    REQUIRED_FIELDS,
    BrokerTemplate,
    TemplateDetection,
    detect_template,
)

logger = logging.getLogger(__name__)

ENCODINGS = ("utf-8-sig", "gb18030", "latin-1")

_DATE_PATTERN = re.compile(
    r"^(?P<year>\d{4})[-/]?(?P<month>\d{2})[-/]?(?P<day>\d{2})(?:[ T]\d{1,2}:\d{2}(?::\d{2})?)?$"
)
_SEPARATED_DATE_PATTERN = re.compile(
    r"^(?P<year>\d{4})(?P<sep>[-/])(?P<month>\d{1,2})(?P=sep)(?P<day>\d{1,2})(?:[ T]\d{1,2}:\d{2}(?::\d{2})?)?$"
)

_THOUSANDS_SEPARATORS = str.maketrans("", "", ",，")


def parse_trade_date(value: str) -> date | None:
    """
    Parse a broker date string; None if it is not a valid date.

    Accepts 20240115, 2024-01-15, 2024/01/15 and the same followed by a time.
    """
    value = value.strip()
    match = _SEPARATED_DATE_PATTERN.match(value) or _DATE_PATTERN.match(value)
    if match is None:
        return None
    try:
        return date(int(match.group("year")), int(match.group("month")), int(match.group("day")))
    except ValueError:
        return None


def parse_number(value: str) -> Decimal | None:
    """Decimal from text with thousands separators; None when not numeric."""
    cleaned = value.strip().translate(_THOUSANDS_SEPARATORS)
    if not cleaned:
        return None
    try:
        number = Decimal(cleaned)
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def normalize_import_code(value: str) -> str:
    """Keep digits only and left-pad to six ("1" → "000001", "SZ000001" → "000001")."""
    digits = "".join(ch for ch in value if ch.isdigit())
    return digits.zfill(STOCK_CODE_LENGTH) if digits else ""


class CSVTransactionParser(TransactionFileParser):
    """
    Parser for CSV broker exports.

    Example:
        parser = CSVTransactionParser()

        with open("huatai.csv", "rb") as f:
            result = parser.parse(f, "huatai.csv")

        print(result.detection.template.display_name, result.success_count)
    """

    @property
    def name(self) -> str:
        return "CSV"

    @property
    def supported_extensions(self) -> set[str]:
        return {".csv"}

    @property
    def supported_content_types(self) -> set[str]:
        return {"text/csv", "application/csv", "text/plain", "application/vnd.ms-excel"}

    def parse(
            self,
            file: BinaryIO,
            filename: str,
            template: BrokerTemplate | None = None,
    ) -> ParseResult:
        logger.info(f"Parsing CSV file: {filename}")

        result = ParseResult()

        try:
            content = self.decode(file.read())
        except OSError as e:
            logger.error(f"Failed to read file {filename}: {e}", exc_info=True)
            result.errors.append(ParseError(
                row_number=0,
                error_type="file_read_error",
                message=f"Could not read file: {e}",
            ))
            return result

        try:
            reader = csv.reader(io.StringIO(content))
            header_row = next(reader, None)

            if not header_row or not any(cell.strip() for cell in header_row):
                result.errors.append(ParseError(
                    row_number=0,
                    error_type="missing_headers",
                    message="CSV file has no headers",
                ))
                return result

            headers = [cell.strip() for cell in header_row]
            result.detection = self._resolve_template(headers, template)
            active = result.detection.template

            missing = self._missing_fields(headers, active)
            if missing:
                result.errors.append(ParseError(
                    row_number=0,
                    error_type="missing_columns",
                    message=(
                        f"Missing required columns for {active.display_name}: "
                        f"{', '.join(missing)}"
                    ),
                ))
                return result

            for row_number, cells in enumerate(reader, start=2):
                if not any(cell.strip() for cell in cells):
                    continue
                result.total_rows += 1

                raw = {header: (cells[i].strip() if i < len(cells) else "") for i, header in enumerate(headers)}
                parsed, error = self._parse_row(row_number, raw, active)
                if error is not None:
                    result.errors.append(error)
                else:
                    result.rows.append(parsed)

        except csv.Error as e:
            logger.error(f"CSV parsing error in {filename}: {e}")
            result.errors.append(ParseError(
                row_number=0,
                error_type="csv_format_error",
                message=f"Invalid CSV format: {e}",
            ))

        logger.info(
            f"Parsed {filename} with template '{result.detection.template.key if result.detection else '-'}': "
            f"{result.success_count} rows OK, {result.error_count} errors"
        )
        return result

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def decode(content: bytes) -> str:
        *strict, last_resort = ENCODINGS
        for encoding in strict:
            try:
                return content.decode(encoding)
            except UnicodeDecodeError:
                continue
        return content.decode(last_resort)

    @staticmethod
    def _resolve_template(headers: list[str], template: BrokerTemplate | None) -> TemplateDetection:
        if template is None:
            return detect_template(headers)

        present = set(headers)
        matched = tuple(header for header in template.columns if header in present)
        confidence = Decimal(len(matched)) / Decimal(len(template.columns))
        return TemplateDetection(template=template, matched_columns=matched, confidence=confidence)

    @staticmethod
    def _missing_fields(headers: list[str], template: BrokerTemplate) -> list[str]:
        present = set(headers)
        return [
            template.headers_for(field_name)[0]
            for field_name in REQUIRED_FIELDS
            if not any(header in present for header in template.headers_for(field_name))
        ]

    @staticmethod
    def _value(raw: dict[str, str], template: BrokerTemplate, field_name: str) -> str:
        for header in template.headers_for(field_name):
            value = raw.get(header, "")
            if value:
                return value
        return ""

    def _parse_row(
            self,
            row_number: int,
            raw: dict[str, str],
            template: BrokerTemplate,
    ) -> tuple[ParsedTransactionRow | None, ParseError | None]:
        problems: list[str] = []

        raw_date = self._value(raw, template, "transaction_date")
        trade_date = parse_trade_date(raw_date) if raw_date else None
        if not raw_date:
            problems.append("trade date is required")
        elif trade_date is None:
            problems.append(f"invalid trade date '{raw_date}'")

        raw_code = self._value(raw, template, "stock_code")
        stock_code = normalize_import_code(raw_code)
        if not stock_code:
            problems.append("stock code is required")
        elif len(stock_code) != STOCK_CODE_LENGTH:
            problems.append(f"invalid stock code '{raw_code}'")

        raw_type = self._value(raw, template, "transaction_type")
        transaction_type: TransactionType | None = template.parse_type(raw_type) if raw_type else None
        if transaction_type is None:
            problems.append("transaction type must be buy or sell")

        price = parse_number(self._value(raw, template, "price"))
        if price is None or price <= 0:
            problems.append("price must be greater than 0")
        else:
            price = price.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)
            if price <= 0:
                problems.append("price must be greater than 0")

        quantity_value = parse_number(self._value(raw, template, "quantity"))
        quantity: int | None = None
        if quantity_value is None or quantity_value == 0:
            problems.append("quantity must be greater than 0")
        elif quantity_value != quantity_value.to_integral_value():
            problems.append("quantity must be a whole number of shares")
        else:
            quantity = abs(int(quantity_value))

        if problems:
            return None, ParseError(
                row_number=row_number,
                error_type="invalid_row",
                message="; ".join(problems),
                raw_data=raw,
            )

        notes = self._value(raw, template, "notes") or None
        return ParsedTransactionRow(
            row_number=row_number,
            transaction_date=trade_date,
            stock_code=stock_code,
            stock_name=self._value(raw, template, "stock_name"),
            transaction_type=transaction_type,
            quantity=quantity,
            price=price,
            notes=notes,
            raw_data=raw,
        ), None
