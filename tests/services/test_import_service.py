# tests/services/test_import_service.py
"""
Tests for broker file import.

Test Coverage:
- Template lookup and header-based detection
- CSV row conversion and per-row error collection
- ImportService: duplicates, dry runs, file-level failures
"""

import io
from datetime import date
from decimal import Decimal

import pytest

from stock_ledger.models import TransactionType
from stock_ledger.services.exceptions import (
    UnsupportedBrokerError,
    UnsupportedFileTypeError,
    UserNotFoundError,
    ValidationError,
)
from stock_ledger.services.store import InMemoryTransactionStore, InMemoryUserStore
from stock_ledger.services.upload import (
    CSVTransactionParser,
    ImportService,
    detect_template,
    get_parser,
    get_template,
)
from stock_ledger.services.upload.parsers.csv_parser import (
    normalize_import_code,
    parse_number,
    parse_trade_date,
)
from tests.conftest import trade_data

HUATAI_HEADER = "成交日期,证券代码,证券名称,买卖标志,成交价格,成交数量,成交金额,手续费,印花税,过户费,发生金额"
GENERIC_HEADER = "交易日期,股票代码,股票名称,交易类型(buy/sell),成交价格,成交数量,成交金额,手续费,印花税,备注"


def csv_bytes(*lines: str, encoding: str = "utf-8") -> io.BytesIO:
    return io.BytesIO(("\n".join(lines) + "\n").encode(encoding))


# =============================================================================
# TEMPLATES
# =============================================================================

class TestTemplates:
    def test_lookup_by_key_and_display_name(self):
        assert get_template("HuaTai").key == "huatai"
        assert get_template("东方财富").key == "eastmoney"
        assert get_template("generic").key == "generic"

    def test_unknown_broker(self):
        with pytest.raises(UnsupportedBrokerError):
            get_template("robinhood")

    def test_detects_huatai(self):
        detection = detect_template(HUATAI_HEADER.split(","))

        assert detection.template.key == "huatai"
        assert detection.confidence == Decimal("1")
        assert detection.confidence_percent == 100

    def test_detects_eastmoney_over_overlapping_huatai(self):
        headers = "成交时间,证券代码,证券名称,操作,成交价格,成交数量,成交金额,手续费,印花税,其他费用,发生金额"
        assert detect_template(headers.split(",")).template.key == "eastmoney"

    def test_partial_match_above_threshold(self):
        """7 of 10 columns is above the 60% bar."""
        headers = ["日期", "代码", "名称", "方向", "价格", "数量", "金额"]
        detection = detect_template(headers)

        assert detection.template.key == "tonghuashun"
        assert detection.confidence_percent == 70

    def test_falls_back_to_generic(self):
        detection = detect_template(GENERIC_HEADER.split(","))

        assert detection.template.key == "generic"
        assert detection.confidence == Decimal("0")


# =============================================================================
# FIELD PARSERS
# =============================================================================

class TestFieldParsing:
    @pytest.mark.parametrize("value,expected", [
        ("20240115", date(2024, 1, 15)),
        ("2024-01-15", date(2024, 1, 15)),
        ("2024/1/5", date(2024, 1, 5)),
        ("2024-01-15 09:35:12", date(2024, 1, 15)),
        ("2024-02-30", None),
        ("15/01/2024", None),
        ("", None),
    ])
    def test_trade_date(self, value, expected):
        assert parse_trade_date(value) == expected

    def test_number_with_thousands_separators(self):
        assert parse_number("1,234.50") == Decimal("1234.50")
        assert parse_number("1，000") == Decimal("1000")
        assert parse_number("abc") is None

    @pytest.mark.parametrize("value,expected", [
        ("1", "000001"),
        ("SZ000001", "000001"),
        ("600519", "600519"),
        ("", ""),
    ])
    def test_import_code(self, value, expected):
        assert normalize_import_code(value) == expected


# =============================================================================
# CSV PARSER
# =============================================================================

class TestCSVParser:
    @pytest.fixture
    def parser(self) -> CSVTransactionParser:
        return CSVTransactionParser()

    def test_parses_huatai_export(self, parser):
        result = parser.parse(csv_bytes(
            HUATAI_HEADER,
            "20240115,000001,平安银行,买入,10.50,1000,10500.00,5.00,0.00,0.21,-10505.21",
            "20240116,1,平安银行,卖出,11.205,-500,5602.50,5.00,5.60,0.11,5591.79",
        ), "huatai.csv")

        assert result.errors == []
        assert result.detection.template.key == "huatai"
        buy, sell = result.rows
        assert buy.row_number == 2
        assert buy.transaction_type == TransactionType.BUY
        assert buy.price == Decimal("10.50")
        assert sell.stock_code == "000001"
        assert sell.price == Decimal("11.21")
        assert sell.quantity == 500

    def test_reads_gb18030(self, parser):
        result = parser.parse(csv_bytes(
            HUATAI_HEADER,
            "20240115,600519,贵州茅台,买入,1685.50,100,168550.00,50.57,0.00,3.37,-168603.94",
            encoding="gb18030",
        ), "huatai.csv")

        assert result.rows[0].stock_name == "贵州茅台"

    def test_collects_all_problems_of_a_row(self, parser):
        result = parser.parse(csv_bytes(
            GENERIC_HEADER,
            ",000001,平安银行,hold,0,100,,,,",
        ), "trades.csv")

        [error] = result.errors
        assert error.row_number == 2
        assert error.display() == (
            "Row 2: trade date is required; transaction type must be buy or sell; "
            "price must be greater than 0"
        )

    def test_rejects_fractional_quantity(self, parser):
        result = parser.parse(csv_bytes(
            GENERIC_HEADER,
            "2024-01-15,000001,平安银行,buy,10.50,100.5,,,,",
        ), "trades.csv")

        assert "quantity must be a whole number of shares" in result.errors[0].message

    def test_skips_blank_lines(self, parser):
        result = parser.parse(csv_bytes(
            GENERIC_HEADER,
            "2024-01-15,000001,平安银行,buy,10.50,100,,,,",
            ",,,,,,,,,",
            "2024-01-16,000001,平安银行,sell,11.00,100,,,,",
        ), "trades.csv")

        assert result.total_rows == 2
        assert [row.row_number for row in result.rows] == [2, 4]

    def test_english_headers_and_notes(self, parser):
        result = parser.parse(csv_bytes(
            "date,code,name,type,price,quantity,notes",
            "2024-01-15,600519,贵州茅台,B,1685.50,100,首次建仓",
        ), "trades.csv")

        row = result.rows[0]
        assert row.transaction_type == TransactionType.BUY
        assert row.notes == "首次建仓"

    def test_missing_required_column_is_file_error(self, parser):
        result = parser.parse(csv_bytes(
            "交易日期,股票代码,成交价格,成交数量",
            "2024-01-15,000001,10.50,100",
        ), "trades.csv")

        [error] = result.errors
        assert error.row_number == 0
        assert error.error_type == "missing_columns"
        assert "交易类型(buy/sell)" in error.message
        assert result.rows == []

    def test_empty_file(self, parser):
        result = parser.parse(io.BytesIO(b""), "empty.csv")
        assert result.errors[0].error_type == "missing_headers"

    def test_explicit_template_confidence(self, parser):
        result = parser.parse(csv_bytes(
            "成交日期,证券代码,买卖标志,成交价格,成交数量",
            "20240115,000001,买入,10.50,100",
        ), "huatai.csv", get_template("huatai"))

        assert result.detection.template.key == "huatai"
        assert result.detection.confidence_percent == 45
        assert result.success_count == 1

    def test_parser_registry(self):
        assert isinstance(get_parser("trades.CSV"), CSVTransactionParser)
        with pytest.raises(UnsupportedFileTypeError):
            get_parser("trades.xlsx")


# =============================================================================
# IMPORT SERVICE
# =============================================================================

class TestImportService:
    @pytest.fixture
    def transactions(self) -> InMemoryTransactionStore:
        return InMemoryTransactionStore()

    @pytest.fixture
    def users(self, transactions) -> InMemoryUserStore:
        return InMemoryUserStore(transactions)

    @pytest.fixture
    def user_id(self, users) -> str:
        return users.add({"name": "张三"}).id

    @pytest.fixture
    def service(self, transactions, users) -> ImportService:
        return ImportService(transactions, users)

    def test_imports_valid_rows_and_reports_invalid(self, service, transactions, user_id):
        result = service.import_file(csv_bytes(
            GENERIC_HEADER,
            "2024-01-15,000001,平安银行,buy,10.50,1000,,,,",
            "2024-01-16,000001,平安银行,sell,-1,500,,,,",
            "2024-01-17,600519,贵州茅台,buy,1685.50,100,,,,加仓",
        ), "trades.csv", user_id=user_id)

        assert result.success
        assert result.broker == "generic"
        assert result.total_rows == 3
        assert result.saved_count == 2
        assert result.invalid_count == 1
        assert result.error_messages == ["Row 3: price must be greater than 0"]

        saved = transactions.list(user_id=user_id)
        assert [txn.notes for txn in saved] == ["Imported", "加仓"]
        assert result.created_transaction_ids == [txn.id for txn in saved]

    def test_skips_existing_trades(self, service, transactions, user_id):
        transactions.add(trade_data(
            user_id=user_id, stock_code="000001", quantity=1000, price="10.5",
            transaction_date=date(2024, 1, 15),
        ))

        result = service.import_file(csv_bytes(
            GENERIC_HEADER,
            "2024-01-15,000001,平安银行,buy,10.50,1000,,,,",
            "2024-01-16,000001,平安银行,sell,11.20,500,,,,",
        ), "trades.csv", user_id=user_id)

        assert result.duplicate_count == 1
        assert result.saved_count == 1

    def test_duplicates_are_per_user(self, service, transactions, users, user_id):
        other = users.add({"name": "李四"}).id
        transactions.add(trade_data(
            user_id=other, stock_code="000001", quantity=1000, price="10.50",
            transaction_date=date(2024, 1, 15),
        ))

        result = service.import_file(csv_bytes(
            GENERIC_HEADER,
            "2024-01-15,000001,平安银行,buy,10.50,1000,,,,",
        ), "trades.csv", user_id=user_id)

        assert result.duplicate_count == 0
        assert result.saved_count == 1

    def test_dry_run_saves_nothing(self, service, transactions, user_id):
        result = service.import_file(csv_bytes(
            GENERIC_HEADER,
            "2024-01-15,000001,平安银行,buy,10.50,1000,,,,",
        ), "trades.csv", user_id=user_id, dry_run=True)

        assert result.success
        assert result.valid_count == 1
        assert result.saved_count == 0
        assert transactions.list() == []

    def test_file_level_error_is_not_success(self, service, user_id):
        result = service.import_file(csv_bytes("foo,bar", "1,2"), "trades.csv", user_id=user_id)

        assert not result.success
        assert result.invalid_count == 0
        assert result.errors[0].display().startswith("Missing required columns")

    def test_unknown_user(self, service):
        with pytest.raises(UserNotFoundError):
            service.import_file(csv_bytes(GENERIC_HEADER), "trades.csv", user_id="nobody")

    def test_unsupported_file_type(self, service, user_id):
        with pytest.raises(UnsupportedFileTypeError):
            service.import_file(io.BytesIO(b"x"), "trades.pdf", user_id=user_id)

    def test_file_too_large(self, service, user_id, monkeypatch):
        monkeypatch.setattr("stock_ledger.services.upload.service.MAX_UPLOAD_BYTES", 10)

        with pytest.raises(ValidationError) as exc_info:
            service.import_file(csv_bytes(GENERIC_HEADER), "trades.csv", user_id=user_id)
        assert exc_info.value.field == "file"

    def test_generated_template_round_trips(self, service, user_id):
        content = service.generate_template("huatai")

        result = service.import_file(io.BytesIO(content.encode("utf-8")), "template.csv", user_id=user_id)

        assert result.broker == "huatai"
        assert result.saved_count == 1

    def test_list_brokers(self, service):
        brokers = {info.key: info for info in service.list_brokers()}

        assert set(brokers) == {"huatai", "eastmoney", "tonghuashun", "generic"}
        assert brokers["generic"].columns[0] == "交易日期"

    def test_error_report(self, service, user_id):
        result = service.import_file(csv_bytes(
            GENERIC_HEADER,
            "2024-01-15,000001,平安银行,hold,10.50,1000,,,,",
        ), "trades.csv", user_id=user_id, dry_run=True)

        report = service.build_error_report(result.errors)

        assert report.splitlines() == ["row,error", "2,transaction type must be buy or sell"]
