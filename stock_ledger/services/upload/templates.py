# stock_ledger/services/upload/templates.py
"""
Broker export templates.

Each template maps the column headers of one broker's trade export to our
field names. Columns mapped to informational fields (amount, fees, tax...)
count towards template detection but are not imported: fees are always
recomputed by the ledger engine.

Detection:
    A broker template qualifies when the file contains at least
    max(3, 60% of the template's columns). Among qualifying templates the one
    with the highest match ratio wins. Otherwise the generic template is used
    with confidence 0.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from stock_ledger.models import TransactionType
from stock_ledger.services.constants import MIN_TEMPLATE_MATCHES, MIN_TEMPLATE_MATCH_RATIO
from stock_ledger.services.exceptions import UnsupportedBrokerError

# Fields the importer reads; everything else is informational
IMPORTED_FIELDS = ("transaction_date", "stock_code", "stock_name", "transaction_type", "price", "quantity")
REQUIRED_FIELDS = ("transaction_date", "stock_code", "transaction_type", "price", "quantity")

GENERIC_KEY = "generic"
AUTO_DETECT = "auto"


@dataclass(frozen=True)
class BrokerTemplate:
    """
    Column layout of one broker's export.

    Attributes:
        key: Identifier used in the API ("huatai", "generic", ...)
        display_name: Broker name as shown to users
        columns: CSV header → field name
        date_format: Human description of the expected date layout
        type_mapping: Lowercased type label → TransactionType
        sample_rows: Example rows for the downloadable template
    """

    key: str
    display_name: str
    columns: dict[str, str]
    date_format: str
    type_mapping: dict[str, TransactionType]
    sample_rows: tuple[dict[str, str], ...] = field(default_factory=tuple)

    def headers_for(self, field_name: str) -> list[str]:
        return [header for header, mapped in self.columns.items() if mapped == field_name]

    def primary_headers(self) -> list[str]:
        """One header per field, in column order, for generated templates."""
        seen: set[str] = set()
        headers = []
        for header, mapped in self.columns.items():
            if mapped not in seen:
                seen.add(mapped)
                headers.append(header)
        return headers

    def parse_type(self, value: str) -> TransactionType | None:
        return self.type_mapping.get(value.strip().lower())


@dataclass(frozen=True)
class TemplateDetection:
    """
    Outcome of matching file headers against the broker templates.

    Attributes:
        template: The chosen template
        matched_columns: Template headers present in the file
        confidence: matched / template columns (0 for the generic fallback)
    """

    template: BrokerTemplate
    matched_columns: tuple[str, ...]
    confidence: Decimal

    @property
    def confidence_percent(self) -> int:
        return int((self.confidence * 100).to_integral_value())


_BUY_SELL = {
    "买入": TransactionType.BUY,
    "卖出": TransactionType.SELL,
}

HUATAI = BrokerTemplate(
    key="huatai",
    display_name="华泰证券",
    columns={
        "成交日期": "transaction_date",
        "证券代码": "stock_code",
        "证券名称": "stock_name",
        "买卖标志": "transaction_type",
        "成交价格": "price",
        "成交数量": "quantity",
        "成交金额": "amount",
        "手续费": "fee",
        "印花税": "tax",
        "过户费": "transfer_fee",
        "发生金额": "total_amount",
    },
    date_format="YYYYMMDD",
    type_mapping=dict(_BUY_SELL),
    sample_rows=(
        {"成交日期": "20240115", "证券代码": "000001", "证券名称": "平安银行", "买卖标志": "买入",
         "成交价格": "10.50", "成交数量": "1000", "成交金额": "10500.00", "手续费": "5.00",
         "印花税": "0.00", "过户费": "0.21", "发生金额": "-10505.21"},
    ),
)

EASTMONEY = BrokerTemplate(
    key="eastmoney",
    display_name="东方财富",
    columns={
        "成交时间": "transaction_date",
        "证券代码": "stock_code",
        "证券名称": "stock_name",
        "操作": "transaction_type",
        "成交价格": "price",
        "成交数量": "quantity",
        "成交金额": "amount",
        "手续费": "fee",
        "印花税": "tax",
        "其他费用": "other_fee",
        "发生金额": "total_amount",
    },
    date_format="YYYY-MM-DD HH:mm:ss",
    type_mapping={
        **_BUY_SELL,
        "证券买入": TransactionType.BUY,
        "证券卖出": TransactionType.SELL,
    },
    sample_rows=(
        {"成交时间": "2024-01-15 09:35:12", "证券代码": "600519", "证券名称": "贵州茅台", "操作": "证券买入",
         "成交价格": "1685.50", "成交数量": "100", "成交金额": "168550.00", "手续费": "50.57",
         "印花税": "0.00", "其他费用": "3.37", "发生金额": "-168603.94"},
    ),
)

TONGHUASHUN = BrokerTemplate(
    key="tonghuashun",
    display_name="同花顺",
    columns={
        "日期": "transaction_date",
        "代码": "stock_code",
        "名称": "stock_name",
        "方向": "transaction_type",
        "价格": "price",
        "数量": "quantity",
        "金额": "amount",
        "佣金": "fee",
        "印花税": "tax",
        "过户费": "transfer_fee",
    },
    date_format="YYYY/MM/DD",
    type_mapping=dict(_BUY_SELL),
    sample_rows=(
        {"日期": "2024/01/15", "代码": "000858", "名称": "五粮液", "方向": "买入", "价格": "68.92",
         "数量": "500", "金额": "34460.00", "佣金": "10.34", "印花税": "0.00", "过户费": "0.69"},
    ),
)

GENERIC = BrokerTemplate(
    key=GENERIC_KEY,
    display_name="通用模板",
    columns={
        "交易日期": "transaction_date",
        "date": "transaction_date",
        "transaction_date": "transaction_date",
        "股票代码": "stock_code",
        "stock_code": "stock_code",
        "code": "stock_code",
        "股票名称": "stock_name",
        "stock_name": "stock_name",
        "name": "stock_name",
        "交易类型(buy/sell)": "transaction_type",
        "交易类型": "transaction_type",
        "type": "transaction_type",
        "transaction_type": "transaction_type",
        "成交价格": "price",
        "price": "price",
        "成交数量": "quantity",
        "quantity": "quantity",
        "成交金额": "amount",
        "amount": "amount",
        "手续费": "fee",
        "fee": "fee",
        "印花税": "tax",
        "tax": "tax",
        "备注": "notes",
        "notes": "notes",
    },
    date_format="YYYY-MM-DD, YYYY/MM/DD or YYYYMMDD",
    type_mapping={
        **_BUY_SELL,
        "buy": TransactionType.BUY,
        "sell": TransactionType.SELL,
        "b": TransactionType.BUY,
        "s": TransactionType.SELL,
    },
    sample_rows=(
        {"交易日期": "2024-01-15", "股票代码": "000001", "股票名称": "平安银行", "交易类型(buy/sell)": "buy",
         "成交价格": "10.50", "成交数量": "1000", "成交金额": "10500.00", "手续费": "5.25", "印花税": "0.00",
         "备注": ""},
        {"交易日期": "2024-01-16", "股票代码": "000001", "股票名称": "平安银行", "交易类型(buy/sell)": "sell",
         "成交价格": "11.20", "成交数量": "500", "成交金额": "5600.00", "手续费": "5.00", "印花税": "5.60",
         "备注": ""},
    ),
)

BROKER_TEMPLATES: dict[str, BrokerTemplate] = {
    template.key: template for template in (HUATAI, EASTMONEY, TONGHUASHUN)
}

ALL_TEMPLATES: dict[str, BrokerTemplate] = {**BROKER_TEMPLATES, GENERIC_KEY: GENERIC}


def get_template(broker: str) -> BrokerTemplate:
    """
    Look up a template by key or display name.

    Raises:
        UnsupportedBrokerError: If no template matches
    """
    broker = broker.strip()
    if broker.lower() in ALL_TEMPLATES:
        return ALL_TEMPLATES[broker.lower()]
    for template in ALL_TEMPLATES.values():
        if template.display_name == broker:
            return template
    raise UnsupportedBrokerError(broker, available=list(ALL_TEMPLATES))


def detect_template(headers: list[str]) -> TemplateDetection:
    """Pick the broker template that best matches the file headers."""
    present = {header.strip() for header in headers if header}
    best: TemplateDetection | None = None

    for template in BROKER_TEMPLATES.values():
        matched = tuple(header for header in template.columns if header in present)
        needed = max(Decimal(MIN_TEMPLATE_MATCHES), len(template.columns) * MIN_TEMPLATE_MATCH_RATIO)
        if len(matched) < needed:
            continue

        confidence = Decimal(len(matched)) / Decimal(len(template.columns))
        if best is None or confidence > best.confidence:
            best = TemplateDetection(template=template, matched_columns=matched, confidence=confidence)

    if best is not None:
        return best

    matched = tuple(header for header in GENERIC.columns if header in present)
    return TemplateDetection(template=GENERIC, matched_columns=matched, confidence=Decimal("0"))
