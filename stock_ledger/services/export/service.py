# stock_ledger/services/export/service.py
"""
Export Service - CSV reports and full-ledger backups.

CSV exports resolve user ids to names; a transaction or position whose user
no longer exists is labelled "Unknown user". An empty report is an empty
string, not a lone header row.

Usage:
    service = ExportService(ledger_service, transaction_store, user_store)

    csv_text = service.positions_csv(user_id=user.id)
    users_text = service.users_csv()
    backup = service.create_backup()
    service.restore_backup(backup, replace=True)
"""

import csv
import io
import logging
from collections import Counter
from collections.abc import Iterable, Mapping
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from stock_ledger.services.constants import BACKUP_FORMAT_VERSION, PERCENT_QUANTUM, PRICE_QUANTUM
from stock_ledger.services.exceptions import ValidationError
from stock_ledger.services.export.backup import (
    BackupTransaction,
    BackupUser,
    LedgerBackup,
    RestoreResult,
)
from stock_ledger.services.ledger.calculators import coerce_transaction_type, round_money
from stock_ledger.services.ledger.service import LedgerService
from stock_ledger.services.protocols import TransactionStoreProtocol, UserStoreProtocol

logger = logging.getLogger(__name__)

UNKNOWN_USER = "Unknown user"
NOT_AVAILABLE = "N/A"

USER_COLUMNS = ("user_id", "name", "phone", "email", "created_at", "transaction_count")
TRANSACTION_COLUMNS = (
    "user_name", "transaction_date", "stock_code", "stock_name", "transaction_type",
    "quantity", "price", "amount", "notes", "created_at",
)
POSITION_COLUMNS = (
    "user_name", "stock_code", "stock_name", "quantity", "average_price", "total_cost",
    "current_price", "market_value", "unrealized_pl", "unrealized_pl_percent",
)
USER_PROFIT_COLUMNS = (
    "user_name", "total_buy_amount", "total_sell_amount", "total_buy_fees", "total_sell_fees",
    "realized_pl", "net_realized_pl", "transaction_count", "return_rate",
)
STOCK_PROFIT_COLUMNS = (
    "stock_code", "stock_name", "total_buy_quantity", "total_sell_quantity", "average_buy_price",
    "average_sell_price", "total_buy_amount", "total_sell_amount", "total_fees", "realized_pl",
    "net_realized_pl", "transaction_count",
)


def _to_csv(columns: tuple[str, ...], rows: Iterable[Mapping[str, Any]]) -> str:
    rows = list(rows)
    if not rows:
        return ""
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=columns, lineterminator="\n")
    writer.writeheader()
    writer.writerows(rows)
    return output.getvalue()


def _fmt(value: Decimal | None) -> str:
    return NOT_AVAILABLE if value is None else str(round_money(value))


def _fmt_price(value: Decimal) -> str:
    return str(value.quantize(PRICE_QUANTUM, rounding=ROUND_HALF_UP))


class ExportService:
    """
    Builds CSV exports and backups from the stores.

    Attributes:
        ledger: LedgerService used for positions and profits
    """

    def __init__(
            self,
            ledger_service: LedgerService,
            transaction_store: TransactionStoreProtocol,
            user_store: UserStoreProtocol,
    ) -> None:
        self.ledger = ledger_service
        self._transactions = transaction_store
        self._users = user_store

    def _user_names(self) -> dict[str, str]:
        return {str(user.id): user.name for user in self._users.list()}

    # =========================================================================
    # CSV EXPORTS
    # =========================================================================

    def users_csv(self) -> str:
        counts = Counter(str(txn.user_id) for txn in self._transactions.list())
        return _to_csv(USER_COLUMNS, (
            {
                "user_id": user.id,
                "name": user.name,
                "phone": user.phone or "",
                "email": user.email or "",
                "created_at": user.created_at.isoformat() if user.created_at else "",
                "transaction_count": counts[str(user.id)],
            }
            for user in self._users.list()
        ))

    def transactions_csv(self, user_id: str | None = None) -> str:
        names = self._user_names()
        transactions = sorted(
            self._transactions.list(user_id=user_id),
            key=lambda txn: txn.transaction_date,
        )
        return _to_csv(TRANSACTION_COLUMNS, (
            {
                "user_name": names.get(str(txn.user_id), UNKNOWN_USER),
                "transaction_date": txn.transaction_date.isoformat(),
                "stock_code": txn.stock_code,
                "stock_name": txn.stock_name or "",
                "transaction_type": coerce_transaction_type(txn.transaction_type).value,
                "quantity": txn.quantity,
                "price": _fmt_price(Decimal(txn.price)),
                "amount": _fmt(Decimal(txn.price) * txn.quantity),
                "notes": txn.notes or "",
                "created_at": txn.created_at.isoformat() if txn.created_at else "",
            }
            for txn in transactions
        ))

    def positions_csv(self, user_id: str | None = None, with_quotes: bool = False) -> str:
        names = self._user_names()
        valuations = self.ledger.get_position_valuations(user_id, with_quotes=with_quotes)
        return _to_csv(POSITION_COLUMNS, (
            {
                "user_name": names.get(str(v.position.user_id), UNKNOWN_USER),
                "stock_code": v.position.stock_code,
                "stock_name": v.position.stock_name,
                "quantity": v.position.total_quantity,
                "average_price": _fmt_price(v.position.average_price),
                "total_cost": _fmt(v.position.total_cost),
                "current_price": _fmt(v.current_price),
                "market_value": _fmt(v.market_value) if v.is_priced else NOT_AVAILABLE,
                "unrealized_pl": _fmt(v.unrealized_pl),
                "unrealized_pl_percent": _fmt(v.unrealized_pl_percent),
            }
            for v in valuations
        ))

    def user_profits_csv(self, user_id: str | None = None) -> str:
        names = self._user_names()
        rows = []
        for profit in self.ledger.get_user_profits(user_id):
            if profit.total_buy_amount > 0:
                return_rate = str(
                    (profit.net_realized_pl / profit.total_buy_amount * 100)
                    .quantize(PERCENT_QUANTUM, rounding=ROUND_HALF_UP)
                )
            else:
                return_rate = NOT_AVAILABLE
            rows.append({
                "user_name": names.get(str(profit.user_id), UNKNOWN_USER),
                "total_buy_amount": _fmt(profit.total_buy_amount),
                "total_sell_amount": _fmt(profit.total_sell_amount),
                "total_buy_fees": _fmt(profit.total_buy_fees),
                "total_sell_fees": _fmt(profit.total_sell_fees),
                "realized_pl": _fmt(profit.realized_pl),
                "net_realized_pl": _fmt(profit.net_realized_pl),
                "transaction_count": profit.transaction_count,
                "return_rate": return_rate,
            })
        return _to_csv(USER_PROFIT_COLUMNS, rows)

    def stock_profits_csv(self, user_id: str | None = None) -> str:
        return _to_csv(STOCK_PROFIT_COLUMNS, (
            {
                "stock_code": profit.stock_code,
                "stock_name": profit.stock_name,
                "total_buy_quantity": profit.total_buy_quantity,
                "total_sell_quantity": profit.total_sell_quantity,
                "average_buy_price": _fmt_price(profit.average_buy_price),
                "average_sell_price": _fmt_price(profit.average_sell_price),
                "total_buy_amount": _fmt(profit.total_buy_amount),
                "total_sell_amount": _fmt(profit.total_sell_amount),
                "total_fees": _fmt(profit.total_fees),
                "realized_pl": _fmt(profit.realized_pl),
                "net_realized_pl": _fmt(profit.net_realized_pl),
                "transaction_count": profit.transaction_count,
            }
            for profit in self.ledger.get_stock_profits(user_id)
        ))

    @staticmethod
    def export_filename(kind: str, extension: str = "csv", today: date | None = None) -> str:
        """Download filename such as 'positions_2024-01-31.csv'."""
        today = today or date.today()
        return f"{kind}_{today.isoformat()}.{extension}"

    # =========================================================================
    # BACKUP / RESTORE
    # =========================================================================

    def create_backup(self) -> LedgerBackup:
        users = [BackupUser.model_validate(user) for user in self._users.list()]
        transactions = [BackupTransaction.model_validate(txn) for txn in self._transactions.list()]
        logger.info(f"Created backup with {len(users)} users and {len(transactions)} transactions")
        return LedgerBackup(
            version=BACKUP_FORMAT_VERSION,
            created_at=datetime.now(timezone.utc),
            users=users,
            transactions=transactions,
        )

    def restore_backup(self, backup: LedgerBackup, replace: bool = True) -> RestoreResult:
        """
        Load a backup into the stores.

        The whole restore is one unit of work: the backup is checked before
        anything is deleted, and a failure part way leaves the existing
        ledger untouched.

        Args:
            backup: Parsed backup document
            replace: Wipe existing data first; when False, records whose id
                already exists are skipped

        Raises:
            ValidationError: Unsupported version, a repeated user or
                transaction id, or a transaction whose user is neither in the
                backup nor (when merging) in the store
        """
        self._check_backup(backup, replace)

        existing_users = set() if replace else set(self._user_names())
        result = RestoreResult(replaced=replace)

        with self._transactions.atomic(), self._users.atomic():
            if replace:
                self._transactions.clear()
                self._users.clear()
                existing_transactions: set[str] = set()
            else:
                existing_transactions = {str(txn.id) for txn in self._transactions.list()}

            for user in backup.users:
                if user.id in existing_users:
                    result.users_skipped += 1
                    continue
                self._users.add(user.model_dump(exclude_none=True))
                result.users_restored += 1

            fresh = []
            for txn in backup.transactions:
                if txn.id in existing_transactions:
                    result.transactions_skipped += 1
                    continue
                fresh.append(txn.model_dump(exclude_none=True))
            self._transactions.add_many(fresh)
            result.transactions_restored = len(fresh)

        logger.info(
            f"Restored backup from {backup.created_at.isoformat()}: "
            f"{result.users_restored} users, {result.transactions_restored} transactions "
            f"({result.users_skipped + result.transactions_skipped} skipped)"
        )
        return result

    def _check_backup(self, backup: LedgerBackup, replace: bool) -> None:
        if backup.version != BACKUP_FORMAT_VERSION:
            raise ValidationError(
                f"Unsupported backup version '{backup.version}'. Expected {BACKUP_FORMAT_VERSION}",
                field="version",
            )

        for field, ids in (
                ("users", [user.id for user in backup.users]),
                ("transactions", [txn.id for txn in backup.transactions]),
        ):
            repeated = sorted(key for key, count in Counter(ids).items() if count > 1)
            if repeated:
                raise ValidationError(
                    f"Backup repeats {field} id(s): {', '.join(repeated)}",
                    field=field,
                )

        known_users = {user.id for user in backup.users}
        if not replace:
            known_users |= set(self._user_names())
        orphans = sorted({txn.user_id for txn in backup.transactions} - known_users)
        if orphans:
            raise ValidationError(
                f"Backup references unknown user(s): {', '.join(orphans)}",
                field="transactions",
            )
