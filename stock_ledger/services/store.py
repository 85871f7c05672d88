# stock_ledger/services/store.py
"""
Transaction and user stores.

The ledger engine never touches persistence. Services receive a store
implementing TransactionStoreProtocol / UserStoreProtocol:

- SqlAlchemyTransactionStore / SqlAlchemyUserStore: backed by a Session,
  commit per operation, or once per atomic() block
- InMemoryTransactionStore / InMemoryUserStore: dict-backed, for tests and
  scripting

list() returns records in insertion order; ordering by trade date is the
engine's job. atomic() groups writes into one unit of work that is
discarded if any of them fails.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_ledger.models import Transaction, TransactionType, User
from stock_ledger.services.exceptions import (
    TransactionNotFoundError,
    UserNotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

TRANSACTION_FIELDS = (
    "user_id",
    "stock_code",
    "stock_name",
    "transaction_type",
    "quantity",
    "price",
    "transaction_date",
    "notes",
)
TRANSACTION_PATCH_FIELDS = frozenset(TRANSACTION_FIELDS) - {"user_id"}

USER_FIELDS = ("name", "phone", "email")

# Fields a restore may carry over verbatim
_IDENTITY_FIELDS = ("id", "created_at")


def _check_patch(patch: Mapping[str, Any], allowed: Iterable[str]) -> None:
    unknown = set(patch) - set(allowed)
    if unknown:
        raise ValidationError(
            f"Cannot update field(s): {', '.join(sorted(unknown))}",
            field=sorted(unknown)[0],
        )


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# SQLALCHEMY STORES
# =============================================================================

_ATOMIC_DEPTH = "ledger_atomic_depth"


class _SessionStore:
    """
    Shared session handling for the SQL stores.

    Outside atomic() every write commits. Inside it, writes only flush; the
    outermost atomic() block commits once, or rolls back if anything raised.
    Depth is tracked on the session, so stores sharing a session nest.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    @contextmanager
    def atomic(self) -> Iterator[None]:
        depth = self.db.info.get(_ATOMIC_DEPTH, 0)
        self.db.info[_ATOMIC_DEPTH] = depth + 1
        try:
            yield
        except Exception:
            self.db.info[_ATOMIC_DEPTH] = depth
            if depth == 0:
                self.db.rollback()
                logger.warning("Rolled back unit of work")
            raise
        self.db.info[_ATOMIC_DEPTH] = depth
        if depth == 0:
            self.db.commit()

    def _commit(self) -> None:
        if self.db.info.get(_ATOMIC_DEPTH, 0):
            self.db.flush()
        else:
            self.db.commit()


class SqlAlchemyTransactionStore(_SessionStore):
    """Transaction store backed by the transactions table."""

    def list(
            self,
            user_id: str | None = None,
            stock_code: str | None = None,
            transaction_type: TransactionType | None = None,
            start_date: date | None = None,
            end_date: date | None = None,
    ) -> list[Transaction]:
        query = select(Transaction)
        if user_id is not None:
            query = query.where(Transaction.user_id == user_id)
        if stock_code is not None:
            query = query.where(Transaction.stock_code == stock_code)
        if transaction_type is not None:
            query = query.where(Transaction.transaction_type == transaction_type)
        if start_date is not None:
            query = query.where(Transaction.transaction_date >= start_date)
        if end_date is not None:
            query = query.where(Transaction.transaction_date <= end_date)

        query = query.order_by(Transaction.seq)
        return list(self.db.scalars(query).all())

    def get(self, transaction_id: str) -> Transaction:
        transaction = self.db.scalars(
            select(Transaction).where(Transaction.id == transaction_id)
        ).first()
        if transaction is None:
            raise TransactionNotFoundError(transaction_id)
        return transaction

    def add(self, data: Mapping[str, Any]) -> Transaction:
        transaction = self._build(data)
        self.db.add(transaction)
        self._commit()
        self.db.refresh(transaction)
        logger.info(
            f"Recorded {transaction.transaction_type.value} {transaction.quantity} "
            f"{transaction.stock_code} for user {transaction.user_id}"
        )
        return transaction

    def add_many(self, rows: Iterable[Mapping[str, Any]]) -> list[Transaction]:
        """Insert several transactions in one commit, keeping their order."""
        transactions = [self._build(data) for data in rows]
        if not transactions:
            return []
        # One flush per row so seq follows input order
        for transaction in transactions:
            self.db.add(transaction)
            self.db.flush()
        self._commit()
        for transaction in transactions:
            self.db.refresh(transaction)
        logger.info(f"Recorded {len(transactions)} transactions")
        return transactions

    def update(self, transaction_id: str, patch: Mapping[str, Any]) -> Transaction:
        _check_patch(patch, TRANSACTION_PATCH_FIELDS)
        transaction = self.get(transaction_id)
        for key, value in patch.items():
            setattr(transaction, key, value)
        self._commit()
        self.db.refresh(transaction)
        return transaction

    def delete(self, transaction_id: str) -> None:
        transaction = self.get(transaction_id)
        self.db.delete(transaction)
        self._commit()
        logger.info(f"Deleted transaction {transaction_id}")

    def clear(self) -> int:
        transactions = self.db.scalars(select(Transaction)).all()
        for transaction in transactions:
            self.db.delete(transaction)
        self._commit()
        return len(transactions)

    def _build(self, data: Mapping[str, Any]) -> Transaction:
        values = {key: data[key] for key in TRANSACTION_FIELDS if key in data}
        values.update({key: data[key] for key in _IDENTITY_FIELDS if data.get(key) is not None})
        return Transaction(**values)


class SqlAlchemyUserStore(_SessionStore):
    """User store backed by the users table. Deleting a user cascades to transactions."""

    def list(self) -> list[User]:
        return list(self.db.scalars(select(User).order_by(User.created_at, User.id)).all())

    def get(self, user_id: str) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    def add(self, data: Mapping[str, Any]) -> User:
        values = {key: data[key] for key in USER_FIELDS if key in data}
        values.update({key: data[key] for key in _IDENTITY_FIELDS if data.get(key) is not None})
        user = User(**values)
        self.db.add(user)
        self._commit()
        self.db.refresh(user)
        logger.info(f"Created user {user.id}")
        return user

    def update(self, user_id: str, patch: Mapping[str, Any]) -> User:
        _check_patch(patch, USER_FIELDS)
        user = self.get(user_id)
        for key, value in patch.items():
            setattr(user, key, value)
        self._commit()
        self.db.refresh(user)
        return user

    def delete(self, user_id: str) -> None:
        user = self.get(user_id)
        self.db.delete(user)
        self._commit()
        logger.info(f"Deleted user {user_id} and their transactions")

    def clear(self) -> int:
        users = self.db.scalars(select(User)).all()
        for user in users:
            self.db.delete(user)
        self._commit()
        return len(users)


# =============================================================================
# IN-MEMORY STORES
# =============================================================================

@dataclass(frozen=True)
class TransactionRecord:
    """Plain transaction record used by the in-memory store."""

    user_id: str
    stock_code: str
    transaction_type: TransactionType
    quantity: int
    price: Decimal
    transaction_date: date
    stock_name: str = ""
    notes: str | None = None
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class UserRecord:
    name: str
    phone: str | None = None
    email: str | None = None
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_utcnow)


def _record_kwargs(record_type: type, data: Mapping[str, Any]) -> dict[str, Any]:
    names = {f.name for f in fields(record_type)}
    return {key: value for key, value in data.items() if key in names and value is not None}


class _DictStore:
    """Snapshot-based atomic() for the dict-backed stores."""

    _records: dict[str, Any]

    @contextmanager
    def atomic(self) -> Iterator[None]:
        snapshot = dict(self._records)
        try:
            yield
        except Exception:
            self._records = snapshot
            raise

    def _insert(self, record: Any) -> None:
        if record.id in self._records:
            raise ValidationError(f"Duplicate id '{record.id}'", field="id")
        self._records[record.id] = record


class InMemoryTransactionStore(_DictStore):
    """Dict-backed transaction store. Records are immutable; update replaces them."""

    def __init__(self, transactions: Iterable[Mapping[str, Any]] = ()) -> None:
        self._records: dict[str, TransactionRecord] = {}
        for data in transactions:
            self.add(data)

    def list(
            self,
            user_id: str | None = None,
            stock_code: str | None = None,
            transaction_type: TransactionType | None = None,
            start_date: date | None = None,
            end_date: date | None = None,
    ) -> list[TransactionRecord]:
        records = list(self._records.values())
        if user_id is not None:
            records = [r for r in records if r.user_id == user_id]
        if stock_code is not None:
            records = [r for r in records if r.stock_code == stock_code]
        if transaction_type is not None:
            records = [r for r in records if r.transaction_type == transaction_type]
        if start_date is not None:
            records = [r for r in records if r.transaction_date >= start_date]
        if end_date is not None:
            records = [r for r in records if r.transaction_date <= end_date]
        return records

    def get(self, transaction_id: str) -> TransactionRecord:
        try:
            return self._records[transaction_id]
        except KeyError:
            raise TransactionNotFoundError(transaction_id) from None

    def add(self, data: Mapping[str, Any]) -> TransactionRecord:
        record = TransactionRecord(**_record_kwargs(TransactionRecord, data))
        self._insert(record)
        return record

    def add_many(self, rows: Iterable[Mapping[str, Any]]) -> list[TransactionRecord]:
        return [self.add(data) for data in rows]

    def update(self, transaction_id: str, patch: Mapping[str, Any]) -> TransactionRecord:
        _check_patch(patch, TRANSACTION_PATCH_FIELDS)
        record = replace(self.get(transaction_id), **patch)
        self._records[transaction_id] = record
        return record

    def delete(self, transaction_id: str) -> None:
        self.get(transaction_id)
        del self._records[transaction_id]

    def delete_for_user(self, user_id: str) -> int:
        doomed = [key for key, record in self._records.items() if record.user_id == user_id]
        for key in doomed:
            del self._records[key]
        return len(doomed)

    def clear(self) -> int:
        count = len(self._records)
        self._records.clear()
        return count


class InMemoryUserStore(_DictStore):
    """Dict-backed user store, optionally cascading deletes to a transaction store."""

    def __init__(self, transaction_store: InMemoryTransactionStore | None = None) -> None:
        self._records: dict[str, UserRecord] = {}
        self._transactions = transaction_store

    def list(self) -> list[UserRecord]:
        return list(self._records.values())

    def get(self, user_id: str) -> UserRecord:
        try:
            return self._records[user_id]
        except KeyError:
            raise UserNotFoundError(user_id) from None

    def add(self, data: Mapping[str, Any]) -> UserRecord:
        record = UserRecord(**_record_kwargs(UserRecord, data))
        self._insert(record)
        return record

    def update(self, user_id: str, patch: Mapping[str, Any]) -> UserRecord:
        _check_patch(patch, USER_FIELDS)
        record = replace(self.get(user_id), **patch)
        self._records[user_id] = record
        return record

    def delete(self, user_id: str) -> None:
        self.get(user_id)
        del self._records[user_id]
        if self._transactions is not None:
            self._transactions.delete_for_user(user_id)

    def clear(self) -> int:
        count = len(self._records)
        self._records.clear()
        return count
