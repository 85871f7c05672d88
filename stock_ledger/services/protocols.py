# stock_ledger/services/protocols.py
"""
Protocol interfaces for service dependency injection.

Using typing.Protocol enables structural subtyping:
- ORM rows, dataclasses and test doubles all satisfy TransactionLike
- Stores can be swapped (database, in-memory) without inheritance
- Clear documentation of required interfaces
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from contextlib import AbstractContextManager
from datetime import date
from decimal import Decimal
from typing import Any, Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from stock_ledger.models import TransactionType


class TransactionLike(Protocol):
    """The attributes the ledger engine reads from a transaction."""

    id: Any
    user_id: str
    stock_code: str
    stock_name: str
    transaction_type: TransactionType
    quantity: int
    price: Decimal
    transaction_date: date


class UserLike(Protocol):
    id: str
    name: str


class TransactionStoreProtocol(Protocol):
    """Persistence capability consumed by LedgerService, ImportService and ExportService."""

    def list(self, user_id: str | None = None) -> Sequence[TransactionLike]:
        ...

    def get(self, transaction_id: str) -> TransactionLike:
        ...

    def add(self, data: Mapping[str, Any]) -> TransactionLike:
        ...

    def add_many(self, rows: Iterable[Mapping[str, Any]]) -> Sequence[TransactionLike]:
        ...

    def update(self, transaction_id: str, patch: Mapping[str, Any]) -> TransactionLike:
        ...

    def delete(self, transaction_id: str) -> None:
        ...

    def clear(self) -> int:
        ...

    def atomic(self) -> AbstractContextManager[None]:
        ...


class UserStoreProtocol(Protocol):
    """User persistence consumed by routers and ExportService."""

    def list(self) -> Sequence[UserLike]:
        ...

    def get(self, user_id: str) -> UserLike:
        ...

    def add(self, data: Mapping[str, Any]) -> UserLike:
        ...

    def update(self, user_id: str, patch: Mapping[str, Any]) -> UserLike:
        ...

    def delete(self, user_id: str) -> None:
        ...

    def clear(self) -> int:
        ...

    def atomic(self) -> AbstractContextManager[None]:
        ...
