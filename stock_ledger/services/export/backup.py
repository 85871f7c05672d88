# stock_ledger/services/export/backup.py
"""
Backup document format.

A backup is a self-contained JSON document with every user and transaction.
Ids and creation timestamps are kept so a restore reproduces the ledger
exactly, including the order of same-day trades.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from stock_ledger.models import TransactionType
from stock_ledger.services.constants import BACKUP_FORMAT_VERSION


class BackupUser(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str = Field(..., min_length=1, max_length=100)
    phone: str | None = None
    email: str | None = None
    created_at: datetime | None = None


class BackupTransaction(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    stock_code: str = Field(..., pattern=r"^\d{6}$")
    stock_name: str = ""
    transaction_type: TransactionType
    quantity: int = Field(..., gt=0)
    price: Decimal = Field(..., gt=0)
    transaction_date: date
    notes: str | None = None
    created_at: datetime | None = None

    @field_validator("stock_name", mode="before")
    @classmethod
    def default_name(cls, v: str | None) -> str:
        return v or ""


class LedgerBackup(BaseModel):
    """
    Full ledger snapshot.

    Attributes:
        version: Document format version
        created_at: When the backup was taken
        users: All users
        transactions: All transactions, in insertion order
    """

    version: str = BACKUP_FORMAT_VERSION
    created_at: datetime
    users: list[BackupUser] = Field(default_factory=list)
    transactions: list[BackupTransaction] = Field(default_factory=list)


class RestoreResult(BaseModel):
    users_restored: int = 0
    transactions_restored: int = 0
    users_skipped: int = 0
    transactions_skipped: int = 0
    replaced: bool = True
