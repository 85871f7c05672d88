# stock_ledger/services/export/__init__.py
"""
Export package: CSV reports and JSON backups.

Usage:
    from stock_ledger.services.export import ExportService, LedgerBackup
"""

from stock_ledger.services.export.backup import (
    BackupTransaction,
    BackupUser,
    LedgerBackup,
    RestoreResult,
)
from stock_ledger.services.export.service import UNKNOWN_USER, ExportService

__all__ = [
    "ExportService",
    "LedgerBackup",
    "BackupUser",
    "BackupTransaction",
    "RestoreResult",
    "UNKNOWN_USER",
]
