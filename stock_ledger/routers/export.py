# stock_ledger/routers/export.py
"""
Report downloads and full-ledger backup.

CSV endpoints return an empty body when there is nothing to report. The
backup endpoint returns a JSON document that the restore endpoint accepts
unchanged.
"""

import logging

from fastapi import APIRouter, Depends, Query, Response

from stock_ledger.dependencies import get_export_service, get_user_store
from stock_ledger.services.export import ExportService, LedgerBackup, RestoreResult
from stock_ledger.services.store import SqlAlchemyUserStore

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/export",
    tags=["Export"],
)

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
CSV_RESPONSES = {200: {"content": {"text/csv": {}}}, 404: {"description": "User not found"}}

_USER_QUERY = Query(default=None, description="Restrict to one user's transactions")


def _csv_download(content: str, kind: str) -> Response:
    filename = ExportService.export_filename(kind)
    # BOM so spreadsheet tools read the Chinese stock names correctly
    return Response(
        content=content.encode("utf-8-sig") if content else b"",
        media_type=CSV_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _check_user(user_id: str | None, users: SqlAlchemyUserStore) -> None:
    if user_id is not None:
        users.get(user_id)


# =============================================================================
# CSV REPORTS
# =============================================================================

@router.get("/users.csv", response_class=Response, responses={200: {"content": {"text/csv": {}}}}, summary="Users as CSV")
def export_users(service: ExportService = Depends(get_export_service)) -> Response:
    """Every user with contact details and the number of recorded trades."""
    return _csv_download(service.users_csv(), "users")


@router.get("/transactions.csv", response_class=Response, responses=CSV_RESPONSES, summary="Transactions as CSV")
def export_transactions(
        user_id: str | None = _USER_QUERY,
        service: ExportService = Depends(get_export_service),
        users: SqlAlchemyUserStore = Depends(get_user_store),
) -> Response:
    _check_user(user_id, users)
    return _csv_download(service.transactions_csv(user_id), "transactions")


@router.get("/positions.csv", response_class=Response, responses=CSV_RESPONSES, summary="Positions as CSV")
def export_positions(
        user_id: str | None = _USER_QUERY,
        with_quotes: bool = Query(default=False, description="Include current prices and unrealized P&L"),
        service: ExportService = Depends(get_export_service),
        users: SqlAlchemyUserStore = Depends(get_user_store),
) -> Response:
    _check_user(user_id, users)
    return _csv_download(service.positions_csv(user_id, with_quotes=with_quotes), "positions")


@router.get("/profits/users.csv", response_class=Response, responses=CSV_RESPONSES, summary="User P&L as CSV")
def export_user_profits(
        user_id: str | None = _USER_QUERY,
        service: ExportService = Depends(get_export_service),
        users: SqlAlchemyUserStore = Depends(get_user_store),
) -> Response:
    _check_user(user_id, users)
    return _csv_download(service.user_profits_csv(user_id), "user_profits")


@router.get("/profits/stocks.csv", response_class=Response, responses=CSV_RESPONSES, summary="Stock P&L as CSV")
def export_stock_profits(
        user_id: str | None = _USER_QUERY,
        service: ExportService = Depends(get_export_service),
        users: SqlAlchemyUserStore = Depends(get_user_store),
) -> Response:
    _check_user(user_id, users)
    return _csv_download(service.stock_profits_csv(user_id), "stock_profits")


# =============================================================================
# BACKUP / RESTORE
# =============================================================================

@router.get("/backup", response_model=LedgerBackup, summary="Download a full backup")
def create_backup(service: ExportService = Depends(get_export_service)) -> LedgerBackup:
    return service.create_backup()


@router.post(
    "/restore",
    response_model=RestoreResult,
    summary="Restore from a backup",
    responses={400: {"description": "Unsupported version, repeated ids or orphan transactions"}},
)
def restore_backup(
        backup: LedgerBackup,
        replace: bool = Query(default=True, description="Wipe existing data first; False merges by id"),
        service: ExportService = Depends(get_export_service),
) -> RestoreResult:
    """
    Load a document produced by GET /export/backup.

    With replace=true every existing user and transaction is deleted first.
    With replace=false records whose id already exists are kept and skipped.
A rejected or failed restore leaves the existing ledger unchanged.
    """
    return service.restore_backup(backup, replace=replace)
