# stock_ledger/routers/upload.py
"""
Broker file import endpoints.

Key features:
- Broker template auto-detection from the header row
- Partial imports: valid rows are saved, invalid rows are reported
- Rows already recorded for the user are skipped as duplicates
- Dry runs to preview an import without saving
"""

import logging

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile

from stock_ledger.dependencies import get_import_service
from stock_ledger.schemas.upload import BrokerResponse, ImportResponse, SupportedBrokersResponse
from stock_ledger.services.upload import AUTO_DETECT, ImportService, get_supported_extensions

logger = logging.getLogger(__name__)

# =============================================================================
# ROUTER SETUP
# =============================================================================

router = APIRouter(
    prefix="/upload",
    tags=["Upload"],
)

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"


def _attachment(filename: str) -> dict[str, str]:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get(
    "/brokers",
    response_model=SupportedBrokersResponse,
    summary="List broker templates",
)
def list_brokers(service: ImportService = Depends(get_import_service)) -> SupportedBrokersResponse:
    """
    Broker templates the importer understands, with their column headers,
    and the accepted file extensions.
    """
    return SupportedBrokersResponse(
        brokers=[
            BrokerResponse(
                key=info.key,
                display_name=info.display_name,
                date_format=info.date_format,
                columns=list(info.columns),
            )
            for info in service.list_brokers()
        ],
        extensions=get_supported_extensions(),
    )


@router.get(
    "/templates/{broker}",
    summary="Download a sample import file",
    response_class=Response,
    responses={
        200: {"content": {"text/csv": {}}},
        400: {"description": "Unknown broker"},
    },
)
def download_template(
        broker: str,
        service: ImportService = Depends(get_import_service),
) -> Response:
    content = service.generate_template(broker)
    return Response(
        content=content.encode("utf-8-sig"),
        media_type=CSV_MEDIA_TYPE,
        headers=_attachment(f"import_template_{broker.lower()}.csv"),
    )


@router.post(
    "/transactions",
    response_model=ImportResponse,
    summary="Import transactions from a broker export",
    responses={
        200: {"description": "Import processed (check 'success' and 'errors')"},
        400: {"description": "Unsupported file type, unknown broker or file too large"},
        404: {"description": "User not found"},
    },
)
def upload_transactions(
        file: UploadFile = File(..., description="Broker CSV export"),
        user_id: str = Form(..., description="Owner of the imported trades"),
        broker: str = Form(default=AUTO_DETECT, description="Template key, or 'auto' to detect"),
        dry_run: bool = Form(default=False, description="Parse and check without saving"),
        service: ImportService = Depends(get_import_service),
) -> ImportResponse:
    """
    Import a CSV exported from a broker.

    **Behavior:**
    - **Detection:** with broker=auto the template whose columns best match
      the header row is used; confidence reports the share of columns matched.
    - **Partial:** every valid row is saved, each invalid row is listed in
      errors with its row number (the header is row 1).
    - **Duplicates:** a row matching an existing trade of the same user on
      date, code, type, price and quantity is skipped.

    **Example request:**

    ```bash
    curl -X POST "http://localhost:8000/upload/transactions" \\
      -F "file=@huatai.csv" -F "user_id=3f0c..." -F "broker=auto"
    ```

    We return 200 even when rows fail; the body tells what happened.
    """
    result = service.import_file(
        file=file.file,
        filename=file.filename or "unknown",
        user_id=user_id,
        broker=broker,
        content_type=file.content_type,
        dry_run=dry_run,
    )

    if result.success:
        logger.info(f"Import successful: {result.saved_count} transactions created")
    else:
        logger.warning(f"Import failed: {'; '.join(result.error_messages[:3])}")

    return ImportResponse.from_result(result)


@router.post(
    "/transactions/errors",
    summary="Validate a file and download its error report",
    response_class=Response,
    responses={200: {"content": {"text/csv": {}}}},
)
def upload_error_report(
        file: UploadFile = File(...),
        user_id: str = Form(...),
        broker: str = Form(default=AUTO_DETECT),
        service: ImportService = Depends(get_import_service),
) -> Response:
    """Dry-run the import and return one CSV line per problem found."""
    result = service.import_file(
        file=file.file,
        filename=file.filename or "unknown",
        user_id=user_id,
        broker=broker,
        content_type=file.content_type,
        dry_run=True,
    )
    stem = (file.filename or "import").rsplit(".", 1)[0]
    return Response(
        content=service.build_error_report(result.errors).encode("utf-8-sig"),
        media_type=CSV_MEDIA_TYPE,
        headers=_attachment(f"{stem}_errors.csv"),
    )
