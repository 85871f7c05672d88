# stock_ledger/schemas/upload.py
"""
Pydantic schemas for the import endpoints.
"""

from pydantic import BaseModel, Field


class ImportErrorResponse(BaseModel):
    row_number: int = Field(..., description="1-based row, header is row 1; 0 for file-level errors")
    error_type: str
    message: str
    display: str = Field(..., examples=["Row 3: trade date is required; price must be greater than 0"])


class ImportResponse(BaseModel):
    """
    Result of an import. success is False when no row could be imported or
    the file itself was rejected; check errors for details.
    """

    success: bool
    filename: str
    dry_run: bool
    broker: str = Field(..., examples=["huatai"])
    broker_name: str = Field(..., examples=["华泰证券"])
    confidence: float = Field(..., ge=0, le=1)
    confidence_percent: int = Field(..., ge=0, le=100)
    total_rows: int
    valid_count: int
    saved_count: int
    duplicate_count: int
    invalid_count: int
    errors: list[ImportErrorResponse] = Field(default_factory=list)
    created_transaction_ids: list[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result) -> "ImportResponse":
        return cls(
            success=result.success,
            filename=result.filename,
            dry_run=result.dry_run,
            broker=result.broker,
            broker_name=result.broker_name,
            confidence=float(result.confidence),
            confidence_percent=result.confidence_percent,
            total_rows=result.total_rows,
            valid_count=result.valid_count,
            saved_count=result.saved_count,
            duplicate_count=result.duplicate_count,
            invalid_count=result.invalid_count,
            errors=[
                ImportErrorResponse(
                    row_number=error.row_number,
                    error_type=error.error_type,
                    message=error.message,
                    display=error.display(),
                )
                for error in result.errors
            ],
            created_transaction_ids=result.created_transaction_ids,
        )


class BrokerResponse(BaseModel):
    key: str
    display_name: str
    date_format: str
    columns: list[str]


class SupportedBrokersResponse(BaseModel):
    brokers: list[BrokerResponse]
    extensions: list[str]
