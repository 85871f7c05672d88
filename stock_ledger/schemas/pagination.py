# stock_ledger/schemas/pagination.py
"""
Pagination metadata for list endpoints.

Usage:
    return TransactionListResponse(
        items=page,
        pagination=PaginationMeta(total=total, skip=skip, limit=limit),
    )
"""

from pydantic import BaseModel, Field, computed_field


class PaginationMeta(BaseModel):
    """
    Offset pagination metadata.

    page and pages are 1-based and derived from skip, limit and total.
    """

    total: int = Field(..., ge=0, description="Items matching the query")
    skip: int = Field(..., ge=0, description="Items skipped")
    limit: int = Field(..., ge=1, description="Page size")

    @computed_field
    @property
    def page(self) -> int:
        return self.skip // self.limit + 1

    @computed_field
    @property
    def pages(self) -> int:
        return max(1, -(-self.total // self.limit))

    @computed_field
    @property
    def has_next(self) -> bool:
        return self.skip + self.limit < self.total

    @computed_field
    @property
    def has_previous(self) -> bool:
        return self.skip > 0
