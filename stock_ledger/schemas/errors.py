# stock_ledger/schemas/errors.py
"""
Error response envelopes used by the exception handlers in main.py.
"""

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Body of every non-validation error response."""

    error: str = Field(..., description="Error type, e.g. 'UserNotFoundError'")
    message: str = Field(..., description="Human-readable message")
    details: dict | None = Field(default=None, description="Structured context, if any")


class ValidationErrorDetail(BaseModel):
    """Body of 422 responses for malformed requests."""

    error: str = Field(default="ValidationError")
    message: str = Field(default="Request validation failed")
    details: list[dict] = Field(..., description="One entry per invalid field")
