# stock_ledger/schemas/users.py
"""
Pydantic schemas for ledger users (the people whose trades are recorded).
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UserBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, examples=["张三"])
    phone: str | None = Field(default=None, max_length=32, examples=["13800138000"])
    email: str | None = Field(default=None, max_length=255, examples=["zhangsan@example.com"])

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be blank")
        return v

    @field_validator("phone", "email")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None


class UserCreate(UserBase):
    pass


class UserUpdate(BaseModel):
    """All fields optional; only the fields sent are changed."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    phone: str | None = Field(default=None, max_length=32)
    email: str | None = Field(default=None, max_length=255)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be blank")
        return v


class UserResponse(UserBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime | None = None
