from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models.expense import ExpenseCategory


class ExpenseCreate(BaseModel):
    amount: Decimal = Field(gt=0, max_digits=14, decimal_places=2)
    category: ExpenseCategory
    description: str = Field(default="", max_length=512)

    @field_validator("category", mode="before")
    @classmethod
    def _normalise_category(cls, value: ExpenseCategory | str) -> ExpenseCategory:
        """Accept category names in any case."""
        if isinstance(value, str):
            return ExpenseCategory(value.strip())
        return value

    @field_validator("description", mode="before")
    @classmethod
    def _strip_description(cls, value: str | None) -> str:
        return (value or "").strip()


class ExpenseRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    amount: Decimal
    category: ExpenseCategory
    description: str
    created_at: datetime


class ExpenseRecorded(BaseModel):
    expense: ExpenseRead
    balance: Decimal
