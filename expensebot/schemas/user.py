from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    balance: Decimal
    created_at: datetime


class BalanceUpdate(BaseModel):
    """Replace the balance outright; negative values record debt."""

    balance: Decimal = Field(max_digits=14, decimal_places=2)


class BalanceTopUp(BaseModel):
    amount: Decimal = Field(gt=0, max_digits=14, decimal_places=2)
