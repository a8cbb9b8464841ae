from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from ..models.expense import ExpenseCategory
from ..services.reports import ExpenseReport
from .expense import ExpenseRead


class CategoryTotalRead(BaseModel):
    category: ExpenseCategory
    total: Decimal


class DateRangeRead(BaseModel):
    start: datetime
    end: datetime
    label: str


class ReportRead(BaseModel):
    label: str
    date_range: Optional[DateRangeRead] = None
    category: Optional[ExpenseCategory] = None
    total: Decimal
    transaction_count: int
    category_totals: list[CategoryTotalRead]
    expenses: list[ExpenseRead]

    @classmethod
    def from_report(cls, report: ExpenseReport) -> "ReportRead":
        date_range = None
        if report.date_range is not None:
            date_range = DateRangeRead(
                start=report.date_range.start,
                end=report.date_range.end,
                label=report.date_range.label,
            )
        return cls(
            label=report.label,
            date_range=date_range,
            category=report.category,
            total=report.total,
            transaction_count=len(report.expenses),
            category_totals=[
                CategoryTotalRead(category=category, total=total)
                for category, total in report.category_totals
            ],
            expenses=[ExpenseRead.model_validate(expense) for expense in report.expenses],
        )
