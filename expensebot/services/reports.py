from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from ..models.expense import Expense, ExpenseCategory
from .periods import DateRange

if TYPE_CHECKING:
    from .ledger import LedgerStore


@dataclass
class ExpenseReport:
    """Spending totals and the full matching expense list for one query."""

    date_range: Optional[DateRange]
    category: Optional[ExpenseCategory]
    total: Decimal
    category_totals: list[tuple[ExpenseCategory, Decimal]] = field(default_factory=list)
    expenses: Sequence[Expense] = field(default_factory=list)

    @property
    def label(self) -> str:
        if self.category and self.date_range:
            return f"{self.category.label} - {self.date_range.label}"
        if self.category:
            return self.category.label
        if self.date_range:
            return self.date_range.label
        return "All Time"

    @property
    def is_empty(self) -> bool:
        return not self.expenses


def sum_amounts(expenses: Sequence[Expense]) -> Decimal:
    return sum((expense.amount for expense in expenses), Decimal("0.00"))


async def build_report(
    ledger: "LedgerStore",
    user_id: int,
    date_range: Optional[DateRange] = None,
    category: Optional[ExpenseCategory] = None,
) -> ExpenseReport:
    start = date_range.start if date_range else None
    end = date_range.end if date_range else None
    expenses = await ledger.list_expenses(user_id, start, end, category)
    if category:
        totals = [(category, sum_amounts(expenses))] if expenses else []
    else:
        totals = await ledger.category_totals(user_id, start, end)
    return ExpenseReport(
        date_range=date_range,
        category=category,
        total=sum_amounts(expenses),
        category_totals=totals,
        expenses=expenses,
    )
