from .expense import ExpenseCreate, ExpenseRead, ExpenseRecorded
from .report import CategoryTotalRead, DateRangeRead, ReportRead
from .user import BalanceTopUp, BalanceUpdate, UserRead

__all__ = [
    "ExpenseCreate",
    "ExpenseRead",
    "ExpenseRecorded",
    "CategoryTotalRead",
    "DateRangeRead",
    "ReportRead",
    "BalanceTopUp",
    "BalanceUpdate",
    "UserRead",
]
