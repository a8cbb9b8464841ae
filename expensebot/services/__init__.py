from .expenses import add_expense, category_totals, list_expenses, record_expense
from .ledger import LedgerError, LedgerStore, SqlLedger
from .periods import DateRange, InvalidPeriod, resolve
from .reports import ExpenseReport, build_report
from .users import UserNotFoundError, adjust_balance, create_user, get_user, set_balance

__all__ = [
    "add_expense",
    "record_expense",
    "list_expenses",
    "category_totals",
    "create_user",
    "get_user",
    "set_balance",
    "adjust_balance",
    "UserNotFoundError",
    "LedgerError",
    "LedgerStore",
    "SqlLedger",
    "DateRange",
    "InvalidPeriod",
    "resolve",
    "ExpenseReport",
    "build_report",
]
