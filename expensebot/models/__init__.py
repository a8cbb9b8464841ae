from .base import Base
from .expense import CATEGORY_EMOJI, Expense, ExpenseCategory
from .user import User

__all__ = [
    "Base",
    "CATEGORY_EMOJI",
    "Expense",
    "ExpenseCategory",
    "User",
]
