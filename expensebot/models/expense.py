from __future__ import annotations

from decimal import Decimal
from enum import Enum

from sqlalchemy import BigInteger, Enum as SqlEnum, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class ExpenseCategory(str, Enum):
    PERSONAL = "personal"
    FOOD = "food"
    FAMILY = "family"
    TRANSIT = "transit"
    BILLS = "bills"
    ENTERTAINMENT = "entertainment"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            normalized = value.strip().lower()
            for member in cls:
                if member.value == normalized:
                    return member
        return None

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @property
    def emoji(self) -> str:
        return CATEGORY_EMOJI[self]


CATEGORY_EMOJI: dict[ExpenseCategory, str] = {
    ExpenseCategory.PERSONAL: "🛍️",
    ExpenseCategory.FOOD: "🍔",
    ExpenseCategory.FAMILY: "👨‍👩‍👧‍👦",
    ExpenseCategory.TRANSIT: "🚌",
    ExpenseCategory.BILLS: "📄",
    ExpenseCategory.ENTERTAINMENT: "🎬",
}


class Expense(Base):
    """A single spend entry. Append-only: rows are never updated or deleted."""

    __tablename__ = "expenses"
    __table_args__ = (Index("ix_expenses_user_created", "user_id", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    category: Mapped[ExpenseCategory] = mapped_column(
        SqlEnum(
            ExpenseCategory,
            name="expensecategory",
            native_enum=False,
            values_callable=lambda enum: [member.value for member in enum],
            length=32,
        ),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(String(512), default="", nullable=False)

    user: Mapped["User"] = relationship(back_populates="expenses")


from .user import User  # noqa: E402
