from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..models.expense import Expense, ExpenseCategory
from ..models.user import User
from ..utils.money import quantize_amount
from .users import UserNotFoundError, create_user, lock_user


def _now() -> datetime:
    return datetime.now(get_settings().tzinfo)


def _apply_filters(
    stmt: Select,
    user_id: int,
    start: Optional[datetime],
    end: Optional[datetime],
    category: Optional[ExpenseCategory] = None,
) -> Select:
    stmt = stmt.where(Expense.user_id == user_id)
    if start:
        stmt = stmt.where(Expense.created_at >= start)
    if end:
        stmt = stmt.where(Expense.created_at <= end)
    if category:
        stmt = stmt.where(Expense.category == category)
    return stmt


async def add_expense(
    session: AsyncSession,
    user_id: int,
    amount: Decimal,
    category: ExpenseCategory,
    description: Optional[str] = None,
    *,
    created_at: Optional[datetime] = None,
) -> Expense:
    """Append an expense row without touching the balance."""
    if not await session.get(User, user_id):
        raise UserNotFoundError("User not found")
    expense = Expense(
        user_id=user_id,
        amount=quantize_amount(amount),
        category=ExpenseCategory(category),
        description=description or "",
        created_at=created_at or _now(),
    )
    session.add(expense)
    await session.commit()
    await session.refresh(expense)
    return expense


async def record_expense(
    session: AsyncSession,
    user_id: int,
    amount: Decimal,
    category: ExpenseCategory,
    description: Optional[str] = None,
    *,
    created_at: Optional[datetime] = None,
) -> tuple[Expense, User]:
    """Store an expense and debit the balance in one transaction."""
    await create_user(session, user_id)
    user = await lock_user(session, user_id)
    if not user:
        raise UserNotFoundError("User not found")
    amount = quantize_amount(amount)
    expense = Expense(
        user_id=user_id,
        amount=amount,
        category=ExpenseCategory(category),
        description=description or "",
        created_at=created_at or _now(),
    )
    session.add(expense)
    user.balance = quantize_amount((user.balance or Decimal("0")) - amount)
    await session.commit()
    await session.refresh(expense)
    await session.refresh(user)
    return expense, user


async def list_expenses(
    session: AsyncSession,
    user_id: int,
    *,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    category: Optional[ExpenseCategory] = None,
) -> Sequence[Expense]:
    """Every matching expense, newest first. Never truncated."""
    stmt: Select[tuple[Expense]] = _apply_filters(
        select(Expense), user_id, start, end, category
    ).order_by(Expense.created_at.desc(), Expense.id.desc())
    result = await session.execute(stmt)
    return result.scalars().all()


async def category_totals(
    session: AsyncSession,
    user_id: int,
    *,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> list[tuple[ExpenseCategory, Decimal]]:
    """Per-category sums for categories with at least one expense, largest first."""
    total = func.sum(Expense.amount).label("total")
    stmt = (
        _apply_filters(select(Expense.category, total), user_id, start, end)
        .group_by(Expense.category)
        .order_by(total.desc(), Expense.category.asc())
    )
    result = await session.execute(stmt)
    return [
        (ExpenseCategory(category), quantize_amount(Decimal(str(amount))))
        for category, amount in result.all()
    ]
