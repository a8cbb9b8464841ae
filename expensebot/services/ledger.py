"""Ledger access for the conversation layer.

``SqlLedger`` opens one database session per operation and turns any
SQLAlchemy or connection failure into ``LedgerError`` so callers have a single storage
error to handle.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable, Sequence
from datetime import datetime
from decimal import Decimal
from typing import Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models.expense import Expense, ExpenseCategory
from ..models.user import User
from . import expenses as expense_service
from . import users as user_service

logger = logging.getLogger(__name__)


class LedgerError(RuntimeError):
    """Raised when the ledger storage cannot complete an operation."""


class LedgerStore(Protocol):
    async def get_user(self, user_id: int) -> Optional[User]: ...

    async def create_user(self, user_id: int) -> User: ...

    async def set_balance(self, user_id: int, balance: Decimal) -> None: ...

    async def add_expense(
        self,
        user_id: int,
        amount: Decimal,
        category: ExpenseCategory,
        description: str = "",
    ) -> Expense: ...

    async def list_expenses(
        self,
        user_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        category: Optional[ExpenseCategory] = None,
    ) -> Sequence[Expense]: ...

    async def category_totals(
        self,
        user_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[tuple[ExpenseCategory, Decimal]]: ...

    async def adjust_balance(self, user_id: int, delta: Decimal) -> Decimal: ...

    async def record_expense(
        self,
        user_id: int,
        amount: Decimal,
        category: ExpenseCategory,
        description: str = "",
    ) -> tuple[Expense, Decimal]: ...


def _storage_errors(func):
    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs):
        # asyncpg can surface a refused connection as a bare OSError.
        try:
            return await func(self, *args, **kwargs)
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("Ledger operation %s failed: %s", func.__name__, exc)
            raise LedgerError(f"Ledger operation {func.__name__} failed") from exc

    return wrapper


class SqlLedger:
    """Ledger store backed by the relational ``users``/``expenses`` schema."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    def _stamp(self) -> datetime | None:
        return self._clock() if self._clock else None

    @_storage_errors
    async def get_user(self, user_id: int) -> Optional[User]:
        async with self._session_factory() as session:
            return await user_service.get_user(session, user_id)

    @_storage_errors
    async def create_user(self, user_id: int) -> User:
        async with self._session_factory() as session:
            return await user_service.create_user(session, user_id)

    @_storage_errors
    async def set_balance(self, user_id: int, balance: Decimal) -> None:
        async with self._session_factory() as session:
            await user_service.set_balance(session, user_id, balance)

    @_storage_errors
    async def add_expense(
        self,
        user_id: int,
        amount: Decimal,
        category: ExpenseCategory,
        description: str = "",
        *,
        created_at: datetime | None = None,
    ) -> Expense:
        async with self._session_factory() as session:
            return await expense_service.add_expense(
                session,
                user_id,
                amount,
                category,
                description,
                created_at=created_at or self._stamp(),
            )

    @_storage_errors
    async def list_expenses(
        self,
        user_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        category: Optional[ExpenseCategory] = None,
    ) -> Sequence[Expense]:
        async with self._session_factory() as session:
            return await expense_service.list_expenses(
                session, user_id, start=start, end=end, category=category
            )

    @_storage_errors
    async def category_totals(
        self,
        user_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[tuple[ExpenseCategory, Decimal]]:
        async with self._session_factory() as session:
            return await expense_service.category_totals(session, user_id, start=start, end=end)

    @_storage_errors
    async def adjust_balance(self, user_id: int, delta: Decimal) -> Decimal:
        async with self._session_factory() as session:
            user = await user_service.adjust_balance(session, user_id, delta)
            return user.balance

    @_storage_errors
    async def record_expense(
        self,
        user_id: int,
        amount: Decimal,
        category: ExpenseCategory,
        description: str = "",
        *,
        created_at: datetime | None = None,
    ) -> tuple[Expense, Decimal]:
        async with self._session_factory() as session:
            expense, user = await expense_service.record_expense(
                session,
                user_id,
                amount,
                category,
                description,
                created_at=created_at or self._stamp(),
            )
            return expense, user.balance
