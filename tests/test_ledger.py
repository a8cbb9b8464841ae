from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from unittest import IsolatedAsyncioTestCase
from unittest.mock import Mock
from zoneinfo import ZoneInfo

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from expensebot.db import create_engine
from expensebot.models import Base, ExpenseCategory
from expensebot.services.ledger import LedgerError, SqlLedger
from expensebot.services.users import UserNotFoundError

ALGIERS = ZoneInfo("Africa/Algiers")
USER_ID = 528101001
OTHER_USER_ID = 42


def at(day: int, hour: int = 12, month: int = 8) -> datetime:
    return datetime(2025, month, day, hour, tzinfo=ALGIERS)


class SqlLedgerTests(IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.engine = create_engine(
            "sqlite+aiosqlite://",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self.ledger = SqlLedger(
            async_sessionmaker(self.engine, expire_on_commit=False, class_=AsyncSession),
            clock=lambda: at(15),
        )

    async def asyncTearDown(self) -> None:
        await self.engine.dispose()

    async def test_create_user_is_idempotent(self) -> None:
        self.assertIsNone(await self.ledger.get_user(USER_ID))
        user = await self.ledger.create_user(USER_ID)
        self.assertEqual(user.balance, Decimal("0.00"))

        await self.ledger.set_balance(USER_ID, Decimal("5000"))
        again = await self.ledger.create_user(USER_ID)
        self.assertEqual(again.balance, Decimal("5000.00"))

    async def test_set_balance_requires_existing_user(self) -> None:
        with self.assertRaises(UserNotFoundError):
            await self.ledger.set_balance(USER_ID, Decimal("10"))

    async def test_adjust_balance_creates_missing_user(self) -> None:
        balance = await self.ledger.adjust_balance(USER_ID, Decimal("5000"))
        self.assertEqual(balance, Decimal("5000.00"))
        balance = await self.ledger.adjust_balance(USER_ID, Decimal("250.50"))
        self.assertEqual(balance, Decimal("5250.50"))

    async def test_add_expense_leaves_balance_alone(self) -> None:
        await self.ledger.create_user(USER_ID)
        expense = await self.ledger.add_expense(USER_ID, Decimal("99.999"), ExpenseCategory.BILLS)
        self.assertEqual(expense.amount, Decimal("100.00"))
        self.assertEqual(expense.description, "")
        user = await self.ledger.get_user(USER_ID)
        self.assertEqual(user.balance, Decimal("0.00"))

    async def test_record_expense_debits_balance(self) -> None:
        await self.ledger.adjust_balance(USER_ID, Decimal("5000"))
        expense, balance = await self.ledger.record_expense(
            USER_ID, Decimal("1200"), ExpenseCategory.FOOD, "lunch"
        )
        self.assertEqual(balance, Decimal("3800.00"))
        self.assertEqual(expense.category, ExpenseCategory.FOOD)
        self.assertEqual(expense.description, "lunch")
        expenses = await self.ledger.list_expenses(USER_ID)
        self.assertEqual([item.id for item in expenses], [expense.id])

    async def test_record_expense_may_overdraw_new_user(self) -> None:
        _expense, balance = await self.ledger.record_expense(
            USER_ID, Decimal("100"), ExpenseCategory.TRANSIT
        )
        self.assertEqual(balance, Decimal("-100.00"))

    async def test_list_expenses_is_inclusive_and_newest_first(self) -> None:
        await self.ledger.create_user(USER_ID)
        await self.ledger.create_user(OTHER_USER_ID)
        first = await self.ledger.add_expense(
            USER_ID, Decimal("10"), ExpenseCategory.FOOD, created_at=datetime(2025, 8, 1, tzinfo=ALGIERS)
        )
        last = await self.ledger.add_expense(
            USER_ID,
            Decimal("20"),
            ExpenseCategory.BILLS,
            created_at=datetime(2025, 8, 31, 23, 59, 59, 500000, tzinfo=ALGIERS),
        )
        await self.ledger.add_expense(USER_ID, Decimal("30"), ExpenseCategory.FOOD, created_at=at(1, month=9))
        await self.ledger.add_expense(OTHER_USER_ID, Decimal("40"), ExpenseCategory.FOOD, created_at=at(10))

        august = await self.ledger.list_expenses(
            USER_ID,
            datetime(2025, 8, 1, tzinfo=ALGIERS),
            datetime(2025, 8, 31, 23, 59, 59, 999999, tzinfo=ALGIERS),
        )
        self.assertEqual([item.id for item in august], [last.id, first.id])

        food = await self.ledger.list_expenses(USER_ID, category=ExpenseCategory.FOOD)
        self.assertEqual([item.amount for item in food], [Decimal("30.00"), Decimal("10.00")])

    async def test_same_timestamp_orders_by_insertion(self) -> None:
        await self.ledger.create_user(USER_ID)
        older = await self.ledger.add_expense(USER_ID, Decimal("1"), ExpenseCategory.FOOD)
        newer = await self.ledger.add_expense(USER_ID, Decimal("2"), ExpenseCategory.FOOD)
        expenses = await self.ledger.list_expenses(USER_ID)
        self.assertEqual([item.id for item in expenses], [newer.id, older.id])

    async def test_category_totals_sorted_by_total_then_name(self) -> None:
        await self.ledger.create_user(USER_ID)
        for amount, category in [
            ("500", ExpenseCategory.FOOD),
            ("700", ExpenseCategory.FOOD),
            ("300", ExpenseCategory.TRANSIT),
            ("300", ExpenseCategory.BILLS),
        ]:
            await self.ledger.add_expense(USER_ID, Decimal(amount), category)

        totals = await self.ledger.category_totals(USER_ID)
        self.assertEqual(
            totals,
            [
                (ExpenseCategory.FOOD, Decimal("1200.00")),
                (ExpenseCategory.BILLS, Decimal("300.00")),
                (ExpenseCategory.TRANSIT, Decimal("300.00")),
            ],
        )
        self.assertEqual(
            sum(total for _category, total in totals),
            sum(item.amount for item in await self.ledger.list_expenses(USER_ID)),
        )

    async def test_storage_failures_become_ledger_errors(self) -> None:
        async with self.engine.begin() as conn:
            await conn.execute(text("DROP TABLE expenses"))
        with self.assertRaises(LedgerError):
            await self.ledger.list_expenses(USER_ID)

    async def test_refused_connection_becomes_ledger_error(self) -> None:
        ledger = SqlLedger(Mock(side_effect=ConnectionRefusedError("connection refused")))
        with self.assertRaises(LedgerError) as ctx:
            await ledger.adjust_balance(USER_ID, Decimal("10"))
        self.assertIsInstance(ctx.exception.__cause__, ConnectionRefusedError)

    async def test_repeated_small_top_ups_stay_exact(self) -> None:
        for _ in range(300):
            await self.ledger.adjust_balance(USER_ID, Decimal("0.1"))
        for _ in range(5):
            balance = await self.ledger.adjust_balance(USER_ID, Decimal("999999999.99"))

        self.assertEqual(balance, Decimal("5000000029.95"))
        user = await self.ledger.get_user(USER_ID)
        self.assertEqual(user.balance, Decimal("5000000029.95"))

    async def test_expense_debits_stay_exact(self) -> None:
        await self.ledger.adjust_balance(USER_ID, Decimal("100"))
        for _ in range(30):
            _expense, balance = await self.ledger.record_expense(
                USER_ID, Decimal("0.1"), ExpenseCategory.FOOD
            )
        self.assertEqual(balance, Decimal("97.00"))
        totals = await self.ledger.category_totals(USER_ID)
        self.assertEqual(totals, [(ExpenseCategory.FOOD, Decimal("3.00"))])
