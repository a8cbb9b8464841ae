from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from unittest import IsolatedAsyncioTestCase
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from expensebot.conversation.render import format_report
from expensebot.db import create_engine
from expensebot.models import Base, Expense, ExpenseCategory
from expensebot.services.ledger import SqlLedger
from expensebot.services.periods import resolve
from expensebot.services.reports import ExpenseReport, build_report

ALGIERS = ZoneInfo("Africa/Algiers")
NOW = datetime(2025, 8, 15, 18, 0, tzinfo=ALGIERS)
USER_ID = 528101001


class ReportTests(IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.engine = create_engine(
            "sqlite+aiosqlite://",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self.ledger = SqlLedger(
            async_sessionmaker(self.engine, expire_on_commit=False, class_=AsyncSession)
        )
        await self.ledger.create_user(USER_ID)

    async def asyncTearDown(self) -> None:
        await self.engine.dispose()

    async def _add(self, amount: str, category: ExpenseCategory, day: int, description: str = "") -> None:
        await self.ledger.add_expense(
            USER_ID,
            Decimal(amount),
            category,
            description,
            created_at=datetime(2025, 8, day, 12, tzinfo=ALGIERS),
        )

    async def test_totals_match_listed_expenses(self) -> None:
        await self._add("500", ExpenseCategory.FOOD, 14)
        await self._add("700", ExpenseCategory.FOOD, 15, "dinner")
        await self._add("300", ExpenseCategory.BILLS, 15)

        report = await build_report(self.ledger, USER_ID, resolve("this week", NOW))

        self.assertEqual(report.total, Decimal("1500.00"))
        self.assertEqual(len(report.expenses), 3)
        self.assertEqual(
            report.category_totals,
            [(ExpenseCategory.FOOD, Decimal("1200.00")), (ExpenseCategory.BILLS, Decimal("300.00"))],
        )
        self.assertEqual(report.label, "This Week")

    async def test_category_report_is_all_time(self) -> None:
        await self._add("500", ExpenseCategory.FOOD, 1)
        await self._add("300", ExpenseCategory.BILLS, 2)

        report = await build_report(self.ledger, USER_ID, category=ExpenseCategory.FOOD)

        self.assertEqual(report.total, Decimal("500.00"))
        self.assertEqual(report.category_totals, [(ExpenseCategory.FOOD, Decimal("500.00"))])
        self.assertEqual(report.label, "Food")

    async def test_empty_report(self) -> None:
        report = await build_report(self.ledger, USER_ID, resolve("today", NOW))

        self.assertTrue(report.is_empty)
        self.assertEqual(report.total, Decimal("0.00"))
        self.assertEqual(report.category_totals, [])
        self.assertEqual(format_report(report, "DZD", 10), "📊 No expenses found for Today.")

    async def test_preview_is_truncated_but_total_is_not(self) -> None:
        for day in range(1, 13):
            await self._add("100", ExpenseCategory.TRANSIT, day)

        report = await build_report(self.ledger, USER_ID, resolve("this month", NOW))
        text = format_report(report, "DZD", 10)

        self.assertEqual(report.total, Decimal("1200.00"))
        self.assertIn("💰 Total Spent: 1,200.00 DZD", text)
        self.assertIn("🧾 Transactions: 12", text)
        self.assertIn("...and 2 more transactions", text)
        self.assertEqual(text.count("🚌 100.00 DZD"), 10)

    async def test_format_lists_description_and_breakdown(self) -> None:
        await self._add("1200", ExpenseCategory.FOOD, 15, "lunch")

        report = await build_report(self.ledger, USER_ID, resolve("today", NOW))
        text = format_report(report, "DZD", 10)

        self.assertIn("📊 Expense Report - Today", text)
        self.assertIn("By Category:", text)
        self.assertIn("🍔 Food: 1,200.00 DZD", text)
        self.assertIn("🍔 1,200.00 DZD - Food (lunch) - 2025-08-15", text)
        self.assertNotIn("more transactions", text)

    def test_utc_timestamps_are_dated_in_the_report_zone(self) -> None:
        # 23:30 UTC on the 14th is 00:30 on the 15th in Algiers.
        expense = Expense(
            user_id=USER_ID,
            amount=Decimal("5.00"),
            category=ExpenseCategory.FOOD,
            description="",
            created_at=datetime(2025, 8, 14, 23, 30, tzinfo=timezone.utc),
        )
        date_range = resolve("2025-08-15", NOW)
        report = ExpenseReport(
            date_range=date_range,
            category=None,
            total=Decimal("5.00"),
            category_totals=[(ExpenseCategory.FOOD, Decimal("5.00"))],
            expenses=[expense],
        )

        self.assertTrue(date_range.start <= expense.created_at <= date_range.end)
        self.assertIn("🍔 5.00 DZD - Food - 2025-08-15", format_report(report, "DZD", 10))

    def test_category_report_uses_given_zone(self) -> None:
        expense = Expense(
            user_id=USER_ID,
            amount=Decimal("5.00"),
            category=ExpenseCategory.FOOD,
            description="",
            created_at=datetime(2025, 8, 14, 23, 30, tzinfo=timezone.utc),
        )
        report = ExpenseReport(
            date_range=None,
            category=ExpenseCategory.FOOD,
            total=Decimal("5.00"),
            category_totals=[(ExpenseCategory.FOOD, Decimal("5.00"))],
            expenses=[expense],
        )

        self.assertIn("🍔 5.00 DZD - 2025-08-14", format_report(report, "DZD", 10))
        self.assertIn("🍔 5.00 DZD - 2025-08-15", format_report(report, "DZD", 10, tz=ALGIERS))
