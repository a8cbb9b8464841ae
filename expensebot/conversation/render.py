from __future__ import annotations

import textwrap
from datetime import tzinfo
from decimal import Decimal
from typing import Optional

from ..models.expense import Expense, ExpenseCategory
from ..services.periods import PERIOD_FORMAT_HELP
from ..services.reports import ExpenseReport
from ..utils.money import format_amount_for_display
from .events import (
    Action,
    Choice,
    OutboundMessage,
    category_action,
    report_action,
    search_category_action,
)

HELP_TEXT = textwrap.dedent(
    """
    Expenses Tracker help

    Features:
    - Add Balance: add money to your account (/balance).
    - Add Expense: record spending, pick a category, add a note (/expense).
    - Reports: today, yesterday, this/last week, this/last month, a custom range, or one category (/report [range]).
    - Check Balance: see what is left (/check).
    - /cancel abandons whatever you were entering.

    Categories:
    {categories}

    Balance:
    - A positive balance is money available.
    - A negative balance tracks debt or overspending.
    - Every expense is deducted automatically.
    """
).strip()

CANNED_PERIODS: list[tuple[str, str]] = [
    ("📅 Today", "today"),
    ("📅 Yesterday", "yesterday"),
    ("📊 This Week", "this week"),
    ("📊 Last Week", "last week"),
    ("📈 This Month", "this month"),
    ("📈 Last Month", "last month"),
]

MAIN_MENU_CHOICES: tuple[tuple[Choice, ...], ...] = (
    (
        Choice("💰 Add Balance", Action.ADD_BALANCE.value),
        Choice("💸 Add Expense", Action.ADD_EXPENSE.value),
    ),
    (
        Choice("📊 View Report", Action.VIEW_REPORTS.value),
        Choice("👛 Check Balance", Action.CHECK_BALANCE.value),
    ),
    (Choice("❓ Help", Action.HELP.value),),
)

BACK_TO_MENU_CHOICES = ((Choice("🔙 Back to Menu", Action.BACK_TO_MENU.value),),)
BACK_TO_REPORTS_CHOICES = ((Choice("🔙 Back to Reports", Action.VIEW_REPORTS.value),),)
CANCEL_CHOICES = ((Choice("❌ Cancel", Action.CANCEL.value),),)


def _pairs(choices: list[Choice]) -> tuple[tuple[Choice, ...], ...]:
    return tuple(tuple(choices[index:index + 2]) for index in range(0, len(choices), 2))


def category_label(category: ExpenseCategory) -> str:
    return f"{category.emoji} {category.label}"


def category_choices() -> tuple[tuple[Choice, ...], ...]:
    buttons = [Choice(category_label(category), category_action(category)) for category in ExpenseCategory]
    return _pairs(buttons) + CANCEL_CHOICES


def search_category_choices() -> tuple[tuple[Choice, ...], ...]:
    buttons = [
        Choice(category_label(category), search_category_action(category)) for category in ExpenseCategory
    ]
    return _pairs(buttons) + BACK_TO_REPORTS_CHOICES


def report_menu_choices() -> tuple[tuple[Choice, ...], ...]:
    buttons = [Choice(label, report_action(period)) for label, period in CANNED_PERIODS]
    return _pairs(buttons) + (
        (
            Choice("🔍 Custom Search", Action.CUSTOM_RANGE.value),
            Choice("📂 By Category", Action.CATEGORY_SEARCH.value),
        ),
    ) + BACK_TO_MENU_CHOICES


def skip_description_choices() -> tuple[tuple[Choice, ...], ...]:
    return ((Choice("⏭️ Skip Description", Action.SKIP_DESCRIPTION.value),),) + CANCEL_CHOICES


def help_text() -> str:
    categories = "\n".join(f"- {category_label(category)}" for category in ExpenseCategory)
    return HELP_TEXT.format(categories=categories)


def format_balance(balance: Decimal, currency: str) -> str:
    amount = format_amount_for_display(balance, currency)
    if balance < 0:
        return f"🔴 Balance: {amount} (in debt)"
    return f"🟢 Balance: {amount}"


def main_menu(balance: Decimal, currency: str) -> OutboundMessage:
    return OutboundMessage(
        f"🎯 Expenses Tracker\n\n{format_balance(balance, currency)}\n\n"
        "Use the buttons below to manage your expenses:",
        choices=MAIN_MENU_CHOICES,
    )


def format_expense_line(
    expense: Expense, currency: str, *, show_category: bool = True, tz: Optional[tzinfo] = None
) -> str:
    category = ExpenseCategory(expense.category)
    line = f"{category.emoji} {format_amount_for_display(expense.amount, currency)}"
    if show_category:
        line += f" - {category.label}"
    if expense.description:
        line += f" ({expense.description})"
    created_at = expense.created_at
    # Postgres hands back UTC; SQLite hands back naive local wall time.
    if tz is not None and created_at.tzinfo is not None:
        created_at = created_at.astimezone(tz)
    return f"{line} - {created_at.date().isoformat()}"


def format_report(report: ExpenseReport, currency: str, limit: int, tz: Optional[tzinfo] = None) -> str:
    """Render a report, listing at most ``limit`` transactions.

    Transaction dates are shown in ``tz``, falling back to the zone of the
    report's own range.
    """
    if report.is_empty:
        return f"📊 No expenses found for {report.label}."

    lines = [
        f"📊 Expense Report - {report.label}",
        "",
        f"💰 Total Spent: {format_amount_for_display(report.total, currency)}",
        f"🧾 Transactions: {len(report.expenses)}",
    ]
    if tz is None and report.date_range is not None:
        tz = report.date_range.start.tzinfo
    if report.date_range is not None:
        lines.append(
            f"🗓️ {report.date_range.start.date().isoformat()} - {report.date_range.end.date().isoformat()}"
        )

    if report.category is None and report.category_totals:
        lines.extend(["", "By Category:"])
        for category, total in report.category_totals:
            lines.append(f"{category_label(category)}: {format_amount_for_display(total, currency)}")

    lines.extend(["", "Recent Transactions:"])
    for expense in report.expenses[:limit]:
        lines.append(format_expense_line(expense, currency, show_category=report.category is None, tz=tz))

    hidden = len(report.expenses) - limit
    if hidden > 0:
        lines.append("")
        lines.append(f"...and {hidden} more transactions")
    return "\n".join(lines)


def invalid_period_message(prompt: str) -> str:
    return f"❌ Invalid date format.\n\n{PERIOD_FORMAT_HELP}\n\n{prompt}"
