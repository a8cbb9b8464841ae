"""Transition function for the chat conversation.

``ConversationMachine.handle`` takes one ``InboundEvent``, runs it against the
sender's session and returns the messages to send back. Ledger failures leave
the session exactly as it was before the event and propagate to the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from decimal import Decimal
from typing import Optional

from ..config import get_settings
from ..models.expense import ExpenseCategory
from ..services.ledger import LedgerError, LedgerStore
from ..services.periods import DateRange, InvalidPeriod, is_range_expression, resolve, resolve_single
from ..services.reports import build_report
from ..utils.money import InvalidAmountError, format_amount_for_display, parse_amount_token
from . import render
from .events import (
    Action,
    Command,
    EventKind,
    InboundEvent,
    OutboundMessage,
    Selection,
    UnknownActionError,
    parse_action,
    parse_command,
)
from .session import ConversationState, MissingSessionPrecondition, Session, SessionStore

logger = logging.getLogger(__name__)

DEFAULT_REPORT_PERIOD = "this month"

Replies = list[OutboundMessage]
CommandHandler = Callable[[int, Session, str], Awaitable[Replies]]
SelectionHandler = Callable[[int, Session, Selection], Awaitable[Replies]]
TextHandler = Callable[[int, Session, str], Awaitable[Replies]]


def _local_now() -> datetime:
    return datetime.now(get_settings().tzinfo)


class ConversationMachine:
    def __init__(
        self,
        ledger: LedgerStore,
        sessions: SessionStore | None = None,
        *,
        clock: Callable[[], datetime] = _local_now,
        currency: str = "DZD",
        preview_limit: int = 10,
    ) -> None:
        self.ledger = ledger
        self.sessions = sessions or SessionStore()
        self.clock = clock
        self.currency = currency
        self.preview_limit = preview_limit

        self._command_handlers: dict[Command, CommandHandler] = {
            Command.START: self._on_start,
            Command.HELP: self._on_help_command,
            Command.BALANCE: self._on_begin_balance,
            Command.EXPENSE: self._on_begin_expense,
            Command.REPORT: self._on_report_command,
            Command.CHECK: self._on_check_balance,
            Command.CANCEL: self._on_cancel,
        }
        self._selection_handlers: dict[Action, SelectionHandler] = {
            Action.ADD_BALANCE: self._select(self._on_begin_balance),
            Action.ADD_EXPENSE: self._select(self._on_begin_expense),
            Action.VIEW_REPORTS: self._on_view_reports,
            Action.CHECK_BALANCE: self._select(self._on_check_balance),
            Action.HELP: self._select(self._on_help_command),
            Action.SELECT_CATEGORY: self._on_category_selected,
            Action.SKIP_DESCRIPTION: self._on_skip_description,
            Action.REPORT_PERIOD: self._on_report_period,
            Action.CUSTOM_RANGE: self._on_custom_range,
            Action.CATEGORY_SEARCH: self._on_category_search,
            Action.SEARCH_CATEGORY: self._on_search_category,
            Action.CANCEL: self._select(self._on_cancel),
            Action.BACK_TO_MENU: self._select(self._on_start),
        }
        self._text_handlers: dict[ConversationState, TextHandler] = {
            ConversationState.IDLE: self._on_idle_text,
            ConversationState.AWAITING_BALANCE_AMOUNT: self._on_balance_amount,
            ConversationState.AWAITING_EXPENSE_AMOUNT: self._on_expense_amount,
            ConversationState.AWAITING_CATEGORY: self._on_category_text,
            ConversationState.AWAITING_DESCRIPTION: self._on_description,
            ConversationState.AWAITING_CUSTOM_RANGE_START: self._on_custom_range_start,
            ConversationState.AWAITING_CUSTOM_RANGE_END: self._on_custom_range_end,
        }
        missing = (set(Command) - set(self._command_handlers)) | (
            set(Action) - set(self._selection_handlers)
        ) | (set(ConversationState) - set(self._text_handlers))
        if missing:
            raise RuntimeError(f"Unhandled conversation inputs: {sorted(str(item) for item in missing)}")

    async def handle(self, event: InboundEvent) -> Replies:
        async with self.sessions.acquire(event.user_id) as session:
            snapshot = session.snapshot()
            try:
                return await self._dispatch(event, session)
            except MissingSessionPrecondition as exc:
                logger.warning("Abandoning flow for user %s: %s", event.user_id, exc)
                session.reset()
                return [
                    OutboundMessage(
                        "❌ Something went wrong with that entry. Please start over.",
                        choices=render.MAIN_MENU_CHOICES,
                    )
                ]
            except LedgerError:
                session.restore(snapshot)
                raise

    async def _dispatch(self, event: InboundEvent, session: Session) -> Replies:
        if event.kind == EventKind.COMMAND:
            try:
                command, args = parse_command(event.payload)
            except UnknownActionError:
                return [OutboundMessage("Unknown command. Send /help to see what I can do.")]
            return await self._command_handlers[command](event.user_id, session, args)
        if event.kind == EventKind.SELECTION:
            try:
                selection = parse_action(event.payload)
            except UnknownActionError:
                return [OutboundMessage("❌ Invalid option", ephemeral=True)]
            return await self._selection_handlers[selection.action](event.user_id, session, selection)
        if event.kind == EventKind.TEXT:
            return await self._text_handlers[session.state](event.user_id, session, event.payload)
        raise ValueError(f"Unsupported event kind: {event.kind}")

    @staticmethod
    def _select(handler: CommandHandler) -> SelectionHandler:
        async def wrapper(user_id: int, session: Session, selection: Selection) -> Replies:
            return await handler(user_id, session, "")

        return wrapper

    def _money(self, amount: Decimal) -> str:
        return format_amount_for_display(amount, self.currency)

    # --- top-level requests -------------------------------------------------

    async def _on_start(self, user_id: int, session: Session, _args: str) -> Replies:
        user = await self.ledger.create_user(user_id)
        session.reset()
        return [render.main_menu(user.balance, self.currency)]

    async def _on_help_command(self, user_id: int, session: Session, _args: str) -> Replies:
        return [OutboundMessage(render.help_text(), choices=render.BACK_TO_MENU_CHOICES)]

    async def _on_check_balance(self, user_id: int, session: Session, _args: str) -> Replies:
        user = await self.ledger.create_user(user_id)
        return [
            OutboundMessage(
                render.format_balance(user.balance, self.currency),
                choices=render.MAIN_MENU_CHOICES,
            )
        ]

    async def _on_cancel(self, user_id: int, session: Session, _args: str) -> Replies:
        was_idle = session.is_idle
        session.reset()
        text = "Nothing to cancel." if was_idle else "❌ Cancelled."
        return [OutboundMessage(text, choices=render.MAIN_MENU_CHOICES)]

    async def _on_begin_balance(self, user_id: int, session: Session, _args: str) -> Replies:
        session.begin(ConversationState.AWAITING_BALANCE_AMOUNT)
        return [
            OutboundMessage(
                f"💰 Enter the amount to add to your balance (in {self.currency}):",
                choices=render.CANCEL_CHOICES,
            )
        ]

    async def _on_begin_expense(self, user_id: int, session: Session, _args: str) -> Replies:
        session.begin(ConversationState.AWAITING_EXPENSE_AMOUNT)
        return [
            OutboundMessage(
                f"💸 Enter the expense amount (in {self.currency}):",
                choices=render.CANCEL_CHOICES,
            )
        ]

    async def _on_report_command(self, user_id: int, session: Session, args: str) -> Replies:
        session.reset()
        period = args or DEFAULT_REPORT_PERIOD
        try:
            date_range = resolve(period, self.clock())
        except InvalidPeriod:
            return [
                OutboundMessage(
                    render.invalid_period_message("Try again, e.g. /report last week."),
                    choices=render.report_menu_choices(),
                )
            ]
        return await self._report(user_id, date_range, None, render.BACK_TO_MENU_CHOICES)

    async def _on_view_reports(self, user_id: int, session: Session, _selection: Selection) -> Replies:
        session.reset()
        return [OutboundMessage("📊 Select a report type:", choices=render.report_menu_choices())]

    async def _on_report_period(self, user_id: int, session: Session, selection: Selection) -> Replies:
        try:
            date_range = resolve(selection.period or "", self.clock())
        except InvalidPeriod:
            return [OutboundMessage("❌ Unknown report period", ephemeral=True)]
        session.reset()
        return await self._report(user_id, date_range, None, render.BACK_TO_MENU_CHOICES)

    async def _on_custom_range(self, user_id: int, session: Session, _selection: Selection) -> Replies:
        session.begin(ConversationState.AWAITING_CUSTOM_RANGE_START)
        return [
            OutboundMessage(
                "🔍 Custom Date Search\n\n"
                "Enter the start date (e.g. 2025-08-01, 01/08/2025 or 2025-08).\n"
                "You can also send a whole range such as 2025-08-01 to 2025-08-31.",
                choices=render.CANCEL_CHOICES,
            )
        ]

    async def _on_category_search(self, user_id: int, session: Session, _selection: Selection) -> Replies:
        session.reset()
        return [
            OutboundMessage(
                "📂 Search by Category\n\nSelect a category to view all its expenses:",
                choices=render.search_category_choices(),
            )
        ]

    async def _on_search_category(self, user_id: int, session: Session, selection: Selection) -> Replies:
        session.reset()
        return await self._report(user_id, None, selection.category, render.BACK_TO_REPORTS_CHOICES)

    async def _report(
        self,
        user_id: int,
        date_range: Optional[DateRange],
        category: Optional[ExpenseCategory],
        choices,
    ) -> Replies:
        report = await build_report(self.ledger, user_id, date_range, category)
        return [
            OutboundMessage(
                render.format_report(report, self.currency, self.preview_limit, tz=self.clock().tzinfo),
                choices=choices,
            )
        ]

    # --- add balance / add expense ------------------------------------------

    async def _on_idle_text(self, user_id: int, session: Session, text: str) -> Replies:
        return [
            OutboundMessage(
                "Use the buttons below, or send /help to see what I can do.",
                choices=render.MAIN_MENU_CHOICES,
            )
        ]

    async def _on_balance_amount(self, user_id: int, session: Session, text: str) -> Replies:
        try:
            amount = parse_amount_token(text)
        except InvalidAmountError:
            return [OutboundMessage("❌ Please enter a valid positive amount.", choices=render.CANCEL_CHOICES)]
        balance = await self.ledger.adjust_balance(user_id, amount)
        session.reset()
        return [
            OutboundMessage(
                f"✅ Added {self._money(amount)} to your balance!\n"
                f"{render.format_balance(balance, self.currency)}\n\n"
                "Use the buttons below to continue:",
                choices=render.MAIN_MENU_CHOICES,
            )
        ]

    async def _on_expense_amount(self, user_id: int, session: Session, text: str) -> Replies:
        try:
            amount = parse_amount_token(text)
        except InvalidAmountError:
            return [OutboundMessage("❌ Please enter a valid positive amount.", choices=render.CANCEL_CHOICES)]
        session.pending_amount = amount
        session.state = ConversationState.AWAITING_CATEGORY
        return [
            OutboundMessage(
                f"💸 Expense: {self._money(amount)}\n\nSelect a category:",
                choices=render.category_choices(),
            )
        ]

    async def _on_category_text(self, user_id: int, session: Session, text: str) -> Replies:
        return [
            OutboundMessage(
                "Please pick a category using the buttons below.",
                choices=render.category_choices(),
            )
        ]

    async def _on_category_selected(self, user_id: int, session: Session, selection: Selection) -> Replies:
        if session.state != ConversationState.AWAITING_CATEGORY:
            return [OutboundMessage("This button is no longer active.", ephemeral=True)]
        if session.pending_amount is None:
            raise MissingSessionPrecondition("category selected without a pending amount")
        category = selection.category
        session.pending_category = category
        session.state = ConversationState.AWAITING_DESCRIPTION
        return [
            OutboundMessage(
                f"💸 Expense: {self._money(session.pending_amount)}\n"
                f"{render.category_label(category)}\n\n"
                "Enter a description or tap Skip:",
                choices=render.skip_description_choices(),
            )
        ]

    async def _on_description(self, user_id: int, session: Session, text: str) -> Replies:
        return await self._commit_expense(user_id, session, text.strip())

    async def _on_skip_description(self, user_id: int, session: Session, _selection: Selection) -> Replies:
        if session.state != ConversationState.AWAITING_DESCRIPTION:
            return [OutboundMessage("This button is no longer active.", ephemeral=True)]
        return await self._commit_expense(user_id, session, "")

    async def _commit_expense(self, user_id: int, session: Session, description: str) -> Replies:
        amount = session.pending_amount
        category = session.pending_category
        if amount is None or category is None:
            raise MissingSessionPrecondition("description reached without amount and category")
        expense, balance = await self.ledger.record_expense(user_id, amount, category, description)
        session.reset()
        lines = [
            "✅ Expense added!",
            "",
            f"{category.emoji} {self._money(expense.amount)} - {category.label}",
        ]
        if description:
            lines.append(f"📝 {description}")
        lines.extend(["", render.format_balance(balance, self.currency)])
        return [OutboundMessage("\n".join(lines), choices=render.MAIN_MENU_CHOICES)]

    # --- custom range ---------------------------------------------------------

    async def _on_custom_range_start(self, user_id: int, session: Session, text: str) -> Replies:
        whole_range = is_range_expression(text)
        try:
            start = resolve(text, self.clock()) if whole_range else resolve_single(text, self.clock())
        except InvalidPeriod:
            return [
                OutboundMessage(
                    render.invalid_period_message("Enter the start date again:"),
                    choices=render.CANCEL_CHOICES,
                )
            ]
        if whole_range:
            replies = await self._report(user_id, start, None, render.BACK_TO_REPORTS_CHOICES)
            session.reset()
            return replies
        session.custom_range_start = start
        session.state = ConversationState.AWAITING_CUSTOM_RANGE_END
        return [
            OutboundMessage(
                f"Start: {start.label}\n\nNow enter the end date:",
                choices=render.CANCEL_CHOICES,
            )
        ]

    async def _on_custom_range_end(self, user_id: int, session: Session, text: str) -> Replies:
        start = session.custom_range_start
        if start is None:
            raise MissingSessionPrecondition("end date entered without a start date")
        try:
            end = resolve_single(text, self.clock())
        except InvalidPeriod:
            return [
                OutboundMessage(
                    render.invalid_period_message("Enter the end date again:"),
                    choices=render.CANCEL_CHOICES,
                )
            ]
        date_range = start.through(end)
        replies = await self._report(user_id, date_range, None, render.BACK_TO_REPORTS_CHOICES)
        session.reset()
        return replies
