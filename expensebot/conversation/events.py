from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..models.expense import ExpenseCategory

CATEGORY_PREFIX = "category:"
REPORT_PREFIX = "report:"
SEARCH_CATEGORY_PREFIX = "search_category:"


class EventKind(str, Enum):
    COMMAND = "command"
    TEXT = "text"
    SELECTION = "selection"


class Command(str, Enum):
    START = "start"
    HELP = "help"
    BALANCE = "balance"
    EXPENSE = "expense"
    REPORT = "report"
    CHECK = "check"
    CANCEL = "cancel"


class Action(str, Enum):
    ADD_BALANCE = "cmd_balance"
    ADD_EXPENSE = "cmd_expense"
    VIEW_REPORTS = "cmd_report"
    CHECK_BALANCE = "cmd_check_balance"
    HELP = "cmd_help"
    SELECT_CATEGORY = "category"
    SKIP_DESCRIPTION = "skip_description"
    REPORT_PERIOD = "report"
    CUSTOM_RANGE = "custom_search"
    CATEGORY_SEARCH = "category_search"
    SEARCH_CATEGORY = "search_category"
    CANCEL = "cancel"
    BACK_TO_MENU = "back_to_menu"


class UnknownActionError(ValueError):
    """Raised when a button payload is not part of the action space."""


@dataclass(frozen=True)
class InboundEvent:
    user_id: int
    kind: EventKind
    payload: str


@dataclass(frozen=True)
class Choice:
    label: str
    action_id: str


@dataclass(frozen=True)
class OutboundMessage:
    text: str
    choices: tuple[tuple[Choice, ...], ...] = ()
    ephemeral: bool = False


@dataclass(frozen=True)
class Selection:
    """A parsed button payload: the action plus its typed argument, if any."""

    action: Action
    category: Optional[ExpenseCategory] = None
    period: Optional[str] = None


def category_action(category: ExpenseCategory) -> str:
    return f"{CATEGORY_PREFIX}{category.value}"


def search_category_action(category: ExpenseCategory) -> str:
    return f"{SEARCH_CATEGORY_PREFIX}{category.value}"


def report_action(period: str) -> str:
    return f"{REPORT_PREFIX}{period}"


def _parse_category(raw: str, payload: str) -> ExpenseCategory:
    try:
        return ExpenseCategory(raw)
    except ValueError as exc:
        raise UnknownActionError(f"Unknown category in '{payload}'") from exc


def parse_action(payload: str) -> Selection:
    """Turn a button payload into a ``Selection``.

    Raises ``UnknownActionError`` for anything outside the action space so no
    button press is silently ignored.
    """
    text = (payload or "").strip()
    if text.startswith(CATEGORY_PREFIX):
        category = _parse_category(text[len(CATEGORY_PREFIX):], text)
        return Selection(Action.SELECT_CATEGORY, category=category)
    if text.startswith(SEARCH_CATEGORY_PREFIX):
        category = _parse_category(text[len(SEARCH_CATEGORY_PREFIX):], text)
        return Selection(Action.SEARCH_CATEGORY, category=category)
    if text.startswith(REPORT_PREFIX):
        period = text[len(REPORT_PREFIX):].strip()
        if not period:
            raise UnknownActionError(f"Missing report period in '{text}'")
        return Selection(Action.REPORT_PERIOD, period=period)
    try:
        action = Action(text)
    except ValueError as exc:
        raise UnknownActionError(f"Unknown action '{text}'") from exc
    if action in (Action.SELECT_CATEGORY, Action.SEARCH_CATEGORY, Action.REPORT_PERIOD):
        raise UnknownActionError(f"Action '{text}' needs an argument")
    return Selection(action)


def parse_command(payload: str) -> tuple[Command, str]:
    """Split ``/report last week`` style payloads into the command and its arguments."""
    text = (payload or "").strip()
    name, _, args = text.partition(" ")
    name = name.lstrip("/").split("@", 1)[0].lower()
    try:
        return Command(name), args.strip()
    except ValueError as exc:
        raise UnknownActionError(f"Unknown command '{name}'") from exc
