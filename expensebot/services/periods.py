"""Turn report period keywords and typed dates into concrete datetime ranges.

Every range is closed: ``start`` is midnight of the first day and ``end`` is
the last microsecond of the last day, both in the timezone of ``now``.
"""

from __future__ import annotations

import calendar
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional

PERIOD_FORMAT_HELP = (
    "Supported formats:\n"
    "- 2025-09-08 or 08/09/2025 for a specific day\n"
    "- 2025-09 for an entire month\n"
    "- today, yesterday, this week, last week, this month, last month\n"
    "- 2025-08-01 to 2025-08-31 for a range"
)

_RANGE_SEPARATOR = re.compile(r"\s+to\s+", re.IGNORECASE)
_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_DMY_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_YEAR_MONTH = re.compile(r"^(\d{4})-(\d{2})$")


class InvalidPeriod(ValueError):
    """Raised when period or date text cannot be resolved to a range."""

    def __init__(self, text: str) -> None:
        self.text = text
        super().__init__(f"Could not understand '{text}'.\n\n{PERIOD_FORMAT_HELP}")


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime
    label: str

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end

    def through(self, other: "DateRange") -> "DateRange":
        """Join this range's start with ``other``'s end."""
        return DateRange(self.start, other.end, f"{self.label} to {other.label}")


def day_range(first: date, last: date, label: str, tzinfo) -> DateRange:
    return DateRange(
        start=datetime.combine(first, time.min, tzinfo=tzinfo),
        end=datetime.combine(last, time.max, tzinfo=tzinfo),
        label=label,
    )


def _month_bounds(year: int, month: int) -> tuple[date, date]:
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def _previous_month(year: int, month: int) -> tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def _month_label(year: int, month: int) -> str:
    return f"{calendar.month_name[month]} {year}"


def normalise_period(text: str) -> str:
    return " ".join(text.replace("_", " ").split()).casefold()


def _keyword_range(text: str, now: datetime) -> Optional[DateRange]:
    key = PERIOD_ALIASES.get(text, text)
    today = now.date()
    tz = now.tzinfo
    if key == "today":
        return day_range(today, today, "Today", tz)
    if key == "yesterday":
        yesterday = today - timedelta(days=1)
        return day_range(yesterday, yesterday, "Yesterday", tz)
    if key == "this week":
        monday = today - timedelta(days=today.weekday())
        return day_range(monday, monday + timedelta(days=6), "This Week", tz)
    if key == "last week":
        monday = today - timedelta(days=today.weekday() + 7)
        return day_range(monday, monday + timedelta(days=6), "Last Week", tz)
    if key == "this month":
        first, last = _month_bounds(today.year, today.month)
        return day_range(first, last, "This Month", tz)
    if key == "last month":
        first, last = _month_bounds(*_previous_month(today.year, today.month))
        return day_range(first, last, "Last Month", tz)
    return None


def _iso_date_range(text: str, now: datetime) -> Optional[DateRange]:
    match = _ISO_DATE.match(text)
    if not match:
        return None
    try:
        day = date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None
    return day_range(day, day, day.isoformat(), now.tzinfo)


def _day_month_year_range(text: str, now: datetime) -> Optional[DateRange]:
    match = _DMY_DATE.match(text)
    if not match:
        return None
    try:
        day = date(int(match.group(3)), int(match.group(2)), int(match.group(1)))
    except ValueError:
        return None
    return day_range(day, day, day.isoformat(), now.tzinfo)


def _year_month_range(text: str, now: datetime) -> Optional[DateRange]:
    match = _YEAR_MONTH.match(text)
    if not match:
        return None
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        return None
    first, last = _month_bounds(year, month)
    return day_range(first, last, _month_label(year, month), now.tzinfo)


PERIOD_ALIASES: dict[str, str] = {
    "week": "this week",
    "thisweek": "this week",
    "lastweek": "last week",
    "month": "this month",
    "thismonth": "this month",
    "lastmonth": "last month",
}

# Tried in order; the first strategy that returns a range wins.
PARSE_STRATEGIES: list[tuple[str, Callable[[str, datetime], Optional[DateRange]]]] = [
    ("keyword", _keyword_range),
    ("iso_date", _iso_date_range),
    ("day_month_year", _day_month_year_range),
    ("year_month", _year_month_range),
]


def resolve_single(text: str, now: datetime) -> DateRange:
    normalised = normalise_period(text)
    if not normalised:
        raise InvalidPeriod(text)
    for _name, strategy in PARSE_STRATEGIES:
        resolved = strategy(normalised, now)
        if resolved is not None:
            return resolved
    raise InvalidPeriod(text)


def resolve(period: str, now: datetime) -> DateRange:
    """Resolve a keyword, date, month or ``A to B`` expression relative to ``now``.

    Raises ``InvalidPeriod`` instead of guessing; callers decide whether to
    re-prompt.
    """
    parts = _RANGE_SEPARATOR.split(period.strip())
    if len(parts) == 1:
        return resolve_single(parts[0], now)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise InvalidPeriod(period)
    return resolve_single(parts[0], now).through(resolve_single(parts[1], now))


def is_range_expression(text: str) -> bool:
    return len(_RANGE_SEPARATOR.split(text.strip())) > 1
