from __future__ import annotations

from datetime import date, datetime, time
from unittest import TestCase
from zoneinfo import ZoneInfo

from expensebot.services.periods import InvalidPeriod, is_range_expression, resolve, resolve_single

ALGIERS = ZoneInfo("Africa/Algiers")
# A Friday.
NOW = datetime(2025, 8, 15, 18, 30, tzinfo=ALGIERS)


def _bounds(first: date, last: date) -> tuple[datetime, datetime]:
    return (
        datetime.combine(first, time.min, tzinfo=ALGIERS),
        datetime.combine(last, time.max, tzinfo=ALGIERS),
    )


class ResolveKeywordTests(TestCase):
    def test_today_and_yesterday(self) -> None:
        today = resolve("today", NOW)
        self.assertEqual((today.start, today.end), _bounds(date(2025, 8, 15), date(2025, 8, 15)))
        self.assertEqual(today.label, "Today")

        yesterday = resolve("Yesterday", NOW)
        self.assertEqual(
            (yesterday.start, yesterday.end), _bounds(date(2025, 8, 14), date(2025, 8, 14))
        )

    def test_weeks_start_on_monday(self) -> None:
        this_week = resolve("this week", NOW)
        self.assertEqual(
            (this_week.start, this_week.end), _bounds(date(2025, 8, 11), date(2025, 8, 17))
        )
        last_week = resolve("last_week", NOW)
        self.assertEqual(
            (last_week.start, last_week.end), _bounds(date(2025, 8, 4), date(2025, 8, 10))
        )

    def test_months(self) -> None:
        this_month = resolve("THIS MONTH", NOW)
        self.assertEqual(
            (this_month.start, this_month.end), _bounds(date(2025, 8, 1), date(2025, 8, 31))
        )
        last_month = resolve("lastmonth", NOW)
        self.assertEqual(
            (last_month.start, last_month.end), _bounds(date(2025, 7, 1), date(2025, 7, 31))
        )

    def test_last_month_in_january_wraps_year(self) -> None:
        january = datetime(2025, 1, 10, tzinfo=ALGIERS)
        last_month = resolve("last month", january)
        self.assertEqual(
            (last_month.start, last_month.end), _bounds(date(2024, 12, 1), date(2024, 12, 31))
        )

    def test_leap_february(self) -> None:
        february = resolve("2024-02", NOW)
        self.assertEqual(february.end.date(), date(2024, 2, 29))
        self.assertEqual(february.label, "February 2024")


class ResolveDateTests(TestCase):
    def test_iso_and_day_month_year_agree(self) -> None:
        iso = resolve("2025-09-08", NOW)
        dmy = resolve("08/09/2025", NOW)
        self.assertEqual((iso.start, iso.end), (dmy.start, dmy.end))
        self.assertEqual(iso.start.date(), date(2025, 9, 8))

    def test_expense_late_in_the_day_is_inside(self) -> None:
        day = resolve("2025-08-15", NOW)
        self.assertTrue(day.contains(datetime(2025, 8, 15, 23, 59, 59, 500000, tzinfo=ALGIERS)))
        self.assertFalse(day.contains(datetime(2025, 8, 16, tzinfo=ALGIERS)))

    def test_range_expression(self) -> None:
        august = resolve("2025-08-01 to 2025-08-31", NOW)
        self.assertEqual((august.start, august.end), _bounds(date(2025, 8, 1), date(2025, 8, 31)))
        self.assertEqual(august.label, "2025-08-01 to 2025-08-31")

    def test_range_of_months(self) -> None:
        summer = resolve("2025-06 to 2025-08", NOW)
        self.assertEqual((summer.start, summer.end), _bounds(date(2025, 6, 1), date(2025, 8, 31)))

    def test_reversed_range_is_kept_as_given(self) -> None:
        backwards = resolve("2025-08-31 to 2025-08-01", NOW)
        self.assertGreater(backwards.start, backwards.end)

    def test_today_is_not_split_on_to(self) -> None:
        self.assertFalse(is_range_expression("today"))
        self.assertTrue(is_range_expression("today to today"))
        self.assertEqual(resolve("today", NOW).label, "Today")


class ResolveInvalidTests(TestCase):
    def test_invalid_inputs_raise(self) -> None:
        for text in [
            "",
            "   ",
            "fortnight",
            "2025-13",
            "2025-02-30",
            "31/02/2025",
            "2025-08-01 to",
            "2025-08-01 to 2025-08-10 to 2025-08-20",
        ]:
            with self.subTest(text=text):
                with self.assertRaises(InvalidPeriod):
                    resolve(text, NOW)

    def test_error_carries_format_help(self) -> None:
        with self.assertRaises(InvalidPeriod) as ctx:
            resolve_single("next year", NOW)
        self.assertEqual(ctx.exception.text, "next year")
        self.assertIn("2025-08-01 to 2025-08-31", str(ctx.exception))
