from __future__ import annotations

import calendar
from datetime import datetime, time, timedelta
from typing import Literal

from .models import ONE_MILLISECOND, DateRange

CalendarView = Literal["week", "month"]

DAYS_IN_WEEK = 7
MONTH_MATRIX_ROWS = 6
MONTH_MATRIX_CELLS = MONTH_MATRIX_ROWS * DAYS_IN_WEEK


def _floor_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.min, tzinfo=value.tzinfo)


def _sunday_based_weekday(value: datetime) -> int:
    return (value.weekday() + 1) % DAYS_IN_WEEK


def normalize_first_day(first_day_of_week: int) -> int:
    return first_day_of_week % DAYS_IN_WEEK


def start_of_day(value: datetime) -> datetime:
    return _floor_day(value)


def start_of_month(value: datetime) -> datetime:
    return datetime.combine(value.date().replace(day=1), time.min, tzinfo=value.tzinfo)


def start_of_week(value: datetime, first_day_of_week: int) -> datetime:
    """Return day start of the week containing ``value``.

    ``first_day_of_week`` counts from Sunday (0) to Saturday (6); any integer
    is accepted and reduced modulo 7.
    """
    first = normalize_first_day(first_day_of_week)
    diff = (_sunday_based_weekday(value) - first + DAYS_IN_WEEK) % DAYS_IN_WEEK
    return _floor_day(value - timedelta(days=diff))


def week_days(anchor: datetime, first_day_of_week: int) -> list[datetime]:
    start = start_of_week(anchor, first_day_of_week)
    return [start + timedelta(days=offset) for offset in range(DAYS_IN_WEEK)]


def month_matrix(anchor: datetime, first_day_of_week: int) -> list[list[datetime]]:
    start = start_of_week(start_of_month(anchor), first_day_of_week)
    return [
        [start + timedelta(days=row * DAYS_IN_WEEK + column) for column in range(DAYS_IN_WEEK)]
        for row in range(MONTH_MATRIX_ROWS)
    ]


def view_range(view: CalendarView, anchor: datetime, first_day_of_week: int) -> DateRange:
    if view == "week":
        start = start_of_week(anchor, first_day_of_week)
        return DateRange(start=start, end=start + timedelta(days=DAYS_IN_WEEK) - ONE_MILLISECOND)
    if view == "month":
        start = start_of_week(start_of_month(anchor), first_day_of_week)
        return DateRange(start=start, end=start + timedelta(days=MONTH_MATRIX_CELLS) - ONE_MILLISECOND)
    raise ValueError(f"Unsupported calendar view: {view}")


def _short_day(value: datetime) -> str:
    return f"{value:%b} {value.day}"


def toolbar_label(view: CalendarView, anchor: datetime, first_day_of_week: int = 1) -> str:
    if view == "month":
        return f"{anchor:%B %Y}"

    week_start = start_of_week(anchor, first_day_of_week)
    week_end = week_start + timedelta(days=DAYS_IN_WEEK - 1)
    same_year = week_start.year == week_end.year
    same_month = same_year and week_start.month == week_end.month

    if same_month:
        return f"{_short_day(week_start)} – {week_end.day}, {week_end.year}"
    if same_year:
        return f"{_short_day(week_start)} – {_short_day(week_end)}, {week_end.year}"
    return f"{_short_day(week_start)}, {week_start.year} – {_short_day(week_end)}, {week_end.year}"


def days_in_range(date_range: DateRange) -> list[datetime]:
    days: list[datetime] = []
    cursor = _floor_day(date_range.start)
    while cursor <= date_range.end:
        days.append(cursor)
        cursor = cursor + timedelta(days=1)
    return days


def is_same_day(first: datetime, second: datetime) -> bool:
    return first.date() == second.date()


def in_anchor_month(day: datetime, anchor: datetime) -> bool:
    return (day.year, day.month) == (anchor.year, anchor.month)


def _add_months(value: datetime, months: int) -> datetime:
    month_index = value.year * 12 + (value.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return value.replace(year=year, month=month, day=min(value.day, last_day))


def shift_anchor(view: CalendarView, anchor: datetime, direction: Literal["prev", "next"]) -> datetime:
    step = 1 if direction == "next" else -1
    if view == "week":
        return anchor + timedelta(days=DAYS_IN_WEEK * step)
    return _add_months(anchor, step)
