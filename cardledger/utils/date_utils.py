"""Date manipulation utilities"""

from datetime import date, timedelta
from typing import List


def calendar_date(year: int, month: int, day: int) -> date:
    """
    Build a date, rolling overflowing months and days forward.

    Month 13 is January of the next year, month 0 is December of the
    previous one. Days past the end of the month spill into the next month,
    so calendar_date(2024, 2, 31) == date(2024, 3, 2).
    """
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    return date(year, month, 1) + timedelta(days=day - 1)


def add_months(from_date: date, months: int) -> date:
    """Shift by whole months keeping the day-of-month, with rollover"""
    return calendar_date(from_date.year, from_date.month + months, from_date.day)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First day of the month and first day of the following month"""
    return calendar_date(year, month, 1), calendar_date(year, month + 1, 1)


def generate_month_sequence(start: date, count: int) -> List[date]:
    """Generate `count` dates one month apart starting at `start`"""
    return [add_months(start, i) for i in range(count)]
