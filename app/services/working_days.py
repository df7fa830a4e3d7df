"""
Working-day calendar arithmetic.

Forecast offsets are counted in working days (Monday–Friday). There is no
holiday calendar. Functions accept ``date`` or ``datetime`` and return the
same type they were given.
"""

from datetime import date, timedelta


def is_working_day(day: date) -> bool:
    """Return True if the given date falls Monday–Friday."""
    return day.weekday() < 5


def add_working_days(start: date, working_days: int) -> date:
    """Advance by n working days from start (offset 0 = start itself).

    The result is the nth working day strictly after ``start``; ``start``
    is never counted. Non-positive ``working_days`` returns ``start``.
    """
    if working_days <= 0:
        return start

    added = 0
    current = start
    while added < working_days:
        current = current + timedelta(days=1)
        if is_working_day(current):
            added += 1
    return current


def working_day_diff(start: date, end: date) -> int:
    """Count working days after start (exclusive) up to end (inclusive)."""
    if end <= start:
        return 0

    diff = 0
    current = start
    for _ in range((end - start).days):
        current = current + timedelta(days=1)
        if is_working_day(current):
            diff += 1
    return diff
