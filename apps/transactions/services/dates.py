"""Calendar arithmetic shared by the installment expander and recurrence generator."""

import calendar
from datetime import date, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta

from apps.transactions.models import RecurrencePattern


def add_months(base: date, months: int, anchor_day: Optional[int] = None) -> date:
    """
    Shift ``base`` by whole months, clamping to the last day of the target month.

    ``anchor_day`` keeps the preferred day of month across short months, so a
    schedule starting on the 31st goes Jan 31 -> Feb 29 -> Mar 31 instead of
    drifting to the 29th.

    >>> add_months(date(2024, 1, 31), 1)
    datetime.date(2024, 2, 29)
    >>> add_months(date(2024, 2, 29), 1, anchor_day=31)
    datetime.date(2024, 3, 31)
    """
    day = anchor_day or base.day
    return base + relativedelta(months=months, day=day)


def step(base: date, pattern: str, anchor_day: Optional[int] = None) -> date:
    """Return the date one recurrence period after ``base``."""
    if pattern == RecurrencePattern.WEEKLY:
        return base + timedelta(weeks=1)
    if pattern == RecurrencePattern.MONTHLY:
        return add_months(base, 1, anchor_day)
    if pattern == RecurrencePattern.YEARLY:
        return add_months(base, 12, anchor_day)
    raise ValueError(f"Unknown recurrence pattern: {pattern}")


def month_bounds(year: int, month_number: int) -> tuple[date, date]:
    """Return (first_day, last_day) of a calendar month."""
    last_day = calendar.monthrange(year, month_number)[1]
    return date(year, month_number, 1), date(year, month_number, last_day)
