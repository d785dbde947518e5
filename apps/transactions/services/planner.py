"""
Planner window resolution.

The planner selects one calendar month (``month_number``, ``year``); its
window is the month's first and last day. Callers pass the planner
explicitly; there is no shared "current planner" state.
"""

from datetime import date
from typing import Optional

from . import dates
from .exceptions import TransactionValidationError


def planner_window(*, month_number: int, year: int) -> tuple[date, date]:
    """
    Return ``(start_date, end_date)`` of the planner month.

    Raises:
        TransactionValidationError: If ``month_number`` is not 1..12
    """
    if not (1 <= month_number <= 12):
        raise TransactionValidationError("month_number must be between 1 and 12")
    return dates.month_bounds(year, month_number)


def current_window(today: Optional[date] = None) -> tuple[date, date]:
    """Window of the month containing ``today``."""
    today = today or date.today()
    return planner_window(month_number=today.month, year=today.year)


def resolve_window(
    *,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    month_number: Optional[int] = None,
    year: Optional[int] = None,
    today: Optional[date] = None
) -> tuple[date, date]:
    """
    Pick the query window from explicit dates, a planner month, or today.

    Explicit dates win. A missing bound is taken from the planner month
    when one is given, otherwise from the month of the other bound (or the
    current month), so ``start_date`` alone means "from that day to the end
    of its month".

    Raises:
        TransactionValidationError: If the resulting window is inverted
    """
    if month_number is not None or year is not None:
        today = today or date.today()
        default_start, default_end = planner_window(
            month_number=month_number or today.month,
            year=year or today.year,
        )
    elif start_date is not None or end_date is not None:
        default_start, default_end = current_window(start_date or end_date)
    else:
        default_start, default_end = current_window(today)

    start = start_date or default_start
    end = end_date or default_end
    if start > end:
        raise TransactionValidationError("startDate must not be after endDate")
    return start, end
