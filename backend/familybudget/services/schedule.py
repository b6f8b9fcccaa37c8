"""
Calendar arithmetic for recurring rules.

All functions work on plain calendar dates: no time of day, no timezone.
Monthly and yearly steps clamp to the last day of the target month when the
requested day does not exist there (Jan 31 -> Feb 28/29, Mar 31 -> Apr 30).

Monthly rules keep their day anchor, so they return to the 31st after a short
month. Yearly rules have no anchor and step from the previous occurrence: a
rule started on Feb 29 moves to Feb 28 and stays there, leap years included.
"""
import calendar
from datetime import date, timedelta
from typing import List, Optional, Union


def parse_date(value: Union[date, str]) -> date:
    """
    Accept a date or an ISO ``YYYY-MM-DD`` string.

    Raises:
        ValueError: If the string is not a valid calendar date.
    """
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def _clamped_date(year: int, month: int, day: int) -> date:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def add_months(anchor: date, months: int, day_of_month: Optional[int] = None) -> date:
    """
    Move ``anchor`` forward by ``months`` calendar months.

    If ``day_of_month`` is given it replaces the anchor's day. The result is
    clamped to the end of the target month.
    """
    month_index = anchor.month - 1 + months
    year = anchor.year + month_index // 12
    month = month_index % 12 + 1
    return _clamped_date(year, month, day_of_month or anchor.day)


def next_occurrence(
    anchor: Union[date, str],
    frequency: str,
    day_of_month: Optional[int] = None,
    day_of_week: Optional[int] = None,
) -> date:
    """
    Return the next date a rule fires after ``anchor``.

    Args:
        anchor: Start date of the rule, or the occurrence that was just materialized.
        frequency: One of 'daily', 'weekly', 'monthly', 'yearly'.
        day_of_month: Day anchor for monthly rules (1-31).
        day_of_week: Stored for weekly rules; weekly steps are always +7 days.

    Raises:
        ValueError: If ``frequency`` is not a supported value.
    """
    anchor = parse_date(anchor)

    if frequency == "daily":
        return anchor + timedelta(days=1)
    if frequency == "weekly":
        return anchor + timedelta(days=7)
    if frequency == "monthly":
        return add_months(anchor, 1, day_of_month)
    if frequency == "yearly":
        # No anchor: Feb 29 -> Feb 28 is permanent
        return _clamped_date(anchor.year + 1, anchor.month, anchor.day)

    raise ValueError(f"Unsupported frequency: {frequency!r}")


def upcoming_occurrences(
    first: Union[date, str],
    frequency: str,
    count: int,
    day_of_month: Optional[int] = None,
    day_of_week: Optional[int] = None,
    end_date: Optional[date] = None,
) -> List[date]:
    """
    Project up to ``count`` occurrence dates starting with ``first``.

    Stops early once a date would fall after ``end_date``.
    """
    occurrences: List[date] = []
    current = parse_date(first)
    while len(occurrences) < count:
        if end_date is not None and current > end_date:
            break
        occurrences.append(current)
        current = next_occurrence(current, frequency, day_of_month, day_of_week)
    return occurrences
