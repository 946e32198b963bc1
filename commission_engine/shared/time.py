from __future__ import annotations

import calendar
import re
from datetime import date
from typing import Optional, Tuple

from commission_engine.core.errors import InvalidPeriodError

PERIOD_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")


def parse_period(value: object, today: Optional[date] = None) -> date:
    """Return the first day of a ``YYYY-MM`` period that is not in the future."""
    if not isinstance(value, str):
        raise InvalidPeriodError(value)
    match = PERIOD_PATTERN.match(value.strip())
    if not match:
        raise InvalidPeriodError(value)
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12 or year < 1:
        raise InvalidPeriodError(value)
    period_start = date(year, month, 1)
    reference = today or date.today()
    if period_start > reference.replace(day=1):
        raise InvalidPeriodError(value, reason="Period cannot be in the future")
    return period_start


def format_period(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def current_period(today: Optional[date] = None) -> str:
    return format_period(today or date.today())


def period_bounds(period_start: date) -> Tuple[date, date]:
    last_day = calendar.monthrange(period_start.year, period_start.month)[1]
    return period_start.replace(day=1), period_start.replace(day=last_day)


def clamp_period_end(period_start: date, period_end: date, today: date) -> date:
    # Only the in-progress month is cut at today; closed months keep their full range.
    if (period_start.year, period_start.month) == (today.year, today.month):
        return min(period_end, today)
    return period_end


def previous_period(period_start: date) -> date:
    return _add_months(period_start.replace(day=1), -1)


def month_progress(period_start: date, today: date) -> float:
    """Percent of the period elapsed as of ``today``, clamped to [0, 100]."""
    start, end = period_bounds(period_start)
    if today < start:
        return 0.0
    if today > end:
        return 100.0
    progress = today.day / end.day * 100
    return max(0.0, min(100.0, progress))


def _add_months(value: date, months: int) -> date:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    return date(year, month, 1)
