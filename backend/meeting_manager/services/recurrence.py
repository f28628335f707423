"""Next-occurrence arithmetic for recurring meetings."""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from typing import Optional, Union


def add_months(value: date, months: int) -> date:
    """Shift by calendar months, clamping the day to the target month's last day.

    2024-01-31 + 1 month is 2024-02-29; 2023-01-31 + 1 month is 2023-02-28.
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(value.day, last_day))


def next_occurrence(
    reference_date: Union[date, datetime],
    repeat_kind: Optional[str],
    custom_days: Optional[int] = None,
) -> date:
    """Date of the occurrence following ``reference_date``.

    Unknown kinds and ``custom_day`` without a positive interval fall back to
    one day. Only the date part of a datetime is used.
    """
    ref = reference_date.date() if isinstance(reference_date, datetime) else reference_date

    if repeat_kind == "daily":
        return ref + timedelta(days=1)
    if repeat_kind == "weekly":
        return ref + timedelta(days=7)
    if repeat_kind == "monthly":
        return add_months(ref, 1)
    if repeat_kind == "custom_day":
        try:
            interval = int(custom_days) if custom_days is not None else 0
        except (TypeError, ValueError):
            interval = 0
        if interval > 0:
            return ref + timedelta(days=interval)
    return ref + timedelta(days=1)
