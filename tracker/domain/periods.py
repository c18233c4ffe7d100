"""Period resolution: symbolic period token → concrete PeriodWindow.

Two modes that must not be merged:
- rolling: "data for the last <period>", anchored to a reference instant
- calendar: whole calendar days / Sunday-aligned weeks, used by summaries
"""

import calendar
from datetime import date, datetime, time, timedelta

from tracker.domain.models import PeriodWindow

END_OF_DAY = time(23, 59, 59, 999000)


def _minus_one_month(reference: datetime) -> datetime:
    year, month = reference.year, reference.month - 1
    if month == 0:
        year, month = year - 1, 12
    day = min(reference.day, calendar.monthrange(year, month)[1])
    return reference.replace(year=year, month=month, day=day)


def resolve_rolling(period: str, reference: datetime | None = None) -> PeriodWindow:
    """Resolve a rolling window ending at the reference instant.

    Unrecognized tokens resolve as "daily".
    """
    reference = reference or datetime.now()
    if period == "weekly":
        start = reference - timedelta(days=7)
    elif period == "monthly":
        start = _minus_one_month(reference)
    else:
        period = "daily"
        start = datetime.combine(reference.date(), time.min)
    return PeriodWindow(start=start, end=reference, period=period, mode="rolling")


def resolve_calendar_day(target: date) -> PeriodWindow:
    """The full calendar day [00:00:00.000, 23:59:59.999]."""
    return PeriodWindow(
        start=datetime.combine(target, time.min),
        end=datetime.combine(target, END_OF_DAY),
        period="daily",
        mode="calendar",
    )


def week_start_for(reference: date) -> date:
    """Most recent Sunday at or before the reference date."""
    # date.weekday(): Monday=0 .. Sunday=6
    return reference - timedelta(days=(reference.weekday() + 1) % 7)


def resolve_calendar_week(reference: date, start: date | None = None) -> PeriodWindow:
    """A seven-day calendar week.

    An explicit start is used as-is; otherwise the week begins on the most
    recent Sunday at or before the reference date.
    """
    first = start if start is not None else week_start_for(reference)
    last = first + timedelta(days=6)
    return PeriodWindow(
        start=datetime.combine(first, time.min),
        end=datetime.combine(last, END_OF_DAY),
        period="weekly",
        mode="calendar",
    )


def resolve_range(first: date, last: date) -> PeriodWindow:
    """Explicit inclusive date range, whole days at both ends. Bounds are checked by the caller."""
    return PeriodWindow(
        start=datetime.combine(first, time.min),
        end=datetime.combine(last, END_OF_DAY),
        period="custom",
        mode="calendar",
    )
