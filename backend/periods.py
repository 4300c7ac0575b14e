"""
Calendar windows for aggregation and goals.

Two conventions live here on purpose:

- period windows used by aggregation are half-open, ``[start, end)``, so a
  timestamp on a shared boundary (midnight) belongs to exactly one period;
- goal windows are inclusive, ``[start, end]``, with ``end`` the last
  microsecond of the goal's final day.

All calendar arithmetic happens on ``date`` objects and is converted to
aware datetimes at the last step, so DST transitions never shift a day.
"""

from datetime import date, datetime, time, timedelta, tzinfo
from typing import Optional, Tuple

from errors import InvalidWindow
from models import PeriodType

ONE_MICROSECOND = timedelta(microseconds=1)


def localize(moment: datetime, tz: tzinfo) -> datetime:
    """Express ``moment`` in ``tz``; naive values are taken as already local."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=tz)
    return moment.astimezone(tz)


def local_now(tz: tzinfo, now: Optional[datetime] = None) -> datetime:
    return localize(now, tz) if now is not None else datetime.now(tz)


def day_start(day: date, tz: tzinfo) -> datetime:
    """Midnight at the beginning of ``day`` in ``tz``."""
    return datetime.combine(day, time.min, tzinfo=tz)


def week_start(day: date) -> date:
    """Most recent Sunday on or before ``day``."""
    return day - timedelta(days=(day.weekday() + 1) % 7)


def _first_of_next_month(day: date) -> date:
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)


def period_dates(period: PeriodType, today: date) -> Tuple[date, date]:
    """
    First day of the period containing ``today`` and first day of the next one.

    Args:
        period: daily, weekly (Sunday based), monthly or yearly
        today: anchor date

    Returns:
        (first_day, first_day_of_next_period)
    """
    if period == PeriodType.DAILY:
        return today, today + timedelta(days=1)
    if period == PeriodType.WEEKLY:
        start = week_start(today)
        return start, start + timedelta(days=7)
    if period == PeriodType.MONTHLY:
        start = today.replace(day=1)
        return start, _first_of_next_month(start)
    if period == PeriodType.YEARLY:
        return date(today.year, 1, 1), date(today.year + 1, 1, 1)
    raise ValueError(f"Unknown period type: {period}")


def period_window(
    period: PeriodType,
    tz: tzinfo,
    now: Optional[datetime] = None
) -> Tuple[datetime, datetime]:
    """Half-open ``[start, end)`` window of the period containing ``now``."""
    today = local_now(tz, now).date()
    first, following = period_dates(period, today)
    return day_start(first, tz), day_start(following, tz)


def inclusive_window(start_date: date, end_date: date, tz: tzinfo) -> Tuple[datetime, datetime]:
    """Inclusive window covering every instant from ``start_date`` through ``end_date``."""
    if start_date > end_date:
        raise InvalidWindow(start_date, end_date)
    return day_start(start_date, tz), day_start(end_date + timedelta(days=1), tz) - ONE_MICROSECOND


def period_inclusive_window(
    period: PeriodType,
    tz: tzinfo,
    now: Optional[datetime] = None
) -> Tuple[datetime, datetime]:
    """Inclusive window of the period containing ``now`` (last day included)."""
    today = local_now(tz, now).date()
    first, following = period_dates(period, today)
    return inclusive_window(first, following - timedelta(days=1), tz)


def validate_window(start, end) -> None:
    if start > end:
        raise InvalidWindow(start, end)
