# Overview: Operational (business) day resolution for restaurant shifts that cross midnight.

"""
Operational day resolver.

A restaurant's closing shift runs past midnight, so anything that happens
between 00:00 and 04:59 local time still belongs to the previous business
day ("Saturday night" at 2 a.m. Sunday). Every report that groups shifts,
movements or discrepancies "by day" uses the keys produced here.

RULES:
- The cutoff hour is fixed at 5; it is not configurable per branch.
- Functions are pure: callers always pass the instant ("now" included).
- Naive datetimes passed to to_local() are UTC, like every timestamp the
  database stores. The resolver functions themselves read the wall-clock
  fields of whatever they are given, so convert first.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo


OPERATIONAL_DAY_CUTOFF_HOUR = 5


def is_early_morning(instant: datetime) -> bool:
    """True iff the local hour is in [0, 5)."""
    return 0 <= instant.hour < OPERATIONAL_DAY_CUTOFF_HOUR


def resolve_operational_day(instant: datetime) -> date:
    """Calendar date the instant is attributed to; time-of-day is discarded."""
    day = instant.date()
    if is_early_morning(instant):
        return day - timedelta(days=1)
    return day


def operational_day_key(instant: datetime) -> str:
    """Canonical YYYY-MM-DD grouping key."""
    return resolve_operational_day(instant).isoformat()


def to_local(instant: datetime, tz_name: str) -> datetime:
    """Convert a stored (UTC-naive) or aware instant to the branch wall clock."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(ZoneInfo(tz_name))


def operational_day_for(instant: datetime, tz_name: str) -> date:
    """Operational day of a stored timestamp, seen from a branch's timezone."""
    return resolve_operational_day(to_local(instant, tz_name))


def operational_day_bounds(day: date, tz_name: str) -> tuple[datetime, datetime]:
    """
    UTC-naive half-open interval covering one operational day:
    [day 05:00 local, day+1 05:00 local).
    """
    return operational_range_bounds(day, day, tz_name)


def operational_range_bounds(start_day: date, end_day: date, tz_name: str) -> tuple[datetime, datetime]:
    """UTC-naive half-open interval covering the inclusive range start_day..end_day."""
    if end_day < start_day:
        raise ValueError("end_day must not be before start_day")
    tz = ZoneInfo(tz_name)
    cutoff = time(hour=OPERATIONAL_DAY_CUTOFF_HOUR)
    start_local = datetime.combine(start_day, cutoff, tzinfo=tz)
    end_local = datetime.combine(end_day + timedelta(days=1), cutoff, tzinfo=tz)
    return (
        start_local.astimezone(timezone.utc).replace(tzinfo=None),
        end_local.astimezone(timezone.utc).replace(tzinfo=None),
    )


def operational_month_bounds(day: date) -> tuple[date, date]:
    """[first day of day's month, first day of the following month)."""
    first = day.replace(day=1)
    if first.month == 12:
        return first, first.replace(year=first.year + 1, month=1)
    return first, first.replace(month=first.month + 1)
