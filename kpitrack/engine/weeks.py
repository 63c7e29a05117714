"""Week-of-month calendar logic for kpiTrack.

Weeks are numbered from 1 inside each calendar month (not ISO weeks): week 1
is the week containing the 1st, and every day of the month belongs to exactly
one week bucket. Buckets keep full calendar-week boundaries, so the first and
last bucket of a month usually reach into the neighbouring months.

Two anchors are in use:
- weekly records are keyed on Sunday-anchored weeks (RECORD_WEEK_START)
- report headers display Monday-anchored weeks (DISPLAY_WEEK_START)
"""

import calendar
from datetime import MAXYEAR, MINYEAR, date, timedelta
from enum import Enum
from typing import Iterator, List

from kpitrack.models.constants import DAYS_PER_WEEK
from kpitrack.models.report import WeekBucket


class WeekStart(str, Enum):
    """First day of a calendar week."""
    SUNDAY = "sunday"
    MONDAY = "monday"


RECORD_WEEK_START = WeekStart.SUNDAY
DISPLAY_WEEK_START = WeekStart.MONDAY


class InvalidArgumentError(ValueError):
    """Raised for out-of-range calendar arguments (a caller bug, never clamped)."""


def _check_year(year: int) -> None:
    # Buckets may extend one week past either end of the year.
    if isinstance(year, bool) or not isinstance(year, int) or not (MINYEAR < year < MAXYEAR):
        raise InvalidArgumentError(f"year must be an integer in ({MINYEAR}, {MAXYEAR}), got {year!r}")


def _check_month(month: int) -> None:
    if isinstance(month, bool) or not isinstance(month, int) or not (1 <= month <= 12):
        raise InvalidArgumentError(f"month must be an integer in [1, 12], got {month!r}")


def weekday_index(d: date, week_start: WeekStart = RECORD_WEEK_START) -> int:
    """0-based position of a date inside its week under the given anchor."""
    # Python weekday: Monday=0 ... Sunday=6
    if WeekStart(week_start) == WeekStart.MONDAY:
        return d.weekday()
    return (d.weekday() + 1) % DAYS_PER_WEEK


def start_of_week(d: date, week_start: WeekStart = RECORD_WEEK_START) -> date:
    """First day of the calendar week containing d."""
    return d - timedelta(days=weekday_index(d, week_start))


def first_weekday_offset(year: int, month: int, week_start: WeekStart = RECORD_WEEK_START) -> int:
    """0-based weekday index of the 1st of the month."""
    _check_year(year)
    _check_month(month)
    return weekday_index(date(year, month, 1), week_start)


def week_of_month(d: date, week_start: WeekStart = RECORD_WEEK_START) -> int:
    """Return the 1-based week-of-month bucket of a date.

    weekIndex = ceil((day_of_month + first_weekday_offset) / 7)

    Args:
        d: Date to resolve
        week_start: Week anchor (Sunday for record bookkeeping)

    Returns:
        Week number, 1 for the week containing the 1st
    """
    offset = first_weekday_offset(d.year, d.month, week_start)
    return (d.day + offset + DAYS_PER_WEEK - 1) // DAYS_PER_WEEK


def weeks_in_month(year: int, month: int, week_start: WeekStart = RECORD_WEEK_START) -> List[WeekBucket]:
    """Enumerate every week bucket touching a month, in ascending order.

    Date ranges are inclusive and follow calendar-week boundaries, so the
    first bucket may start in the previous month and the last may end in the
    next one.

    Args:
        year: Calendar year
        month: Calendar month (1-12)
        week_start: Week anchor

    Returns:
        List of 4 to 6 WeekBucket objects

    Raises:
        InvalidArgumentError: If year or month is out of range
    """
    offset = first_weekday_offset(year, month, week_start)
    last_day = calendar.monthrange(year, month)[1]
    count = week_of_month(date(year, month, last_day), week_start)

    first_start = date(year, month, 1) - timedelta(days=offset)
    buckets: List[WeekBucket] = []
    for i in range(count):
        start = first_start + timedelta(days=i * DAYS_PER_WEEK)
        buckets.append(
            WeekBucket(
                week_number=i + 1,
                start_date=start,
                end_date=start + timedelta(days=DAYS_PER_WEEK - 1),
            )
        )
    return buckets


def week_bounds(year: int, month: int, week: int, week_start: WeekStart = RECORD_WEEK_START) -> WeekBucket:
    """Return the bucket for a (year, month, week-of-month) triple.

    Raises:
        InvalidArgumentError: If the month has no such week
    """
    buckets = weeks_in_month(year, month, week_start)
    if isinstance(week, bool) or not isinstance(week, int) or not (1 <= week <= len(buckets)):
        raise InvalidArgumentError(
            f"week must be in [1, {len(buckets)}] for {year}-{month:02d}, got {week!r}"
        )
    return buckets[week - 1]


def week_of_year(d: date, week_start: WeekStart = DISPLAY_WEEK_START) -> int:
    """Return the 1-based week number of a date within its year.

    Week 1 is the week containing 1 January, so the numbering is the
    week-of-month formula applied to the whole year.
    """
    _check_year(d.year)
    offset = weekday_index(date(d.year, 1, 1), week_start)
    day_of_year = d.timetuple().tm_yday
    return (day_of_year + offset + DAYS_PER_WEEK - 1) // DAYS_PER_WEEK


def year_week_bounds(year: int, week: int, week_start: WeekStart = DISPLAY_WEEK_START) -> WeekBucket:
    """Return the date range of a week-of-year (inverse of week_of_year).

    Raises:
        InvalidArgumentError: If the year has no such week
    """
    _check_year(year)
    count = week_of_year(date(year, 12, 31), week_start)
    if isinstance(week, bool) or not isinstance(week, int) or not (1 <= week <= count):
        raise InvalidArgumentError(f"week must be in [1, {count}] for {year}, got {week!r}")
    start = start_of_week(date(year, 1, 1), week_start) + timedelta(days=(week - 1) * DAYS_PER_WEEK)
    return WeekBucket(week_number=week, start_date=start, end_date=start + timedelta(days=DAYS_PER_WEEK - 1))


def iter_week_starts(start: date, end: date, week_start: WeekStart = RECORD_WEEK_START) -> Iterator[date]:
    """Yield the first day of every calendar week overlapping [start, end]."""
    cur = start_of_week(start, week_start)
    while cur <= end:
        yield cur
        cur = cur + timedelta(days=DAYS_PER_WEEK)
