# File: utils/dt_utils.py
"""Date and time utilities for CareKeeper.

Pure Python date/time functions with ZERO Home Assistant dependencies.
All functions here can be unit tested without Home Assistant mocking.

⚠️ UTILS PURITY: NO `homeassistant.*` imports allowed.
   Uses standard library: datetime, zoneinfo, dateutil.

Functions:
    - dt_today_local: Get today's date in local timezone
    - dt_now_utc: Get current datetime in UTC
    - as_utc / as_local: Timezone conversion
    - start_of_day: Normalize a date or datetime to its calendar day
    - day_of_week_index: Sunday-based weekday index (Sunday = 0)
    - days_between: Calendar-day difference between two dates
    - dt_add_years: Add years with Feb 29 clamping
    - dt_parse_date: Parse date strings
    - dt_to_utc: Parse an ISO instant and convert to UTC
    - parse_time_of_day: Parse "HH:MM" strings
    - combine_local: Build a local datetime from a date and "HH:MM"
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time
import logging
import re
from zoneinfo import ZoneInfo

# Third-party date utilities (no HA dependency)
from dateutil.relativedelta import relativedelta

# Module-level logger (no HA dependency)
_LOGGER = logging.getLogger(__name__)

# ==============================================================================
# Constants (local copies to avoid circular imports)
# ==============================================================================

# Default timezone - can be overridden by caller
DEFAULT_TIME_ZONE: ZoneInfo = ZoneInfo("UTC")

# "HH:MM" with optional ":SS" suffix
_TIME_OF_DAY_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


# ==============================================================================
# Timezone Configuration
# ==============================================================================


def set_default_timezone(tz: ZoneInfo) -> None:
    """Set the default timezone for all dt_utils functions.

    Call this during integration setup to configure the user's timezone.

    Args:
        tz: ZoneInfo object representing the default timezone
    """
    global DEFAULT_TIME_ZONE  # noqa: PLW0603
    DEFAULT_TIME_ZONE = tz


# ==============================================================================
# Current Date/Time Functions
# ==============================================================================


def dt_today_local(tz: ZoneInfo | None = None) -> date:
    """Return today's date in local timezone as a `datetime.date`.

    Args:
        tz: Optional timezone override. Uses DEFAULT_TIME_ZONE if not provided.

    Example:
        datetime.date(2025, 4, 7)
    """
    tz_info = tz or DEFAULT_TIME_ZONE
    return datetime.now(tz_info).date()


def dt_now_utc() -> datetime:
    """Return the current datetime in UTC (timezone-aware)."""
    return datetime.now(UTC)


# ==============================================================================
# Timezone Conversion
# ==============================================================================


def as_utc(dt_obj: datetime) -> datetime:
    """Convert a datetime to UTC timezone.

    Naive datetimes are assumed to be in the default timezone.
    """
    if dt_obj.tzinfo is None:
        dt_obj = dt_obj.replace(tzinfo=DEFAULT_TIME_ZONE)
    return dt_obj.astimezone(UTC)


def as_local(dt_obj: datetime, tz: ZoneInfo | None = None) -> datetime:
    """Convert a datetime to local timezone.

    Naive datetimes are assumed to be in UTC.
    """
    tz_info = tz or DEFAULT_TIME_ZONE
    if dt_obj.tzinfo is None:
        dt_obj = dt_obj.replace(tzinfo=UTC)
    return dt_obj.astimezone(tz_info)


# ==============================================================================
# Calendar-Day Arithmetic
# ==============================================================================


def start_of_day(value: date | datetime, tz: ZoneInfo | None = None) -> date:
    """Normalize a date or datetime to the calendar day it falls on.

    Aware datetimes are converted to the local timezone first so that an
    instant late in the UTC day lands on the correct local date. Naive
    datetimes are taken at face value.

    Args:
        value: Date or datetime to normalize
        tz: Optional timezone override. Uses DEFAULT_TIME_ZONE if not provided.

    Returns:
        The calendar date.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.date()
        return as_local(value, tz).date()
    return value


def day_of_week_index(value: date | datetime) -> int:
    """Return the Sunday-based weekday index (Sunday = 0 … Saturday = 6).

    Python's `date.weekday()` is Monday-based (Monday = 0), so shift by one.

    Example:
        >>> day_of_week_index(date(2025, 1, 5))  # Sunday
        0
    """
    return (start_of_day(value).weekday() + 1) % 7


def days_between(start: date | datetime, end: date | datetime) -> int:
    """Return the number of calendar days from `start` to `end`.

    Both values are normalized with start_of_day() first, so the result is a
    pure calendar-day difference (negative when `end` precedes `start`).

    Example:
        >>> days_between(date(2025, 1, 1), date(2025, 1, 10))
        9
    """
    return (start_of_day(end) - start_of_day(start)).days


def dt_add_years(value: date, years: int) -> date:
    """Add whole years to a date, clamping Feb 29 to Feb 28 when needed."""
    return value + relativedelta(years=years)


# ==============================================================================
# Date/Time Parsing
# ==============================================================================


def dt_parse_date(date_str: str | None) -> date | None:
    """Safely parse a date string into a `datetime.date`.

    Accepts formats:
    - "2025-04-07" (ISO format)
    - "2025-04-07T08:00:00+00:00" (ISO datetime, date portion kept)
    - "04/07/2025" (US format)
    - "2025/04/07"

    Returns:
        datetime.date or None if parsing fails.
    """
    if not date_str or not isinstance(date_str, str):
        return None

    # Try ISO format first (most common)
    try:
        return date.fromisoformat(date_str)
    except ValueError:
        pass

    try:
        return datetime.fromisoformat(date_str).date()
    except ValueError:
        pass

    for fmt in ("%m/%d/%Y", "%Y/%m/%d"):
        try:
            return datetime.strptime(date_str, fmt).date()
        except ValueError:
            continue

    _LOGGER.debug("Unable to parse date string: %s", date_str)
    return None


def dt_to_utc(dt_str: str | None) -> datetime | None:
    """Parse an ISO datetime string and convert it to UTC.

    Naive values are taken as local time. A bare date means local midnight.
    Returns None for empty or unparseable input.

    Example:
        "2025-01-07T14:30:00" → datetime.datetime(2025, 1, 7, 19, 30, tzinfo=UTC)
    """
    if not dt_str or not isinstance(dt_str, str):
        return None

    try:
        result = datetime.fromisoformat(dt_str)
    except ValueError:
        parsed_date = dt_parse_date(dt_str)
        if parsed_date is None:
            return None
        result = datetime.combine(parsed_date, time.min)

    return as_utc(result)


# ==============================================================================
# Time-of-Day Helpers
# ==============================================================================


def parse_time_of_day(time_str: str | None) -> time | None:
    """Parse an "HH:MM" (or "HH:MM:SS") string into a `datetime.time`.

    Returns:
        time object, or None for empty or malformed input.

    Example:
        >>> parse_time_of_day("08:30")
        datetime.time(8, 30)
    """
    if not time_str or not isinstance(time_str, str):
        return None

    match = _TIME_OF_DAY_PATTERN.match(time_str.strip())
    if not match:
        _LOGGER.debug("Invalid time-of-day string: %s", time_str)
        return None

    hour, minute = int(match.group(1)), int(match.group(2))
    second = int(match.group(3)) if match.group(3) else 0
    if hour > 23 or minute > 59 or second > 59:
        _LOGGER.debug("Out-of-range time-of-day string: %s", time_str)
        return None
    return time(hour, minute, second)


def combine_local(
    day: date, time_str: str | None, tz: ZoneInfo | None = None
) -> datetime:
    """Build a timezone-aware local datetime from a date and "HH:MM".

    A missing or malformed time falls back to local midnight so callers
    always get a stable, sortable instant.
    """
    tz_info = tz or DEFAULT_TIME_ZONE
    time_of_day = parse_time_of_day(time_str) or time.min
    return datetime.combine(day, time_of_day, tzinfo=tz_info)
