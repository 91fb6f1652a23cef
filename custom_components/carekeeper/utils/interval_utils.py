# File: utils/interval_utils.py
"""Recurring reminder interval encoding for CareKeeper.

Pure Python with ZERO Home Assistant dependencies.

Wire format: a single string "{value}_{unit}", for example "30_minutes" or
"2_hours". Older payloads carry named values ("every_hour", "daily", ...);
those decode to an equivalent (value, unit) pair so existing reminders keep
firing at the same cadence.

Units:
    minutes, hours, days, months (30 days), years (365 days)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
import logging
from typing import Final

_LOGGER = logging.getLogger(__name__)

INTERVAL_UNIT_MINUTES: Final = "minutes"
INTERVAL_UNIT_HOURS: Final = "hours"
INTERVAL_UNIT_DAYS: Final = "days"
INTERVAL_UNIT_MONTHS: Final = "months"
INTERVAL_UNIT_YEARS: Final = "years"

INTERVAL_UNITS: Final[tuple[str, ...]] = (
    INTERVAL_UNIT_MINUTES,
    INTERVAL_UNIT_HOURS,
    INTERVAL_UNIT_DAYS,
    INTERVAL_UNIT_MONTHS,
    INTERVAL_UNIT_YEARS,
)

# Fixed-length approximations for calendar units
_UNIT_TO_TIMEDELTA: Final[dict[str, timedelta]] = {
    INTERVAL_UNIT_MINUTES: timedelta(minutes=1),
    INTERVAL_UNIT_HOURS: timedelta(hours=1),
    INTERVAL_UNIT_DAYS: timedelta(days=1),
    INTERVAL_UNIT_MONTHS: timedelta(days=30),
    INTERVAL_UNIT_YEARS: timedelta(days=365),
}


@dataclass(frozen=True, slots=True)
class ReminderInterval:
    """A positive repeat interval such as 30 minutes or 2 hours."""

    value: int
    unit: str

    def to_timedelta(self) -> timedelta:
        """Return the interval length."""
        return _UNIT_TO_TIMEDELTA[self.unit] * self.value


DEFAULT_INTERVAL: Final = ReminderInterval(1, INTERVAL_UNIT_HOURS)

LEGACY_INTERVALS: Final[dict[str, ReminderInterval]] = {
    "every_15_minutes": ReminderInterval(15, INTERVAL_UNIT_MINUTES),
    "every_30_minutes": ReminderInterval(30, INTERVAL_UNIT_MINUTES),
    "every_hour": ReminderInterval(1, INTERVAL_UNIT_HOURS),
    "hourly": ReminderInterval(1, INTERVAL_UNIT_HOURS),
    "every_2_hours": ReminderInterval(2, INTERVAL_UNIT_HOURS),
    "every_4_hours": ReminderInterval(4, INTERVAL_UNIT_HOURS),
    "every_8_hours": ReminderInterval(8, INTERVAL_UNIT_HOURS),
    "daily": ReminderInterval(1, INTERVAL_UNIT_DAYS),
}


def encode_interval(interval: ReminderInterval) -> str:
    """Serialize an interval to its "{value}_{unit}" wire string.

    Example:
        >>> encode_interval(ReminderInterval(30, "minutes"))
        '30_minutes'
    """
    return f"{interval.value}_{interval.unit}"


def decode_interval(raw: str | None) -> ReminderInterval:
    """Decode a wire string into a ReminderInterval.

    Legacy named values are looked up first. Otherwise the string is split on
    its first underscore into an integer value and a unit. Anything that does
    not parse to a positive value with a known unit decodes to the 1-hour
    default.

    Example:
        >>> decode_interval("2_hours")
        ReminderInterval(value=2, unit='hours')
        >>> decode_interval("every_hour")
        ReminderInterval(value=1, unit='hours')
    """
    if not raw or not isinstance(raw, str):
        return DEFAULT_INTERVAL

    legacy = LEGACY_INTERVALS.get(raw)
    if legacy is not None:
        return legacy

    value_part, sep, unit_part = raw.partition("_")
    if not sep:
        _LOGGER.debug("Interval '%s' has no unit separator, using default", raw)
        return DEFAULT_INTERVAL

    try:
        value = int(value_part)
    except ValueError:
        _LOGGER.debug("Interval '%s' has a non-numeric value, using default", raw)
        return DEFAULT_INTERVAL

    if value <= 0 or unit_part not in INTERVAL_UNITS:
        _LOGGER.debug("Interval '%s' is out of range, using default", raw)
        return DEFAULT_INTERVAL

    return ReminderInterval(value, unit_part)
