"""Occurrence Engine - Projection of single recurring dates.

Projects birthdays, countdowns, anniversaries and multi-day grouped events
onto the calendar:
- Annual recurrence: this year's month/day, or next year's once it has passed
- Non-recurring events: the stored date verbatim, "passed" once in the past
- Grouped multi-day events: one occurrence per sibling record sharing a
  group_id, each carrying the first day's title/type/notes baseline
- Legacy multi-day events (end_date set, no group_id): one occurrence per
  day from date through end_date inclusive

It also decides WHEN reminders should next fire (countdown reminder offsets
and repeating sticky reminders). Delivery belongs to ReminderManager.

ARCHITECTURE: This is a pure logic engine with NO Home Assistant dependencies.
All functions are static methods that operate on passed-in data.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Any

from .. import const
from ..utils.dt_utils import (
    as_local,
    combine_local,
    dt_add_years,
    dt_parse_date,
    dt_to_utc,
    start_of_day,
)
from ..utils.interval_utils import decode_interval

if TYPE_CHECKING:
    from zoneinfo import ZoneInfo

    from ..type_defs import CountdownData, StickyReminderData


@dataclass(frozen=True, slots=True)
class CountdownOccurrence:
    """One calendar day of a countdown.

    `countdown` is the record that owns this day; `baseline` is the group's
    first-day record (the same record for ungrouped countdowns).
    `is_expanded_day` marks days produced from a legacy end_date span.
    """

    countdown: dict[str, Any]
    baseline: dict[str, Any]
    day: date
    is_expanded_day: bool = False


class OccurrenceEngine:
    """Stateless projector for recurring single dates.

    Example:
        next_day = OccurrenceEngine.next_occurrence(date(1990, 6, 15), date(2025, 6, 20))
        # date(2026, 6, 15)
    """

    # ────────────────────────────────────────────────────────────────
    # Annual Recurrence
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def next_occurrence(
        recurring_date: date | datetime, reference: date | datetime
    ) -> date:
        """Return the next annual occurrence on or after the reference day.

        Feb 29 clamps to Feb 28 in non-leap years.
        """
        original = start_of_day(recurring_date)
        today = start_of_day(reference)
        candidate = dt_add_years(original, today.year - original.year)
        if candidate < today:
            candidate = dt_add_years(original, today.year + 1 - original.year)
        return candidate

    @staticmethod
    def days_until(
        target: date | datetime,
        reference: date | datetime,
        recurring: bool = True,
    ) -> int:
        """Return whole days from the reference day to the target, never negative.

        Recurring targets are projected with next_occurrence() first.
        """
        today = start_of_day(reference)
        if recurring:
            event_day = OccurrenceEngine.next_occurrence(target, today)
        else:
            event_day = start_of_day(target)
        return max(0, (event_day - today).days)

    @staticmethod
    def has_passed(
        target: date | datetime,
        now: datetime,
        recurring: bool = False,
    ) -> bool:
        """Return True when a non-recurring target lies before `now`.

        Recurring targets never pass. A plain date is compared at its start
        of day.
        """
        if recurring:
            return False
        if isinstance(target, datetime):
            return target < now
        return target < start_of_day(now)

    @staticmethod
    def occurrences_in_range(
        recurring_date: date,
        start: date,
        end: date,
        recurring: bool = True,
    ) -> list[date]:
        """Return every occurrence of a date within [start, end] inclusive."""
        if not recurring:
            return [recurring_date] if start <= recurring_date <= end else []

        occurrences: list[date] = []
        for year in range(start.year, end.year + 1):
            candidate = dt_add_years(recurring_date, year - recurring_date.year)
            if candidate < recurring_date:
                # Never project before the original date
                continue
            if start <= candidate <= end:
                occurrences.append(candidate)
        return occurrences

    @staticmethod
    def birthday_occurrences(
        birthday: str | date | None, start: date, end: date
    ) -> list[date]:
        """Return a profile's birthday occurrences within [start, end]."""
        birth_day = birthday if isinstance(birthday, date) else dt_parse_date(birthday)
        if birth_day is None:
            return []
        return OccurrenceEngine.occurrences_in_range(birth_day, start, end)

    # ────────────────────────────────────────────────────────────────
    # Countdowns and Multi-Day Groups
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def countdown_date(countdown: CountdownData | dict[str, Any]) -> date | None:
        """Return the local calendar day a countdown record stands for."""
        raw = countdown.get(const.FIELD_DATE)
        if isinstance(raw, str) and "T" in raw:
            instant = dt_to_utc(raw)
            if instant is not None:
                return as_local(instant).date()
        return dt_parse_date(raw)

    @staticmethod
    def countdown_time(countdown: CountdownData | dict[str, Any]) -> str | None:
        """Return "HH:MM" for a timed countdown, None for an all-day one."""
        if not countdown.get(const.FIELD_COUNTDOWN_HAS_TIME):
            return None
        raw = countdown.get(const.FIELD_DATE)
        if not isinstance(raw, str) or "T" not in raw:
            return None
        instant = dt_to_utc(raw)
        if instant is None:
            return None
        return as_local(instant).strftime("%H:%M")

    @staticmethod
    def group_countdowns(
        countdowns: Iterable[CountdownData | dict[str, Any]],
    ) -> dict[str, list[dict[str, Any]]]:
        """Group countdown records by group_id, each group sorted by date.

        Ungrouped records are keyed by their own id.
        """
        groups: dict[str, list[dict[str, Any]]] = {}
        for countdown in countdowns:
            key = countdown.get(const.FIELD_COUNTDOWN_GROUP_ID) or countdown.get(
                const.FIELD_ID
            )
            groups.setdefault(str(key), []).append(dict(countdown))
        for members in groups.values():
            members.sort(
                key=lambda item: (
                    OccurrenceEngine.countdown_date(item) or date.max,
                    str(item.get(const.FIELD_ID)),
                )
            )
        return groups

    @staticmethod
    def is_group_first_day(
        countdown: CountdownData | dict[str, Any],
        siblings: Iterable[CountdownData | dict[str, Any]],
    ) -> bool:
        """Return True when `countdown` is the earliest-dated record of its group.

        Ungrouped countdowns are always their own first day.
        """
        group_id = countdown.get(const.FIELD_COUNTDOWN_GROUP_ID)
        if not group_id:
            return True
        members = [
            sibling
            for sibling in siblings
            if sibling.get(const.FIELD_COUNTDOWN_GROUP_ID) == group_id
        ]
        if not members:
            return True
        first = min(
            members,
            key=lambda item: (
                OccurrenceEngine.countdown_date(item) or date.max,
                str(item.get(const.FIELD_ID)),
            ),
        )
        return first.get(const.FIELD_ID) == countdown.get(const.FIELD_ID)

    @staticmethod
    def countdown_occurrences_in_range(
        countdowns: Iterable[CountdownData | dict[str, Any]],
        start: date,
        end: date,
    ) -> list[CountdownOccurrence]:
        """Project every countdown record onto [start, end].

        Grouped records yield one occurrence per sibling day inside the range,
        each pointing at the group's first day as baseline. Legacy spans are
        expanded day by day. Recurring single-day records repeat yearly.
        """
        occurrences: list[CountdownOccurrence] = []
        for group_key, members in OccurrenceEngine.group_countdowns(countdowns).items():
            baseline = members[0]
            is_group = bool(baseline.get(const.FIELD_COUNTDOWN_GROUP_ID))

            for countdown in members:
                day = OccurrenceEngine.countdown_date(countdown)
                if day is None:
                    const.LOGGER.debug(
                        "DEBUG: Countdown %s in group %s has no usable date",
                        countdown.get(const.FIELD_ID),
                        group_key,
                    )
                    continue

                recurring = bool(countdown.get(const.FIELD_COUNTDOWN_IS_RECURRING))
                end_day = dt_parse_date(countdown.get(const.FIELD_COUNTDOWN_END_DATE))

                if not is_group and end_day is not None and end_day > day:
                    occurrences.extend(
                        OccurrenceEngine._expand_legacy_span(
                            countdown, day, end_day, start, end, recurring
                        )
                    )
                    continue

                for occurrence_day in OccurrenceEngine.occurrences_in_range(
                    day, start, end, recurring
                ):
                    occurrences.append(
                        CountdownOccurrence(
                            countdown=countdown,
                            baseline=baseline if is_group else countdown,
                            day=occurrence_day,
                        )
                    )

        occurrences.sort(key=lambda occ: (occ.day, str(occ.countdown.get(const.FIELD_ID))))
        return occurrences

    @staticmethod
    def _expand_legacy_span(
        countdown: dict[str, Any],
        first_day: date,
        last_day: date,
        start: date,
        end: date,
        recurring: bool,
    ) -> list[CountdownOccurrence]:
        """Expand a legacy date..end_date span into per-day occurrences."""
        span_days = (last_day - first_day).days
        anchors = (
            OccurrenceEngine.occurrences_in_range(
                first_day, start - timedelta(days=span_days), end, recurring=True
            )
            if recurring
            else [first_day]
        )
        result: list[CountdownOccurrence] = []
        for anchor in anchors:
            for offset in range(span_days + 1):
                day = anchor + timedelta(days=offset)
                if start <= day <= end:
                    result.append(
                        CountdownOccurrence(
                            countdown=countdown,
                            baseline=countdown,
                            day=day,
                            is_expanded_day=True,
                        )
                    )
        return result

    # ────────────────────────────────────────────────────────────────
    # Reminder Fire Times
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def countdown_reminder_time(
        countdown: CountdownData | dict[str, Any],
        now: datetime,
        siblings: Iterable[CountdownData | dict[str, Any]] = (),
        tz: ZoneInfo | None = None,
    ) -> datetime | None:
        """Return when a countdown's reminder should next fire.

        The event instant (its time, or local midnight for all-day events)
        minus reminder_offset_minutes. Only the first day of a group owns a
        reminder. Returns None when no reminder is configured or the fire
        time has already passed.
        """
        offset = countdown.get(const.FIELD_COUNTDOWN_REMINDER_OFFSET)
        if offset is None:
            return None
        if not OccurrenceEngine.is_group_first_day(countdown, siblings):
            return None

        day = OccurrenceEngine.countdown_date(countdown)
        if day is None:
            return None

        time_str = OccurrenceEngine.countdown_time(countdown)
        recurring = bool(countdown.get(const.FIELD_COUNTDOWN_IS_RECURRING))
        event_day = day
        if recurring:
            event_day = OccurrenceEngine.next_occurrence(day, as_local(now, tz))

        fire_at = combine_local(event_day, time_str, tz) - timedelta(
            minutes=int(offset)
        )
        if fire_at <= now and recurring:
            # This year's reminder window already closed, arm next year's
            event_day = dt_add_years(day, event_day.year + 1 - day.year)
            fire_at = combine_local(event_day, time_str, tz) - timedelta(
                minutes=int(offset)
            )
        if fire_at <= now:
            return None
        return fire_at

    @staticmethod
    def sticky_next_fire_time(
        reminder: StickyReminderData | dict[str, Any], now: datetime
    ) -> datetime | None:
        """Return when a repeating sticky reminder should next fire.

        A future trigger_time fires as-is. Otherwise the next fire time is
        trigger_time + (intervals elapsed + 1) x interval. Inactive or
        dismissed reminders never fire.
        """
        if not reminder.get(const.FIELD_STICKY_IS_ACTIVE, True):
            return None
        if reminder.get(const.FIELD_STICKY_IS_DISMISSED, False):
            return None

        trigger = dt_to_utc(reminder.get(const.FIELD_STICKY_TRIGGER_TIME))
        if trigger is None:
            return None
        if trigger > now:
            return trigger

        interval = decode_interval(
            reminder.get(const.FIELD_STICKY_REPEAT_INTERVAL)
        ).to_timedelta()
        elapsed = now - trigger
        intervals_passed = elapsed // interval
        return trigger + (intervals_passed + 1) * interval
