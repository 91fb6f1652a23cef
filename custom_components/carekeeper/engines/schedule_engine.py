"""Schedule Engine for CareKeeper.

Resolves medication schedules into concrete per-day dose occurrences using
sequential duration windows:

- Entries are evaluated in `sort_order`.
- Each entry owns the calendar-day window that starts where the previous
  entry's window ended, measured from the schedule's start date.
- An entry without a duration owns every remaining day and ends the scan,
  so later entries are unreachable whatever their sort_order.
- Within its window an entry is active only on its selected weekdays
  (Sunday = 0).

Duration consumption is calendar-day based, never occurrence-count based: a
7-day entry that only runs on Mondays still consumes 7 days.

Design Principles:
    - Pure: no Home Assistant imports, no I/O, no shared mutable state
    - Canonical input: callers pass a ResolvedSchedule (legacy shapes are
      resolved once by data_builders.resolve_schedule)
    - Defensive: weekday values outside 0-6 are ignored, never raised

IMPORTANT: This module must NOT import from coordinator.py to avoid circular imports.
Only import from const.py, type_defs.py, utils and standard libraries.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from typing import TYPE_CHECKING
import uuid

from .. import const
from ..utils.dt_utils import (
    as_utc,
    combine_local,
    day_of_week_index,
    days_between,
    dt_to_utc,
    start_of_day,
)

if TYPE_CHECKING:
    from zoneinfo import ZoneInfo

    from ..type_defs import MedicationData, MedicationLogData


@dataclass(frozen=True, slots=True)
class ScheduleEntry:
    """One dosing rule within a medication schedule.

    Attributes:
        entry_id: Stable identifier (used in occurrence uids)
        time: Time of day, "HH:MM"
        days_of_week: Active weekdays, Sunday = 0
        duration_days: Window length in calendar days, None = open-ended
        dosage: Optional dosage text
        sort_order: Sequential priority (lower runs first)
    """

    entry_id: str
    time: str
    days_of_week: frozenset[int]
    duration_days: int | None = None
    dosage: str | None = None
    sort_order: int = 0


@dataclass(frozen=True, slots=True)
class ResolvedSchedule:
    """A medication schedule in its single canonical shape.

    `entries` is already sorted by sort_order. A concurrent schedule (the
    legacy times list) has no windows: every entry runs for the whole
    schedule.
    """

    schedule_id: str
    medication_id: str
    schedule_type: str
    start_date: date
    end_date: date | None
    entries: tuple[ScheduleEntry, ...]
    concurrent: bool = False


@dataclass(frozen=True, slots=True)
class Occurrence:
    """A concrete dose instance derived from a schedule entry."""

    medication_id: str
    schedule_id: str
    entry: ScheduleEntry
    day: date
    scheduled_at: datetime


class ScheduleEngine:
    """Sequential-window resolver for one medication schedule.

    Example:
        engine = ScheduleEngine(schedule)
        if engine.is_active(date(2025, 1, 5)):
            for entry in engine.active_entries(date(2025, 1, 5)):
                ...
    """

    def __init__(self, schedule: ResolvedSchedule) -> None:
        """Initialize the engine with a resolved schedule.

        Args:
            schedule: Canonical schedule produced by data_builders.resolve_schedule.
        """
        self._schedule = schedule
        self._entries = tuple(
            sorted(schedule.entries, key=lambda entry: entry.sort_order)
        )

    @property
    def schedule(self) -> ResolvedSchedule:
        """Return the schedule this engine resolves."""
        return self._schedule

    def is_active(self, day: date | datetime) -> bool:
        """Return True when at least one entry is active on `day`."""
        return bool(self.active_entries(day))

    def active_entries(self, day: date | datetime) -> list[ScheduleEntry]:
        """Return the entries active on `day`, in sort order.

        Args:
            day: Target date (datetimes are normalized to their local day).

        Returns:
            Active entries; empty before start_date, after end_date, or when
            the schedule has no entries.
        """
        target = start_of_day(day)
        schedule = self._schedule

        if target < schedule.start_date:
            return []
        if schedule.end_date is not None and target > schedule.end_date:
            return []
        if not self._entries:
            return []

        days_since_start = days_between(schedule.start_date, target)
        weekday = day_of_week_index(target)

        if schedule.concurrent:
            return [
                entry
                for entry in self._entries
                if weekday in {d for d in entry.days_of_week if 0 <= d <= 6}
            ]

        active: list[ScheduleEntry] = []
        cumulative_days = 0

        for entry in self._entries:
            if entry.duration_days is None:
                in_window = days_since_start >= cumulative_days
            else:
                window_end = cumulative_days + entry.duration_days - 1
                in_window = cumulative_days <= days_since_start <= window_end

            valid_days = {d for d in entry.days_of_week if 0 <= d <= 6}
            if in_window and weekday in valid_days:
                active.append(entry)

            if entry.duration_days is None:
                # An open-ended window owns every remaining day
                break
            cumulative_days += entry.duration_days

        return active

    def entry_window(self, entry_id: str) -> tuple[int, int | None] | None:
        """Return the (first_day, last_day) window offsets for an entry.

        last_day is None for an open-ended entry. Returns None when the entry
        is not part of this schedule or is unreachable.
        """
        if self._schedule.concurrent:
            if any(entry.entry_id == entry_id for entry in self._entries):
                return (0, None)
            return None

        cumulative_days = 0
        for entry in self._entries:
            if entry.duration_days is None:
                if entry.entry_id == entry_id:
                    return (cumulative_days, None)
                return None
            if entry.entry_id == entry_id:
                return (cumulative_days, cumulative_days + entry.duration_days - 1)
            cumulative_days += entry.duration_days
        return None

    def occurrences_for_date(
        self, day: date, tz: ZoneInfo | None = None
    ) -> list[Occurrence]:
        """Materialize one occurrence per active entry on `day`.

        As-needed schedules never produce occurrences.
        """
        if self._schedule.schedule_type != const.SCHEDULE_TYPE_SCHEDULED:
            return []
        return [
            Occurrence(
                medication_id=self._schedule.medication_id,
                schedule_id=self._schedule.schedule_id,
                entry=entry,
                day=day,
                scheduled_at=combine_local(day, entry.time, tz),
            )
            for entry in self.active_entries(day)
        ]

    # ────────────────────────────────────────────────────────────────
    # Log Generation
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def occurrences_for_medication(
        medication: MedicationData,
        schedules: Iterable[ResolvedSchedule],
        day: date,
        tz: ZoneInfo | None = None,
    ) -> list[Occurrence]:
        """Return every occurrence of a medication on `day`.

        Paused medications have no occurrences. Results are ordered by
        scheduled time.
        """
        if medication.get(const.FIELD_MEDICATION_IS_PAUSED, False):
            return []

        medication_id = medication[const.FIELD_ID]
        occurrences: list[Occurrence] = []
        for schedule in schedules:
            if schedule.medication_id != medication_id:
                continue
            occurrences.extend(ScheduleEngine(schedule).occurrences_for_date(day, tz))
        occurrences.sort(key=lambda occ: (occ.scheduled_at, occ.entry.sort_order))
        return occurrences

    @staticmethod
    def plan_daily_logs(
        medication: MedicationData,
        schedules: Iterable[ResolvedSchedule],
        day: date,
        existing_logs: Iterable[MedicationLogData],
        tz: ZoneInfo | None = None,
    ) -> list[MedicationLogData]:
        """Build the `scheduled` logs still missing for a medication on `day`.

        A log is created for each occurrence unless a log for the same
        medication already exists at the same scheduled instant, so calling
        this repeatedly is idempotent.

        Returns:
            New MedicationLogData dicts (not yet persisted).
        """
        medication_id = medication[const.FIELD_ID]
        taken_instants: set[datetime] = set()
        for log in existing_logs:
            if log.get(const.FIELD_LOG_MEDICATION_ID) != medication_id:
                continue
            instant = dt_to_utc(log.get(const.FIELD_LOG_SCHEDULED_AT))
            if instant is not None:
                taken_instants.add(instant)

        new_logs: list[MedicationLogData] = []
        for occurrence in ScheduleEngine.occurrences_for_medication(
            medication, schedules, day, tz
        ):
            instant = as_utc(occurrence.scheduled_at)
            if instant in taken_instants:
                continue
            taken_instants.add(instant)
            new_logs.append(
                {
                    const.FIELD_ID: str(uuid.uuid4()),
                    const.FIELD_ACCOUNT_ID: medication.get(const.FIELD_ACCOUNT_ID, ""),
                    const.FIELD_LOG_MEDICATION_ID: medication_id,
                    const.FIELD_LOG_SCHEDULED_AT: instant.isoformat(),
                    const.FIELD_LOG_STATUS: const.LOG_STATUS_SCHEDULED,
                    const.FIELD_LOG_TAKEN_AT: None,
                    const.FIELD_LOG_NOTE: None,
                }
            )
        return new_logs

    @staticmethod
    def plan_log_regeneration(
        medication: MedicationData,
        schedules: Iterable[ResolvedSchedule],
        day: date,
        existing_logs: Iterable[MedicationLogData],
        tz: ZoneInfo | None = None,
    ) -> tuple[list[str], list[MedicationLogData]]:
        """Plan the regeneration of a medication's logs for `day`.

        Logs on `day` that are still `scheduled` are replaced; logs the user
        already acted on (taken/missed/skipped) are kept and block a new log
        at the same instant. Paused medications only lose their pending logs.

        Returns:
            (ids of logs to delete, new logs to insert)
        """
        medication_id = medication[const.FIELD_ID]
        to_delete: list[str] = []
        kept: list[MedicationLogData] = []

        for log in existing_logs:
            if log.get(const.FIELD_LOG_MEDICATION_ID) != medication_id:
                continue
            instant = dt_to_utc(log.get(const.FIELD_LOG_SCHEDULED_AT))
            if instant is None or start_of_day(instant, tz) != day:
                continue
            if log.get(const.FIELD_LOG_STATUS) == const.LOG_STATUS_SCHEDULED:
                to_delete.append(log[const.FIELD_ID])
            else:
                kept.append(log)

        new_logs = ScheduleEngine.plan_daily_logs(medication, schedules, day, kept, tz)
        return to_delete, new_logs
