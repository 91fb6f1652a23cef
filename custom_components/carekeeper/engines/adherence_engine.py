"""Adherence Engine - Day and month medication compliance.

Classifies realized medication logs:
- Day status: all_taken / partial_taken / none_taken / no_medications, plus
  `scheduled` for future days that have an active schedule but no logs yet
- Monthly summary: taken/missed/skipped/scheduled counts and a percentage
  whose denominator excludes still-`scheduled` logs
- Current streak: consecutive fully-taken days walking back from today,
  where days without logs neither extend nor break the streak

ARCHITECTURE: This is a pure logic engine with NO Home Assistant dependencies.
All functions are static methods that operate on passed-in data.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import calendar
from datetime import date, timedelta
from typing import TYPE_CHECKING, Any

from .. import const
from ..utils.dt_utils import dt_to_utc, start_of_day
from .schedule_engine import ResolvedSchedule, ScheduleEngine

if TYPE_CHECKING:
    from zoneinfo import ZoneInfo

    from ..type_defs import MedicationData, MonthlySummary


class AdherenceEngine:
    """Stateless adherence calculations over medication logs."""

    @staticmethod
    def classify_day(logs: Iterable[Mapping[str, Any]]) -> str:
        """Classify one day's logs.

        Returns:
            ADHERENCE_NO_MEDICATIONS for no logs, ADHERENCE_ALL_TAKEN when
            every log is taken, ADHERENCE_NONE_TAKEN when none is, otherwise
            ADHERENCE_PARTIAL_TAKEN.
        """
        statuses = [log.get(const.FIELD_LOG_STATUS) for log in logs]
        if not statuses:
            return const.ADHERENCE_NO_MEDICATIONS

        taken = statuses.count(const.LOG_STATUS_TAKEN)
        if taken == len(statuses):
            return const.ADHERENCE_ALL_TAKEN
        if taken == 0:
            return const.ADHERENCE_NONE_TAKEN
        return const.ADHERENCE_PARTIAL_TAKEN

    @staticmethod
    def group_logs_by_day(
        logs: Iterable[Mapping[str, Any]],
        tz: ZoneInfo | None = None,
    ) -> dict[date, list[Mapping[str, Any]]]:
        """Bucket logs by the local calendar day of their scheduled_at."""
        by_day: dict[date, list[Mapping[str, Any]]] = {}
        for log in logs:
            instant = dt_to_utc(log.get(const.FIELD_LOG_SCHEDULED_AT))
            if instant is None:
                const.LOGGER.debug(
                    "DEBUG: Log %s has no usable scheduled_at", log.get(const.FIELD_ID)
                )
                continue
            by_day.setdefault(start_of_day(instant, tz), []).append(log)
        return by_day

    @staticmethod
    def classify_month(
        year: int,
        month: int,
        logs: Iterable[Mapping[str, Any]],
        today: date,
        medications: Iterable[MedicationData] = (),
        schedules: Iterable[ResolvedSchedule] = (),
        medication_id: str | None = None,
        tz: ZoneInfo | None = None,
    ) -> dict[date, str]:
        """Return a day → status map for every day of a month that has one.

        Days with logs are classified from their logs. Days after `today`
        without logs are `scheduled` when a non-paused medication has an
        active `scheduled` schedule on that day. Other days are omitted.

        Args:
            medication_id: Restrict logs and future schedules to one medication.
        """
        first_day = date(year, month, 1)
        last_day = date(year, month, calendar.monthrange(year, month)[1])

        if medication_id is not None:
            logs = [
                log
                for log in logs
                if log.get(const.FIELD_LOG_MEDICATION_ID) == medication_id
            ]

        statuses: dict[date, str] = {}
        for day, day_logs in AdherenceEngine.group_logs_by_day(logs, tz).items():
            if first_day <= day <= last_day:
                statuses[day] = AdherenceEngine.classify_day(day_logs)

        active_medication_ids = {
            med[const.FIELD_ID]
            for med in medications
            if not med.get(const.FIELD_MEDICATION_IS_PAUSED, False)
            and (medication_id is None or med[const.FIELD_ID] == medication_id)
        }
        engines = [
            ScheduleEngine(schedule)
            for schedule in schedules
            if schedule.medication_id in active_medication_ids
            and schedule.schedule_type == const.SCHEDULE_TYPE_SCHEDULED
        ]
        if not engines:
            return statuses

        check_day = max(today + timedelta(days=1), first_day)
        while check_day <= last_day:
            if check_day not in statuses and any(
                engine.is_active(check_day) for engine in engines
            ):
                statuses[check_day] = const.ADHERENCE_SCHEDULED
            check_day += timedelta(days=1)

        return statuses

    @staticmethod
    def monthly_summary(logs: Iterable[Mapping[str, Any]]) -> MonthlySummary:
        """Count log statuses and compute the adherence percentage.

        adherence_percentage = round(100 * taken / (taken + missed + skipped)),
        0 when that denominator is 0.
        """
        counts = dict.fromkeys(const.LOG_STATUSES, 0)
        for log in logs:
            status = log.get(const.FIELD_LOG_STATUS)
            if status in counts:
                counts[status] += 1

        taken = counts[const.LOG_STATUS_TAKEN]
        missed = counts[const.LOG_STATUS_MISSED]
        skipped = counts[const.LOG_STATUS_SKIPPED]
        denominator = taken + missed + skipped
        percentage = round(100 * taken / denominator) if denominator else 0

        return {
            "taken_count": taken,
            "missed_count": missed,
            "skipped_count": skipped,
            "scheduled_count": counts[const.LOG_STATUS_SCHEDULED],
            "adherence_percentage": percentage,
        }

    @staticmethod
    def current_streak(
        logs_by_day: Mapping[date, Iterable[Mapping[str, Any]]],
        today: date,
        max_days: int = const.STREAK_MAX_DAYS,
        max_empty_lead_days: int = const.STREAK_MAX_EMPTY_LEAD_DAYS,
    ) -> int:
        """Count consecutive fully-taken days ending today.

        Walks backward from today. Days without logs are skipped. A day with
        logs continues the streak only when every log is taken. The scan
        stops after max_days days, or once max_empty_lead_days days have been
        scanned while the streak is still 0.
        """
        streak = 0
        for offset in range(max_days + 1):
            if streak == 0 and offset > max_empty_lead_days:
                break
            day_logs = list(logs_by_day.get(today - timedelta(days=offset), ()))
            if not day_logs:
                continue
            if all(
                log.get(const.FIELD_LOG_STATUS) == const.LOG_STATUS_TAKEN
                for log in day_logs
            ):
                streak += 1
            else:
                break
        return streak
