"""Unit tests for engines/adherence_engine.py day, month and streak logic."""

from datetime import date, timedelta
from zoneinfo import ZoneInfo

import pytest

from custom_components.carekeeper import const
from custom_components.carekeeper.data_builders import resolve_schedule
from custom_components.carekeeper.engines.adherence_engine import AdherenceEngine
from tests.helpers import make_entry, make_log, make_medication, make_schedule

UTC_TZ = ZoneInfo("UTC")

TAKEN = const.LOG_STATUS_TAKEN
MISSED = const.LOG_STATUS_MISSED
SKIPPED = const.LOG_STATUS_SKIPPED
SCHEDULED = const.LOG_STATUS_SCHEDULED


def logs_with(*statuses: str, day: str = "2025-01-15") -> list[dict]:
    """Build one log per status on a single day."""
    return [
        make_log(f"log-{index}", f"{day}T{8 + index:02d}:00:00+00:00", status=status)
        for index, status in enumerate(statuses)
    ]


class TestClassifyDay:
    """classify_day."""

    @pytest.mark.parametrize(
        ("statuses", "expected"),
        [
            ((), const.ADHERENCE_NO_MEDICATIONS),
            ((TAKEN, TAKEN), const.ADHERENCE_ALL_TAKEN),
            ((TAKEN, MISSED), const.ADHERENCE_PARTIAL_TAKEN),
            ((MISSED, SKIPPED), const.ADHERENCE_NONE_TAKEN),
            ((SCHEDULED,), const.ADHERENCE_NONE_TAKEN),
        ],
    )
    def test_classify(self, statuses: tuple[str, ...], expected: str) -> None:
        """Each mix of statuses maps to one day status."""
        assert AdherenceEngine.classify_day(logs_with(*statuses)) == expected


class TestMonthlySummary:
    """monthly_summary."""

    def test_three_taken_one_missed(self) -> None:
        """3 of 4 acted-on doses is 75%."""
        summary = AdherenceEngine.monthly_summary(logs_with(TAKEN, TAKEN, TAKEN, MISSED))
        assert summary["taken_count"] == 3
        assert summary["missed_count"] == 1
        assert summary["adherence_percentage"] == 75

    def test_percentage_is_rounded(self) -> None:
        """2 of 3 rounds to 67%."""
        summary = AdherenceEngine.monthly_summary(logs_with(TAKEN, TAKEN, SKIPPED))
        assert summary["adherence_percentage"] == 67

    @pytest.mark.parametrize(
        "statuses",
        [
            (MISSED, MISSED, SCHEDULED, SKIPPED, TAKEN),
            (SCHEDULED, SCHEDULED, SCHEDULED),
            (SKIPPED, MISSED, SCHEDULED, MISSED, SKIPPED, SCHEDULED, TAKEN),
        ],
    )
    def test_marking_doses_taken_never_lowers_percentage(
        self, statuses: tuple[str, ...]
    ) -> None:
        """Turning missed or scheduled doses into taken ones only raises adherence."""
        current = list(statuses)
        previous = AdherenceEngine.monthly_summary(logs_with(*current))[
            "adherence_percentage"
        ]
        for index, status in enumerate(statuses):
            if status not in (MISSED, SCHEDULED):
                continue
            current[index] = TAKEN
            percentage = AdherenceEngine.monthly_summary(logs_with(*current))[
                "adherence_percentage"
            ]
            assert percentage >= previous
            previous = percentage
        assert previous > 0

    def test_scheduled_logs_are_not_in_denominator(self) -> None:
        """Doses still pending never lower the percentage."""
        summary = AdherenceEngine.monthly_summary(
            logs_with(TAKEN, SCHEDULED, SCHEDULED)
        )
        assert summary["scheduled_count"] == 2
        assert summary["adherence_percentage"] == 100

    def test_no_acted_on_logs(self) -> None:
        """A zero denominator yields 0%."""
        summary = AdherenceEngine.monthly_summary(logs_with(SCHEDULED))
        assert summary["adherence_percentage"] == 0


class TestClassifyMonth:
    """classify_month."""

    def test_past_days_from_logs_future_days_from_schedule(self) -> None:
        """Logged days are classified; future scheduled days are marked."""
        medication = make_medication()
        schedule = resolve_schedule(
            make_schedule(
                start_date="2025-01-01",
                entries=[make_entry("e1", "08:00", days_of_week=[1])],  # Mondays
            )
        )
        assert schedule is not None
        logs = logs_with(TAKEN, day="2025-01-06") + [
            make_log("late", "2025-01-13T08:00:00+00:00", status=MISSED)
        ]

        statuses = AdherenceEngine.classify_month(
            2025,
            1,
            logs,
            today=date(2025, 1, 15),
            medications=[medication],
            schedules=[schedule],
            tz=UTC_TZ,
        )

        assert statuses == {
            date(2025, 1, 6): const.ADHERENCE_ALL_TAKEN,
            date(2025, 1, 13): const.ADHERENCE_NONE_TAKEN,
            date(2025, 1, 20): const.ADHERENCE_SCHEDULED,
            date(2025, 1, 27): const.ADHERENCE_SCHEDULED,
        }

    def test_paused_medication_has_no_future_days(self) -> None:
        """Paused medications do not mark future days."""
        schedule = resolve_schedule(
            make_schedule(entries=[make_entry("e1", "08:00")])
        )
        assert schedule is not None
        statuses = AdherenceEngine.classify_month(
            2025,
            1,
            [],
            today=date(2025, 1, 15),
            medications=[make_medication(is_paused=True)],
            schedules=[schedule],
            tz=UTC_TZ,
        )
        assert statuses == {}

    def test_medication_filter(self) -> None:
        """Only the selected medication's logs are classified."""
        logs = [
            make_log("a", "2025-01-02T08:00:00+00:00", status=TAKEN),
            make_log(
                "b", "2025-01-03T08:00:00+00:00", status=MISSED, medication_id="med-2"
            ),
        ]
        statuses = AdherenceEngine.classify_month(
            2025, 1, logs, today=date(2025, 1, 31), medication_id="med-1", tz=UTC_TZ
        )
        assert statuses == {date(2025, 1, 2): const.ADHERENCE_ALL_TAKEN}

    def test_logs_outside_month_ignored(self) -> None:
        """Logs from neighboring months are excluded."""
        logs = [make_log("dec", "2024-12-31T08:00:00+00:00", status=TAKEN)]
        assert (
            AdherenceEngine.classify_month(2025, 1, logs, today=date(2025, 1, 31))
            == {}
        )


class TestCurrentStreak:
    """current_streak."""

    def _by_day(self, days: dict[date, tuple[str, ...]]) -> dict:
        return {
            day: logs_with(*statuses, day=day.isoformat())
            for day, statuses in days.items()
        }

    def test_consecutive_taken_days(self) -> None:
        """Three fully taken days ending today."""
        today = date(2025, 1, 15)
        by_day = self._by_day(
            {
                today: (TAKEN,),
                today - timedelta(days=1): (TAKEN, TAKEN),
                today - timedelta(days=2): (TAKEN,),
                today - timedelta(days=3): (TAKEN, MISSED),
            }
        )
        assert AdherenceEngine.current_streak(by_day, today) == 3

    def test_empty_days_neither_extend_nor_break(self) -> None:
        """A day without logs is skipped."""
        today = date(2025, 1, 15)
        by_day = self._by_day(
            {
                today: (TAKEN,),
                today - timedelta(days=2): (TAKEN,),
                today - timedelta(days=3): (SKIPPED,),
            }
        )
        assert AdherenceEngine.current_streak(by_day, today) == 2

    def test_streak_can_start_before_today(self) -> None:
        """Leading empty days are tolerated up to the lookback limit."""
        today = date(2025, 1, 15)
        by_day = self._by_day({today - timedelta(days=5): (TAKEN,)})
        assert AdherenceEngine.current_streak(by_day, today) == 1

    def test_lookback_limit_without_logs(self) -> None:
        """Logs older than the empty-lead limit are not reached."""
        today = date(2025, 3, 1)
        by_day = self._by_day({today - timedelta(days=40): (TAKEN,)})
        assert AdherenceEngine.current_streak(by_day, today) == 0

    def test_no_logs(self) -> None:
        """No history means no streak."""
        assert AdherenceEngine.current_streak({}, date(2025, 1, 15)) == 0
