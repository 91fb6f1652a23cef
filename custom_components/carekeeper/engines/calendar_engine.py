"""Calendar Engine - Unified, filterable household event stream.

Merges every calendar source into one time-ordered list of tagged items:
- Appointments: stored verbatim, kept when their date is in range
- Countdowns: projected by OccurrenceEngine (recurring, grouped, legacy spans)
- Birthdays: projected yearly from profile birthdays
- Medications: one item per (day, active schedule entry) from ScheduleEngine
- To-do lists: lists with a due date

Each item kind is its own frozen dataclass carrying only the fields that kind
needs. Sorting is deterministic: (day, time or 00:00, kind, uid).

Filtering is a pure predicate: AND across categories, OR within a category,
and an empty selection in a category means "show all".

ARCHITECTURE: This is a pure logic engine with NO Home Assistant dependencies.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import TYPE_CHECKING, Any, ClassVar

from .. import const
from ..utils.dt_utils import dt_parse_date
from .occurrence_engine import OccurrenceEngine
from .schedule_engine import ResolvedSchedule, ScheduleEngine

if TYPE_CHECKING:
    from zoneinfo import ZoneInfo


# ==============================================================================
# Calendar Items
# ==============================================================================


@dataclass(frozen=True, slots=True)
class CalendarItem:
    """Fields every calendar item carries."""

    kind: ClassVar[str] = ""

    uid: str
    day: date
    time: str | None
    title: str

    @property
    def sort_key(self) -> tuple[date, str, str, str]:
        """Return the deterministic ordering key."""
        return (self.day, self.time or "00:00", self.kind, self.uid)


@dataclass(frozen=True, slots=True)
class AppointmentItem(CalendarItem):
    """A stored appointment."""

    kind: ClassVar[str] = const.EVENT_KIND_APPOINTMENT

    appointment_id: str
    profile_id: str | None
    appointment_type: str
    location: str | None
    notes: str | None
    is_completed: bool
    is_shared: bool
    shared_by_member_id: str | None


@dataclass(frozen=True, slots=True)
class CountdownItem(CalendarItem):
    """One day of a countdown, anniversary or multi-day event."""

    kind: ClassVar[str] = const.EVENT_KIND_COUNTDOWN

    countdown_id: str
    countdown_type: str
    custom_type: str | None
    subtitle: str | None
    notes: str | None
    image_url: str | None
    group_id: str | None
    is_recurring: bool
    is_shared: bool
    shared_by_member_id: str | None


@dataclass(frozen=True, slots=True)
class BirthdayItem(CalendarItem):
    """A profile's birthday in a given year."""

    kind: ClassVar[str] = const.EVENT_KIND_BIRTHDAY

    profile_id: str
    age: int | None


@dataclass(frozen=True, slots=True)
class MedicationItem(CalendarItem):
    """One scheduled dose."""

    kind: ClassVar[str] = const.EVENT_KIND_MEDICATION

    medication_id: str
    schedule_id: str
    entry_id: str
    profile_id: str | None
    dosage: str | None


@dataclass(frozen=True, slots=True)
class TodoListItem(CalendarItem):
    """A to-do list on its due date."""

    kind: ClassVar[str] = const.EVENT_KIND_TODO_LIST

    todo_list_id: str
    list_type: str | None
    is_shared: bool
    shared_by_member_id: str | None


@dataclass(frozen=True, slots=True)
class CalendarFilters:
    """User-selected calendar filters.

    Each set is one filter category; an empty set means "show all".

    Attributes:
        kinds: Event kinds to show (EVENT_KIND_*)
        countdown_types: Standard countdown types to show
        custom_type_names: Custom countdown type names to show
        member_ids: User ids; profile-linked items must belong to one of them
        shared_only: Family view (only shared appointments and countdowns)
    """

    kinds: frozenset[str] = field(default_factory=frozenset)
    countdown_types: frozenset[str] = field(default_factory=frozenset)
    custom_type_names: frozenset[str] = field(default_factory=frozenset)
    member_ids: frozenset[str] = field(default_factory=frozenset)
    shared_only: bool = False


# ==============================================================================
# Engine
# ==============================================================================


class CalendarEngine:
    """Stateless compositor for the household calendar."""

    # ────────────────────────────────────────────────────────────────
    # Item Builders
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def appointment_items(
        appointments: Iterable[Mapping[str, Any]], start: date, end: date
    ) -> list[AppointmentItem]:
        """Return appointments whose date falls in [start, end]."""
        items: list[AppointmentItem] = []
        for appointment in appointments:
            day = dt_parse_date(appointment.get(const.FIELD_DATE))
            if day is None or not start <= day <= end:
                continue
            items.append(
                AppointmentItem(
                    uid=f"{const.UID_PREFIX_APPOINTMENT}{appointment[const.FIELD_ID]}",
                    day=day,
                    time=appointment.get(const.FIELD_TIME) or None,
                    title=appointment.get(const.FIELD_TITLE, ""),
                    appointment_id=appointment[const.FIELD_ID],
                    profile_id=appointment.get(const.FIELD_PROFILE_ID),
                    appointment_type=appointment.get(
                        const.FIELD_APPOINTMENT_TYPE, const.APPOINTMENT_TYPE_GENERAL
                    ),
                    location=appointment.get(const.FIELD_APPOINTMENT_LOCATION),
                    notes=appointment.get(const.FIELD_NOTES),
                    is_completed=bool(
                        appointment.get(const.FIELD_APPOINTMENT_IS_COMPLETED)
                    ),
                    is_shared=bool(appointment.get(const.FIELD_IS_SHARED)),
                    shared_by_member_id=appointment.get(const.FIELD_SHARED_BY_MEMBER_ID),
                )
            )
        return items

    @staticmethod
    def countdown_items(
        countdowns: Iterable[Mapping[str, Any]], start: date, end: date
    ) -> list[CountdownItem]:
        """Return countdown occurrences in [start, end].

        Grouped days take title/type from the group's first day and keep
        their own notes and image when set.
        """
        items: list[CountdownItem] = []
        for occurrence in OccurrenceEngine.countdown_occurrences_in_range(
            countdowns, start, end
        ):
            record = occurrence.countdown
            baseline = occurrence.baseline
            countdown_id = record[const.FIELD_ID]
            if occurrence.is_expanded_day or record.get(
                const.FIELD_COUNTDOWN_IS_RECURRING
            ):
                uid = (
                    f"{const.UID_PREFIX_COUNTDOWN}{countdown_id}-"
                    f"{occurrence.day.strftime('%Y%m%d')}"
                )
            else:
                uid = f"{const.UID_PREFIX_COUNTDOWN}{countdown_id}"
            items.append(
                CountdownItem(
                    uid=uid,
                    day=occurrence.day,
                    time=OccurrenceEngine.countdown_time(record),
                    title=baseline.get(const.FIELD_TITLE, ""),
                    countdown_id=countdown_id,
                    countdown_type=baseline.get(
                        const.FIELD_COUNTDOWN_TYPE, const.COUNTDOWN_TYPE_COUNTDOWN
                    ),
                    custom_type=baseline.get(const.FIELD_COUNTDOWN_CUSTOM_TYPE),
                    subtitle=baseline.get(const.FIELD_COUNTDOWN_SUBTITLE),
                    notes=record.get(const.FIELD_NOTES)
                    or baseline.get(const.FIELD_NOTES),
                    image_url=record.get(const.FIELD_COUNTDOWN_IMAGE_URL)
                    or baseline.get(const.FIELD_COUNTDOWN_IMAGE_URL),
                    group_id=record.get(const.FIELD_COUNTDOWN_GROUP_ID),
                    is_recurring=bool(record.get(const.FIELD_COUNTDOWN_IS_RECURRING)),
                    is_shared=bool(record.get(const.FIELD_IS_SHARED)),
                    shared_by_member_id=record.get(const.FIELD_SHARED_BY_MEMBER_ID),
                )
            )
        return items

    @staticmethod
    def birthday_items(
        profiles: Iterable[Mapping[str, Any]], start: date, end: date
    ) -> list[BirthdayItem]:
        """Return profile birthdays in [start, end]."""
        items: list[BirthdayItem] = []
        for profile in profiles:
            birth_day = dt_parse_date(profile.get(const.FIELD_PROFILE_BIRTHDAY))
            if birth_day is None:
                continue
            profile_id = profile[const.FIELD_ID]
            for day in OccurrenceEngine.birthday_occurrences(birth_day, start, end):
                items.append(
                    BirthdayItem(
                        uid=f"{const.UID_PREFIX_BIRTHDAY}{profile_id}-{day.year}",
                        day=day,
                        time=None,
                        title=profile.get(const.FIELD_PROFILE_FULL_NAME, ""),
                        profile_id=profile_id,
                        age=day.year - birth_day.year,
                    )
                )
        return items

    @staticmethod
    def medication_items(
        medications: Iterable[Mapping[str, Any]],
        schedules: Iterable[ResolvedSchedule],
        start: date,
        end: date,
        tz: ZoneInfo | None = None,
    ) -> list[MedicationItem]:
        """Return one item per (day, active entry) for non-paused medications."""
        schedule_list = list(schedules)
        items: list[MedicationItem] = []
        for medication in medications:
            if medication.get(const.FIELD_MEDICATION_IS_PAUSED, False):
                continue
            medication_id = medication[const.FIELD_ID]
            engines = [
                ScheduleEngine(schedule)
                for schedule in schedule_list
                if schedule.medication_id == medication_id
            ]
            if not engines:
                continue
            day = start
            while day <= end:
                for engine in engines:
                    for occurrence in engine.occurrences_for_date(day, tz):
                        entry = occurrence.entry
                        items.append(
                            MedicationItem(
                                uid=(
                                    f"{const.UID_PREFIX_MEDICATION}{medication_id}-"
                                    f"{entry.entry_id}-{day.strftime('%Y%m%d')}"
                                ),
                                day=day,
                                time=entry.time or None,
                                title=medication.get(const.FIELD_MEDICATION_NAME, ""),
                                medication_id=medication_id,
                                schedule_id=occurrence.schedule_id,
                                entry_id=entry.entry_id,
                                profile_id=medication.get(const.FIELD_PROFILE_ID),
                                dosage=entry.dosage,
                            )
                        )
                day += timedelta(days=1)
        return items

    @staticmethod
    def todo_list_items(
        todo_lists: Iterable[Mapping[str, Any]], start: date, end: date
    ) -> list[TodoListItem]:
        """Return to-do lists whose due date falls in [start, end]."""
        items: list[TodoListItem] = []
        for todo_list in todo_lists:
            day = dt_parse_date(todo_list.get(const.FIELD_TODO_DUE_DATE))
            if day is None or not start <= day <= end:
                continue
            items.append(
                TodoListItem(
                    uid=f"{const.UID_PREFIX_TODO_LIST}{todo_list[const.FIELD_ID]}",
                    day=day,
                    time=None,
                    title=todo_list.get(const.FIELD_TITLE, ""),
                    todo_list_id=todo_list[const.FIELD_ID],
                    list_type=todo_list.get(const.FIELD_TODO_LIST_TYPE),
                    is_shared=bool(todo_list.get(const.FIELD_IS_SHARED)),
                    shared_by_member_id=todo_list.get(const.FIELD_SHARED_BY_MEMBER_ID),
                )
            )
        return items

    # ────────────────────────────────────────────────────────────────
    # Composition
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def events(
        start: date,
        end: date,
        *,
        appointments: Iterable[Mapping[str, Any]] = (),
        countdowns: Iterable[Mapping[str, Any]] = (),
        profiles: Iterable[Mapping[str, Any]] = (),
        medications: Iterable[Mapping[str, Any]] = (),
        schedules: Iterable[ResolvedSchedule] = (),
        todo_lists: Iterable[Mapping[str, Any]] = (),
        filters: CalendarFilters | None = None,
        tz: ZoneInfo | None = None,
    ) -> list[CalendarItem]:
        """Return every calendar item in [start, end], filtered and sorted.

        Sources of kinds excluded by the filter are never projected.
        """
        if end < start:
            return []

        filters = filters or CalendarFilters()
        profile_list = list(profiles)

        def wanted(kind: str) -> bool:
            return not filters.kinds or kind in filters.kinds

        items: list[CalendarItem] = []
        if wanted(const.EVENT_KIND_APPOINTMENT):
            items.extend(CalendarEngine.appointment_items(appointments, start, end))
        if wanted(const.EVENT_KIND_COUNTDOWN):
            items.extend(CalendarEngine.countdown_items(countdowns, start, end))
        if wanted(const.EVENT_KIND_BIRTHDAY):
            items.extend(CalendarEngine.birthday_items(profile_list, start, end))
        if wanted(const.EVENT_KIND_MEDICATION):
            items.extend(
                CalendarEngine.medication_items(medications, schedules, start, end, tz)
            )
        if wanted(const.EVENT_KIND_TODO_LIST):
            items.extend(CalendarEngine.todo_list_items(todo_lists, start, end))

        items = CalendarEngine.apply_filters(items, filters, profile_list)
        items.sort(key=lambda item: item.sort_key)
        return items

    # ────────────────────────────────────────────────────────────────
    # Filtering
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def apply_filters(
        items: Iterable[CalendarItem],
        filters: CalendarFilters,
        profiles: Iterable[Mapping[str, Any]] = (),
    ) -> list[CalendarItem]:
        """Return the items that pass every filter category."""
        members_by_profile: dict[str, set[str]] = {}
        for profile in profiles:
            linked = {
                user_id
                for user_id in (
                    profile.get(const.FIELD_PROFILE_LINKED_USER_ID),
                    profile.get(const.FIELD_PROFILE_SOURCE_USER_ID),
                )
                if user_id
            }
            members_by_profile[profile[const.FIELD_ID]] = linked

        return [
            item
            for item in items
            if CalendarEngine._matches_kind(item, filters)
            and CalendarEngine._matches_countdown_type(item, filters)
            and (
                CalendarEngine._matches_shared(item, filters)
                if filters.shared_only
                else CalendarEngine._matches_member(item, filters, members_by_profile)
            )
        ]

    @staticmethod
    def _matches_kind(item: CalendarItem, filters: CalendarFilters) -> bool:
        return not filters.kinds or item.kind in filters.kinds

    @staticmethod
    def _matches_countdown_type(item: CalendarItem, filters: CalendarFilters) -> bool:
        """Countdown sub-type category; non-countdown items always pass."""
        if not isinstance(item, CountdownItem):
            return True
        if not filters.countdown_types and not filters.custom_type_names:
            return True
        if item.countdown_type == const.COUNTDOWN_TYPE_CUSTOM:
            if not item.custom_type:
                # Unnamed custom countdowns cannot be deselected
                return True
            return item.custom_type in filters.custom_type_names
        return item.countdown_type in filters.countdown_types

    @staticmethod
    def _matches_member(
        item: CalendarItem,
        filters: CalendarFilters,
        members_by_profile: Mapping[str, set[str]],
    ) -> bool:
        """Profile-linked items must belong to a selected member."""
        if not filters.member_ids:
            return True
        profile_id = getattr(item, "profile_id", None)
        if not profile_id:
            return True
        linked = members_by_profile.get(profile_id, set())
        return bool(linked & filters.member_ids)

    @staticmethod
    def _matches_shared(item: CalendarItem, filters: CalendarFilters) -> bool:
        """Family view: shared appointments and countdowns only."""
        if not isinstance(item, AppointmentItem | CountdownItem):
            return False
        if not item.is_shared:
            return False
        if not filters.member_ids:
            return True
        return item.shared_by_member_id in filters.member_ids
