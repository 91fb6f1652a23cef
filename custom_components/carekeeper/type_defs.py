"""Type definitions for CareKeeper data structures.

ARCHITECTURE DECISION: HYBRID APPROACH (TypedDict + dict[str, Any])
===================================================================

1. **TypedDict for STATIC structures** (fixed keys known at design time):
   - Wire entities: MedicationData, MedicationScheduleData, CountdownData, ...
   - Mirror bookkeeping: SyncedRecordData, PendingChangeData
   - Keys equal the snake_case remote field names, so a decoded entity is
     also its own push payload.

2. **dict[str, Any] for DYNAMIC structures** (keys determined at runtime):
   - Storage buckets keyed by entity id
   - Sync metadata keyed by entity type

3. **Protocols for external capabilities**:
   - RemoteRepository: CRUD + fetch against the shared server store
   - ReminderScheduler: reminder delivery (arm / cancel)

IMPORTANT: This file must NOT import from coordinator.py, *helpers.py, or
any file that imports coordinator to avoid circular dependencies.

NOTE: TypedDict is STATIC ANALYSIS ONLY. All runtime defaulting happens in
data_builders.decode_*().
"""

from datetime import datetime
from typing import Any, NotRequired, Protocol, TypedDict

# =============================================================================
# Type Aliases (for readability)
# =============================================================================

EntityId = str  # UUID string
AccountId = str  # UUID string
EntityType = str  # One of const.SYNC_ENTITY_ORDER
ISODatetime = str  # ISO 8601 datetime string "2026-01-18T12:30:00+00:00"
ISODate = str  # ISO 8601 date string (no time) "2026-01-18"


# =============================================================================
# Medication Entities
# =============================================================================


class ScheduleEntryData(TypedDict):
    """Wire shape of one schedule entry (nested inside a schedule)."""

    id: str
    time: str  # "HH:MM"
    dosage: str | None
    days_of_week: list[int]  # Sunday = 0
    duration_value: int | None
    duration_unit: str  # days | weeks | months
    sort_order: int


class MedicationScheduleData(TypedDict):
    """Wire shape of a medication schedule.

    Either `schedule_entries` (structured) or `times` + `days_of_week`
    (legacy) carries the dosing rules.
    """

    id: str
    account_id: str
    medication_id: str
    schedule_type: str  # scheduled | as_needed
    start_date: ISODate
    end_date: ISODate | None
    days_of_week: list[int] | None
    times: list[str] | None
    schedule_entries: list[ScheduleEntryData] | None
    dose_description: str | None
    created_at: NotRequired[ISODatetime | None]
    updated_at: NotRequired[ISODatetime | None]


class MedicationData(TypedDict):
    """Wire shape of a medication."""

    id: str
    account_id: str
    profile_id: str | None
    name: str
    strength: str | None
    form: str | None
    notes: str | None
    is_paused: bool
    sort_order: int
    created_at: NotRequired[ISODatetime | None]
    updated_at: NotRequired[ISODatetime | None]


class MedicationLogData(TypedDict):
    """Wire shape of one realized dose occurrence."""

    id: str
    account_id: str
    medication_id: str
    scheduled_at: ISODatetime
    status: str  # scheduled | taken | missed | skipped
    taken_at: ISODatetime | None
    note: str | None


# =============================================================================
# Calendar Entities
# =============================================================================


class CountdownData(TypedDict):
    """Wire shape of a countdown / anniversary / grouped multi-day event."""

    id: str
    account_id: str
    title: str
    subtitle: str | None
    date: ISODate
    end_date: ISODate | None
    has_time: bool
    type: str
    custom_type: str | None
    notes: str | None
    image_url: str | None
    group_id: str | None
    reminder_offset_minutes: int | None
    is_recurring: bool
    is_shared: bool
    shared_by_member_id: str | None
    created_at: NotRequired[ISODatetime | None]
    updated_at: NotRequired[ISODatetime | None]


class ProfileData(TypedDict):
    """Wire shape of a household profile (birthday source)."""

    id: str
    account_id: str
    type: str
    full_name: str
    birthday: ISODate | None
    linked_user_id: str | None
    source_user_id: str | None
    created_at: NotRequired[ISODatetime | None]
    updated_at: NotRequired[ISODatetime | None]


class AppointmentData(TypedDict):
    """Wire shape of an appointment."""

    id: str
    account_id: str
    profile_id: str | None
    type: str
    title: str
    date: ISODate
    time: str | None  # "HH:MM"
    location: str | None
    notes: str | None
    is_completed: bool
    is_shared: bool
    shared_by_member_id: str | None
    created_at: NotRequired[ISODatetime | None]
    updated_at: NotRequired[ISODatetime | None]


class TodoListData(TypedDict):
    """Wire shape of a to-do list (only lists with a due date reach the calendar)."""

    id: str
    account_id: str
    title: str
    list_type: str | None
    due_date: ISODate | None
    is_shared: bool
    shared_by_member_id: str | None
    created_at: NotRequired[ISODatetime | None]
    updated_at: NotRequired[ISODatetime | None]


class StickyReminderData(TypedDict):
    """Wire shape of a repeating reminder."""

    id: str
    account_id: str
    title: str
    message: str | None
    trigger_time: ISODatetime
    repeat_interval: str  # "{value}_{unit}"
    is_active: bool
    is_dismissed: bool
    created_at: NotRequired[ISODatetime | None]
    updated_at: NotRequired[ISODatetime | None]


# =============================================================================
# Mirror Bookkeeping
# =============================================================================


class SyncedRecordData(TypedDict):
    """Local mirror wrapper around one shareable entity.

    is_synced=False means the record carries unpushed local edits.
    locally_deleted=True marks a tombstone awaiting remote delete confirmation.
    created_remotely=False means the remote has never confirmed a create, so
    the next push must be a create. Records stored before the flag existed
    count as created.
    """

    data: dict[str, Any]
    is_synced: bool
    locally_deleted: bool
    updated_at: ISODatetime
    created_remotely: NotRequired[bool]


class PendingChangeData(TypedDict):
    """Queued offline mutation awaiting push."""

    id: str
    entity_type: EntityType
    entity_id: EntityId
    change_type: str  # create | update | delete
    created_at: ISODatetime
    retry_count: int
    last_error: str | None
    last_attempt_at: ISODatetime | None


class MonthlySummary(TypedDict):
    """Adherence counts for a month."""

    taken_count: int
    missed_count: int
    skipped_count: int
    scheduled_count: int
    adherence_percentage: int


# =============================================================================
# External Capabilities
# =============================================================================


class RemoteRepository(Protocol):
    """Shared server store capability.

    Implementations raise TransportFailure (or TimeoutError) on any network
    problem and must let asyncio.CancelledError propagate.
    """

    async def async_fetch(
        self, entity_type: EntityType, account_id: AccountId
    ) -> list[dict[str, Any]]:
        """Return every remote entity of a type for an account."""

    async def async_create(
        self, entity_type: EntityType, payload: dict[str, Any]
    ) -> None:
        """Create an entity remotely."""

    async def async_update(
        self, entity_type: EntityType, payload: dict[str, Any]
    ) -> None:
        """Update an entity remotely."""

    async def async_delete(self, entity_type: EntityType, entity_id: EntityId) -> None:
        """Delete an entity remotely."""


class ReminderScheduler(Protocol):
    """Reminder delivery capability."""

    def schedule_reminder(
        self, reminder_id: str, fire_at: datetime, recurring: bool
    ) -> None:
        """Arm (or re-arm) a reminder."""

    def cancel_reminder(self, reminder_id: str) -> None:
        """Disarm a reminder if armed."""
