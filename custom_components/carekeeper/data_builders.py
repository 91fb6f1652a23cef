"""Entity wire mapping, validation and canonical resolution.

This module is the SINGLE SOURCE OF TRUTH for:
- The wire-format contract (field names, field order, documented defaults)
- Construction-time validation of user-built entities
- Resolving a stored schedule into its one canonical shape

## Wire Format (version 1)

Every entity is stored and pushed as a flat dict whose keys are the remote
snake_case field names. `decode_entity()` is the only place that fills in
fields absent from older payloads. Each default below is part of the
contract, not an implementation detail:

| Entity             | Field                    | Default                 |
|--------------------|--------------------------|-------------------------|
| schedule entry     | days_of_week             | [0, 1, 2, 3, 4, 5, 6]   |
| schedule entry     | duration_unit            | "days"                  |
| schedule entry     | sort_order               | 0                       |
| medication         | is_paused                | False                   |
| medication         | sort_order               | 0                       |
| medication_log     | status                   | "scheduled"             |
| countdown          | type                     | "countdown"             |
| countdown          | has_time / is_recurring  | False                   |
| appointment        | type                     | "general"               |
| appointment        | is_completed             | False                   |
| shared entities    | is_shared                | False                   |
| sticky_reminder    | repeat_interval          | "1_hours"               |
| sticky_reminder    | is_active                | True                    |
| sticky_reminder    | is_dismissed             | False                   |

Every other optional field defaults to None. `created_at`/`updated_at` are
carried through when present and never invented.

`encode_entity()` emits exactly the wire keys, in the declared order, so a
decoded-then-encoded payload is stable byte-for-byte once serialized.

## Validation

`build_schedule_entry()` / `validate_schedule_data()` raise
EntityValidationError for rules that must block a save: empty weekday set,
non-positive duration, unknown duration unit, malformed time.
Decoding never raises for optional fields; only a missing `id` is fatal.
"""

from __future__ import annotations

from collections.abc import Callable
import copy
from typing import Any, Final
import uuid

from . import const
from .engines.schedule_engine import ResolvedSchedule, ScheduleEntry
from .utils.dt_utils import dt_parse_date, parse_time_of_day

# ==============================================================================
# EXCEPTIONS
# ==============================================================================


class EntityValidationError(Exception):
    """Validation error with field-specific information.

    Raised when business rule validation fails while building an entity.
    The field attribute identifies the wire field that caused the failure.

    Attributes:
        field: Wire field name that failed validation
        translation_key: The TRANS_KEY_* constant for the error message
        placeholders: Optional dict for translation string placeholders

    Example:
        raise EntityValidationError(
            field=const.FIELD_ENTRY_DURATION_VALUE,
            translation_key=const.TRANS_KEY_INVALID_ENTRY_DURATION,
            placeholders={"value": "0"},
        )
    """

    def __init__(
        self,
        field: str,
        translation_key: str,
        placeholders: dict[str, str] | None = None,
    ) -> None:
        """Initialize EntityValidationError."""
        self.field = field
        self.translation_key = translation_key
        self.placeholders = placeholders or {}
        super().__init__(translation_key)


# ==============================================================================
# WIRE FIELD TABLES
# ==============================================================================

# Sentinel for fields that must be present on every payload
_REQUIRED: Final = object()

# Fields carried through only when present
_TIMESTAMP_FIELDS: Final = (const.FIELD_CREATED_AT, const.FIELD_UPDATED_AT)


def _all_weekdays() -> list[int]:
    return list(range(7))


SCHEDULE_ENTRY_WIRE_FIELDS: Final[dict[str, Any]] = {
    const.FIELD_ID: _REQUIRED,
    const.FIELD_ENTRY_TIME: "",
    const.FIELD_ENTRY_DOSAGE: None,
    const.FIELD_ENTRY_DAYS_OF_WEEK: _all_weekdays,
    const.FIELD_ENTRY_DURATION_VALUE: None,
    const.FIELD_ENTRY_DURATION_UNIT: const.DURATION_UNIT_DAYS,
    const.FIELD_SORT_ORDER: 0,
}

WIRE_FIELDS: Final[dict[str, dict[str, Any]]] = {
    const.ENTITY_PROFILES: {
        const.FIELD_ID: _REQUIRED,
        const.FIELD_ACCOUNT_ID: "",
        const.FIELD_PROFILE_TYPE: "",
        const.FIELD_PROFILE_FULL_NAME: "",
        const.FIELD_PROFILE_BIRTHDAY: None,
        const.FIELD_PROFILE_LINKED_USER_ID: None,
        const.FIELD_PROFILE_SOURCE_USER_ID: None,
    },
    const.ENTITY_MEDICATIONS: {
        const.FIELD_ID: _REQUIRED,
        const.FIELD_ACCOUNT_ID: "",
        const.FIELD_PROFILE_ID: None,
        const.FIELD_MEDICATION_NAME: "",
        const.FIELD_MEDICATION_STRENGTH: None,
        const.FIELD_MEDICATION_FORM: None,
        const.FIELD_NOTES: None,
        const.FIELD_MEDICATION_IS_PAUSED: False,
        const.FIELD_SORT_ORDER: 0,
    },
    const.ENTITY_MEDICATION_SCHEDULES: {
        const.FIELD_ID: _REQUIRED,
        const.FIELD_ACCOUNT_ID: "",
        const.FIELD_SCHEDULE_MEDICATION_ID: "",
        const.FIELD_SCHEDULE_TYPE: const.SCHEDULE_TYPE_SCHEDULED,
        const.FIELD_SCHEDULE_START_DATE: "",
        const.FIELD_SCHEDULE_END_DATE: None,
        const.FIELD_SCHEDULE_DAYS_OF_WEEK: None,
        const.FIELD_SCHEDULE_TIMES: None,
        const.FIELD_SCHEDULE_ENTRIES: None,
        const.FIELD_SCHEDULE_DOSE_DESCRIPTION: None,
    },
    const.ENTITY_MEDICATION_LOGS: {
        const.FIELD_ID: _REQUIRED,
        const.FIELD_ACCOUNT_ID: "",
        const.FIELD_LOG_MEDICATION_ID: "",
        const.FIELD_LOG_SCHEDULED_AT: "",
        const.FIELD_LOG_STATUS: const.LOG_STATUS_SCHEDULED,
        const.FIELD_LOG_TAKEN_AT: None,
        const.FIELD_LOG_NOTE: None,
    },
    const.ENTITY_APPOINTMENTS: {
        const.FIELD_ID: _REQUIRED,
        const.FIELD_ACCOUNT_ID: "",
        const.FIELD_PROFILE_ID: None,
        const.FIELD_APPOINTMENT_TYPE: const.APPOINTMENT_TYPE_GENERAL,
        const.FIELD_TITLE: "",
        const.FIELD_DATE: "",
        const.FIELD_TIME: None,
        const.FIELD_APPOINTMENT_LOCATION: None,
        const.FIELD_NOTES: None,
        const.FIELD_APPOINTMENT_IS_COMPLETED: False,
        const.FIELD_IS_SHARED: False,
        const.FIELD_SHARED_BY_MEMBER_ID: None,
    },
    const.ENTITY_TODO_LISTS: {
        const.FIELD_ID: _REQUIRED,
        const.FIELD_ACCOUNT_ID: "",
        const.FIELD_TITLE: "",
        const.FIELD_TODO_LIST_TYPE: None,
        const.FIELD_TODO_DUE_DATE: None,
        const.FIELD_IS_SHARED: False,
        const.FIELD_SHARED_BY_MEMBER_ID: None,
    },
    const.ENTITY_COUNTDOWNS: {
        const.FIELD_ID: _REQUIRED,
        const.FIELD_ACCOUNT_ID: "",
        const.FIELD_TITLE: "",
        const.FIELD_COUNTDOWN_SUBTITLE: None,
        const.FIELD_DATE: "",
        const.FIELD_COUNTDOWN_END_DATE: None,
        const.FIELD_COUNTDOWN_HAS_TIME: False,
        const.FIELD_COUNTDOWN_TYPE: const.COUNTDOWN_TYPE_COUNTDOWN,
        const.FIELD_COUNTDOWN_CUSTOM_TYPE: None,
        const.FIELD_NOTES: None,
        const.FIELD_COUNTDOWN_IMAGE_URL: None,
        const.FIELD_COUNTDOWN_GROUP_ID: None,
        const.FIELD_COUNTDOWN_REMINDER_OFFSET: None,
        const.FIELD_COUNTDOWN_IS_RECURRING: False,
        const.FIELD_IS_SHARED: False,
        const.FIELD_SHARED_BY_MEMBER_ID: None,
    },
    const.ENTITY_STICKY_REMINDERS: {
        const.FIELD_ID: _REQUIRED,
        const.FIELD_ACCOUNT_ID: "",
        const.FIELD_TITLE: "",
        const.FIELD_STICKY_MESSAGE: None,
        const.FIELD_STICKY_TRIGGER_TIME: "",
        const.FIELD_STICKY_REPEAT_INTERVAL: const.DEFAULT_STICKY_REPEAT_INTERVAL,
        const.FIELD_STICKY_IS_ACTIVE: True,
        const.FIELD_STICKY_IS_DISMISSED: False,
    },
}


# ==============================================================================
# DECODE / ENCODE
# ==============================================================================


def _default_value(default: Any) -> Any:
    """Materialize a table default (callables build fresh mutable values)."""
    if callable(default):
        return default()
    return copy.deepcopy(default)


def _apply_fields(
    fields: dict[str, Any], payload: dict[str, Any], entity_label: str
) -> dict[str, Any]:
    """Copy declared fields from payload, filling documented defaults."""
    result: dict[str, Any] = {}
    for field, default in fields.items():
        value = payload.get(field)
        if value is None:
            if default is _REQUIRED:
                raise EntityValidationError(
                    field=field,
                    translation_key=const.TRANS_KEY_MISSING_REQUIRED_FIELD,
                    placeholders={"entity": entity_label},
                )
            value = _default_value(default)
        result[field] = copy.deepcopy(value)
    return result


def decode_schedule_entry(
    payload: dict[str, Any], fallback_id: str | None = None
) -> dict[str, Any]:
    """Decode one nested schedule entry, filling documented defaults.

    Entries from older payloads that predate entry ids take `fallback_id`, so
    decoding the same payload twice yields the same entry and occurrence uids
    survive every pull. Without a fallback a fresh id is minted.
    """
    source = dict(payload)
    if not source.get(const.FIELD_ID):
        source[const.FIELD_ID] = fallback_id or str(uuid.uuid4())
    return _apply_fields(SCHEDULE_ENTRY_WIRE_FIELDS, source, "schedule_entry")


def decode_entity(
    entity_type: str,
    payload: dict[str, Any],
    version: int = const.WIRE_FORMAT_VERSION,
) -> dict[str, Any]:
    """Decode a stored or remote payload into a complete entity dict.

    Args:
        entity_type: One of const.SYNC_ENTITY_ORDER
        payload: Raw payload (may be missing optional fields)
        version: Wire format version the payload was written with

    Returns:
        Entity dict with every declared field present.

    Raises:
        EntityValidationError: The payload has no id.
        KeyError: Unknown entity type.
    """
    if version != const.WIRE_FORMAT_VERSION:
        const.LOGGER.debug(
            "DEBUG: Decoding %s payload written with wire format %s (current %s)",
            entity_type,
            version,
            const.WIRE_FORMAT_VERSION,
        )

    fields = WIRE_FIELDS[entity_type]
    result = _apply_fields(fields, payload, entity_type)

    if entity_type == const.ENTITY_MEDICATION_SCHEDULES:
        raw_entries = result.get(const.FIELD_SCHEDULE_ENTRIES)
        if raw_entries is not None:
            result[const.FIELD_SCHEDULE_ENTRIES] = [
                decode_schedule_entry(
                    entry, f"{result[const.FIELD_ID]}-entry-{index}"
                )
                for index, entry in enumerate(raw_entries)
            ]

    for field in _TIMESTAMP_FIELDS:
        if payload.get(field) is not None:
            result[field] = payload[field]

    return result


def encode_entity(entity_type: str, data: dict[str, Any]) -> dict[str, Any]:
    """Encode an entity dict into its wire payload.

    Emits exactly the declared wire keys, in declared order, followed by any
    timestamps that are present. Unknown keys are dropped.
    """
    fields = WIRE_FIELDS[entity_type]
    payload: dict[str, Any] = {}
    for field, default in fields.items():
        value = data.get(field)
        if value is None and default is not _REQUIRED:
            value = _default_value(default)
        payload[field] = copy.deepcopy(value)

    if entity_type == const.ENTITY_MEDICATION_SCHEDULES:
        entries = payload.get(const.FIELD_SCHEDULE_ENTRIES)
        if entries is not None:
            payload[const.FIELD_SCHEDULE_ENTRIES] = [
                {
                    field: copy.deepcopy(
                        entry.get(field)
                        if entry.get(field) is not None or default is _REQUIRED
                        else _default_value(default)
                    )
                    for field, default in SCHEDULE_ENTRY_WIRE_FIELDS.items()
                }
                for entry in entries
            ]

    for field in _TIMESTAMP_FIELDS:
        if data.get(field) is not None:
            payload[field] = data[field]

    return payload


# ==============================================================================
# SCHEDULE ENTRIES
# ==============================================================================


def duration_to_days(value: int | None, unit: str | None) -> int | None:
    """Convert an entry duration to calendar days (months are 30 days).

    Returns None for an open-ended entry.
    """
    if value is None:
        return None
    multiplier = const.DURATION_UNIT_DAYS_MULTIPLIER.get(
        unit or const.DURATION_UNIT_DAYS, 1
    )
    return int(value) * multiplier


def validate_schedule_entry_data(data: dict[str, Any]) -> dict[str, str]:
    """Validate schedule entry business rules.

    Returns:
        Dict of errors: {field: translation_key}. Empty dict means valid.

    Validation Rules:
        1. time parses as HH:MM
        2. days_of_week is non-empty
        3. duration_value, if present, is a positive integer
        4. duration_unit is days, weeks or months
    """
    errors: dict[str, str] = {}

    if parse_time_of_day(data.get(const.FIELD_ENTRY_TIME)) is None:
        errors[const.FIELD_ENTRY_TIME] = const.TRANS_KEY_INVALID_ENTRY_TIME

    days = data.get(const.FIELD_ENTRY_DAYS_OF_WEEK)
    if days is not None and len(days) == 0:
        errors[const.FIELD_ENTRY_DAYS_OF_WEEK] = const.TRANS_KEY_INVALID_ENTRY_DAYS

    duration = data.get(const.FIELD_ENTRY_DURATION_VALUE)
    if duration is not None:
        if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
            errors[const.FIELD_ENTRY_DURATION_VALUE] = (
                const.TRANS_KEY_INVALID_ENTRY_DURATION
            )

    unit = data.get(const.FIELD_ENTRY_DURATION_UNIT, const.DURATION_UNIT_DAYS)
    if unit not in const.DURATION_UNITS:
        errors[const.FIELD_ENTRY_DURATION_UNIT] = (
            const.TRANS_KEY_INVALID_ENTRY_DURATION_UNIT
        )

    return errors


def build_schedule_entry(
    user_input: dict[str, Any],
    existing: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build a validated schedule entry for create or update.

    Priority for each field: user_input > existing > documented default.

    Raises:
        EntityValidationError: First failing rule from
            validate_schedule_entry_data().
    """
    merged: dict[str, Any] = {}
    if existing is not None:
        merged.update(existing)
    merged.update(user_input)

    errors = validate_schedule_entry_data(merged)
    if errors:
        field, translation_key = next(iter(errors.items()))
        raise EntityValidationError(
            field=field,
            translation_key=translation_key,
            placeholders={"value": str(merged.get(field))},
        )

    return decode_schedule_entry(merged)


def validate_schedule_data(data: dict[str, Any]) -> None:
    """Validate a complete medication schedule before it is saved.

    Raises:
        EntityValidationError: On the first failing rule.
    """
    schedule_type = data.get(const.FIELD_SCHEDULE_TYPE, const.SCHEDULE_TYPE_SCHEDULED)
    if schedule_type not in (
        const.SCHEDULE_TYPE_SCHEDULED,
        const.SCHEDULE_TYPE_AS_NEEDED,
    ):
        raise EntityValidationError(
            field=const.FIELD_SCHEDULE_TYPE,
            translation_key=const.TRANS_KEY_INVALID_SCHEDULE_TYPE,
            placeholders={"value": str(schedule_type)},
        )

    start = dt_parse_date(data.get(const.FIELD_SCHEDULE_START_DATE))
    if start is None:
        raise EntityValidationError(
            field=const.FIELD_SCHEDULE_START_DATE,
            translation_key=const.TRANS_KEY_INVALID_SCHEDULE_START_DATE,
        )

    raw_end = data.get(const.FIELD_SCHEDULE_END_DATE)
    if raw_end:
        end = dt_parse_date(raw_end)
        if end is None or end < start:
            raise EntityValidationError(
                field=const.FIELD_SCHEDULE_END_DATE,
                translation_key=const.TRANS_KEY_INVALID_SCHEDULE_END_DATE,
            )

    for entry in data.get(const.FIELD_SCHEDULE_ENTRIES) or []:
        build_schedule_entry(entry)


def validate_log_status(status: str) -> None:
    """Raise EntityValidationError for an unknown log status."""
    if status not in const.LOG_STATUSES:
        raise EntityValidationError(
            field=const.FIELD_LOG_STATUS,
            translation_key=const.TRANS_KEY_INVALID_LOG_STATUS,
            placeholders={"value": str(status)},
        )


# ==============================================================================
# CANONICAL SCHEDULE RESOLUTION
# ==============================================================================


def _weekdays(values: Any) -> frozenset[int]:
    """Return the valid weekday indexes (0-6) in a remote list; drop the rest."""
    weekdays: set[int] = set()
    for value in values or []:
        if isinstance(value, bool):
            continue
        try:
            day = int(value)
        except (TypeError, ValueError):
            const.LOGGER.debug("DEBUG: Ignoring malformed weekday %r", value)
            continue
        if 0 <= day <= 6:
            weekdays.add(day)
    return frozenset(weekdays)


def _entry_from_data(entry: dict[str, Any]) -> ScheduleEntry:
    days = entry.get(const.FIELD_ENTRY_DAYS_OF_WEEK)
    if days is None:
        days = _all_weekdays()
    return ScheduleEntry(
        entry_id=str(entry.get(const.FIELD_ID, "")),
        time=entry.get(const.FIELD_ENTRY_TIME) or "",
        days_of_week=_weekdays(days),
        duration_days=duration_to_days(
            entry.get(const.FIELD_ENTRY_DURATION_VALUE),
            entry.get(const.FIELD_ENTRY_DURATION_UNIT),
        ),
        dosage=entry.get(const.FIELD_ENTRY_DOSAGE),
        sort_order=int(entry.get(const.FIELD_SORT_ORDER) or 0),
    )


def _legacy_entries(schedule: dict[str, Any]) -> list[ScheduleEntry]:
    """Turn the legacy times + days_of_week shape into synthetic entries.

    Each legacy time becomes an open-ended entry at sort_order 0. The
    resolved schedule is marked concurrent, so every legacy time is active on
    every selected weekday.
    """
    times = schedule.get(const.FIELD_SCHEDULE_TIMES) or []
    days = schedule.get(const.FIELD_SCHEDULE_DAYS_OF_WEEK)
    weekdays = _weekdays(days if days is not None else range(7))
    schedule_id = schedule.get(const.FIELD_ID, "")
    return [
        ScheduleEntry(
            entry_id=f"{schedule_id}-legacy-{index}",
            time=time_str,
            days_of_week=weekdays,
            duration_days=None,
            dosage=schedule.get(const.FIELD_SCHEDULE_DOSE_DESCRIPTION),
            sort_order=0,
        )
        for index, time_str in enumerate(times)
    ]


def resolve_schedule(schedule: dict[str, Any]) -> ResolvedSchedule | None:
    """Resolve a decoded schedule dict into its canonical shape.

    Structured schedules keep their sequential entries. Legacy schedules are
    converted once here into a concurrent schedule, so downstream code only
    sees ScheduleEntry values.

    Returns:
        ResolvedSchedule, or None when the start date is unusable.
    """
    start = dt_parse_date(schedule.get(const.FIELD_SCHEDULE_START_DATE))
    if start is None:
        const.LOGGER.warning(
            "WARNING: Schedule %s has no usable start_date, skipping",
            schedule.get(const.FIELD_ID),
        )
        return None

    raw_entries = schedule.get(const.FIELD_SCHEDULE_ENTRIES)
    concurrent = not raw_entries
    if raw_entries:
        entries = [_entry_from_data(entry) for entry in raw_entries]
    else:
        entries = _legacy_entries(schedule)

    entries.sort(key=lambda entry: entry.sort_order)

    return ResolvedSchedule(
        schedule_id=str(schedule.get(const.FIELD_ID, "")),
        medication_id=str(schedule.get(const.FIELD_SCHEDULE_MEDICATION_ID, "")),
        schedule_type=schedule.get(
            const.FIELD_SCHEDULE_TYPE, const.SCHEDULE_TYPE_SCHEDULED
        ),
        start_date=start,
        end_date=dt_parse_date(schedule.get(const.FIELD_SCHEDULE_END_DATE)),
        entries=tuple(entries),
        concurrent=concurrent,
    )


# ==============================================================================
# MEDICATION LOGS
# ==============================================================================


def build_log_status_update(
    log: dict[str, Any],
    status: str,
    taken_at: str | None = None,
) -> dict[str, Any]:
    """Return a copy of a log with a new status.

    `taken_at` is kept only for the taken status.

    Raises:
        EntityValidationError: Unknown status.
    """
    validate_log_status(status)
    updated = dict(log)
    updated[const.FIELD_LOG_STATUS] = status
    updated[const.FIELD_LOG_TAKEN_AT] = (
        taken_at if status == const.LOG_STATUS_TAKEN else None
    )
    return updated


# Per-type validators run by the coordinator before a local save
ENTITY_VALIDATORS: Final[dict[str, Callable[[dict[str, Any]], None]]] = {
    const.ENTITY_MEDICATION_SCHEDULES: validate_schedule_data,
}
