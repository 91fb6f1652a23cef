"""Constants for the CareKeeper integration.

This file centralizes configuration keys, defaults, storage keys, wire field
names, signal suffixes and platform identifiers for consistency across the
integration.
"""

import logging

import homeassistant.util.dt as dt_util
from homeassistant.const import Platform

from .utils import dt_utils


def set_default_timezone(hass):
    """Set the default timezone based on the Home Assistant configuration."""
    global DEFAULT_TIME_ZONE
    DEFAULT_TIME_ZONE = dt_util.get_time_zone(hass.config.time_zone)
    if DEFAULT_TIME_ZONE is not None:
        dt_utils.set_default_timezone(DEFAULT_TIME_ZONE)


# ------------------------------------------------------------------------------------------------
# General / Integration Information
# ------------------------------------------------------------------------------------------------
CAREKEEPER_TITLE = "CareKeeper"

# Integration Domain
DOMAIN = "carekeeper"

# Logger
LOGGER = logging.getLogger(__package__)

# Supported Platforms
PLATFORMS = [
    Platform.CALENDAR,
    Platform.SENSOR,
]

# Coordinator
COORDINATOR_SUFFIX = "_coordinator"

# Storage and Versioning
STORAGE_KEY = "carekeeper_data"
STORAGE_VERSION = 1

# Wire format version written into storage meta; bump when decode defaults change
WIRE_FORMAT_VERSION = 1

# Default timezone: initially None, to be set once hass is available.
DEFAULT_TIME_ZONE = None

# ------------------------------------------------------------------------------------------------
# Configuration Keys
# ------------------------------------------------------------------------------------------------
CONF_ACCOUNT_ID = "account_id"
CONF_UPDATE_INTERVAL = "update_interval"
CONF_CALENDAR_SHOW_PERIOD = "calendar_show_period"
CONF_CALENDAR_EVENT_TYPES = "calendar_event_types"

DEFAULT_UPDATE_INTERVAL = 15  # minutes
DEFAULT_CALENDAR_SHOW_PERIOD = 90  # days

# Daily log generation and reminder re-arm
DEFAULT_DAILY_ROLLOVER_TIME = {"hour": 0, "minute": 0, "second": 5}

# ------------------------------------------------------------------------------------------------
# Storage Buckets
# ------------------------------------------------------------------------------------------------
DATA_META = "meta"
DATA_META_WIRE_FORMAT_VERSION = "wire_format_version"
DATA_META_LAST_LOG_GENERATION = "last_log_generation"
DATA_PENDING_CHANGES = "pending_changes"
DATA_SYNC_METADATA = "sync_metadata"
DATA_SYNC_METADATA_LAST_SYNCED_AT = "last_synced_at"

# Entity types (also storage bucket names and remote table names)
ENTITY_PROFILES = "profiles"
ENTITY_MEDICATIONS = "medications"
ENTITY_MEDICATION_SCHEDULES = "medication_schedules"
ENTITY_MEDICATION_LOGS = "medication_logs"
ENTITY_APPOINTMENTS = "appointments"
ENTITY_COUNTDOWNS = "countdowns"
ENTITY_TODO_LISTS = "todo_lists"
ENTITY_STICKY_REMINDERS = "sticky_reminders"

# Sync pass order: parents before children so pulled logs find their medications
SYNC_ENTITY_ORDER = [
    ENTITY_PROFILES,
    ENTITY_MEDICATIONS,
    ENTITY_MEDICATION_SCHEDULES,
    ENTITY_MEDICATION_LOGS,
    ENTITY_APPOINTMENTS,
    ENTITY_TODO_LISTS,
    ENTITY_COUNTDOWNS,
    ENTITY_STICKY_REMINDERS,
]

# ------------------------------------------------------------------------------------------------
# Synced Record Fields
# ------------------------------------------------------------------------------------------------
RECORD_DATA = "data"
RECORD_IS_SYNCED = "is_synced"
RECORD_LOCALLY_DELETED = "locally_deleted"
RECORD_UPDATED_AT = "updated_at"
RECORD_CREATED_REMOTELY = "created_remotely"

# Pending change fields
PENDING_ID = "id"
PENDING_ENTITY_TYPE = "entity_type"
PENDING_ENTITY_ID = "entity_id"
PENDING_CHANGE_TYPE = "change_type"
PENDING_CREATED_AT = "created_at"
PENDING_RETRY_COUNT = "retry_count"
PENDING_LAST_ERROR = "last_error"
PENDING_LAST_ATTEMPT_AT = "last_attempt_at"

CHANGE_TYPE_CREATE = "create"
CHANGE_TYPE_UPDATE = "update"
CHANGE_TYPE_DELETE = "delete"

MAX_PENDING_RETRIES = 5

# ------------------------------------------------------------------------------------------------
# Wire Field Names (shared)
# ------------------------------------------------------------------------------------------------
FIELD_ID = "id"
FIELD_ACCOUNT_ID = "account_id"
FIELD_PROFILE_ID = "profile_id"
FIELD_CREATED_AT = "created_at"
FIELD_UPDATED_AT = "updated_at"
FIELD_SORT_ORDER = "sort_order"
FIELD_NOTES = "notes"
FIELD_TITLE = "title"
FIELD_DATE = "date"
FIELD_TIME = "time"
FIELD_IS_SHARED = "is_shared"
FIELD_SHARED_BY_MEMBER_ID = "shared_by_member_id"

# Schedule entry
FIELD_ENTRY_TIME = "time"
FIELD_ENTRY_DOSAGE = "dosage"
FIELD_ENTRY_DAYS_OF_WEEK = "days_of_week"
FIELD_ENTRY_DURATION_VALUE = "duration_value"
FIELD_ENTRY_DURATION_UNIT = "duration_unit"

# Medication schedule
FIELD_SCHEDULE_MEDICATION_ID = "medication_id"
FIELD_SCHEDULE_TYPE = "schedule_type"
FIELD_SCHEDULE_START_DATE = "start_date"
FIELD_SCHEDULE_END_DATE = "end_date"
FIELD_SCHEDULE_DAYS_OF_WEEK = "days_of_week"
FIELD_SCHEDULE_TIMES = "times"
FIELD_SCHEDULE_ENTRIES = "schedule_entries"
FIELD_SCHEDULE_DOSE_DESCRIPTION = "dose_description"

# Medication
FIELD_MEDICATION_NAME = "name"
FIELD_MEDICATION_STRENGTH = "strength"
FIELD_MEDICATION_FORM = "form"
FIELD_MEDICATION_IS_PAUSED = "is_paused"

# Medication log
FIELD_LOG_MEDICATION_ID = "medication_id"
FIELD_LOG_SCHEDULED_AT = "scheduled_at"
FIELD_LOG_STATUS = "status"
FIELD_LOG_TAKEN_AT = "taken_at"
FIELD_LOG_NOTE = "note"

# Countdown
FIELD_COUNTDOWN_SUBTITLE = "subtitle"
FIELD_COUNTDOWN_END_DATE = "end_date"
FIELD_COUNTDOWN_HAS_TIME = "has_time"
FIELD_COUNTDOWN_TYPE = "type"
FIELD_COUNTDOWN_CUSTOM_TYPE = "custom_type"
FIELD_COUNTDOWN_IMAGE_URL = "image_url"
FIELD_COUNTDOWN_GROUP_ID = "group_id"
FIELD_COUNTDOWN_REMINDER_OFFSET = "reminder_offset_minutes"
FIELD_COUNTDOWN_IS_RECURRING = "is_recurring"

# Profile
FIELD_PROFILE_TYPE = "type"
FIELD_PROFILE_FULL_NAME = "full_name"
FIELD_PROFILE_BIRTHDAY = "birthday"
FIELD_PROFILE_LINKED_USER_ID = "linked_user_id"
FIELD_PROFILE_SOURCE_USER_ID = "source_user_id"

# Appointment
FIELD_APPOINTMENT_TYPE = "type"
FIELD_APPOINTMENT_LOCATION = "location"
FIELD_APPOINTMENT_IS_COMPLETED = "is_completed"

# Todo list
FIELD_TODO_LIST_TYPE = "list_type"
FIELD_TODO_DUE_DATE = "due_date"

# Sticky reminder
FIELD_STICKY_MESSAGE = "message"
FIELD_STICKY_TRIGGER_TIME = "trigger_time"
FIELD_STICKY_REPEAT_INTERVAL = "repeat_interval"
FIELD_STICKY_IS_ACTIVE = "is_active"
FIELD_STICKY_IS_DISMISSED = "is_dismissed"

# ------------------------------------------------------------------------------------------------
# Enumerated Values
# ------------------------------------------------------------------------------------------------
SCHEDULE_TYPE_SCHEDULED = "scheduled"
SCHEDULE_TYPE_AS_NEEDED = "as_needed"

DURATION_UNIT_DAYS = "days"
DURATION_UNIT_WEEKS = "weeks"
DURATION_UNIT_MONTHS = "months"
DURATION_UNITS = [DURATION_UNIT_DAYS, DURATION_UNIT_WEEKS, DURATION_UNIT_MONTHS]

# Calendar-day multipliers; a month is a fixed 30 days
DURATION_UNIT_DAYS_MULTIPLIER = {
    DURATION_UNIT_DAYS: 1,
    DURATION_UNIT_WEEKS: 7,
    DURATION_UNIT_MONTHS: 30,
}

LOG_STATUS_SCHEDULED = "scheduled"
LOG_STATUS_TAKEN = "taken"
LOG_STATUS_MISSED = "missed"
LOG_STATUS_SKIPPED = "skipped"
LOG_STATUSES = [
    LOG_STATUS_SCHEDULED,
    LOG_STATUS_TAKEN,
    LOG_STATUS_MISSED,
    LOG_STATUS_SKIPPED,
]

COUNTDOWN_TYPE_ANNIVERSARY = "anniversary"
COUNTDOWN_TYPE_HOLIDAY = "holiday"
COUNTDOWN_TYPE_COUNTDOWN = "countdown"
COUNTDOWN_TYPE_EVENT = "event"
COUNTDOWN_TYPE_TASK = "task"
COUNTDOWN_TYPE_CUSTOM = "custom"
COUNTDOWN_TYPES = [
    COUNTDOWN_TYPE_ANNIVERSARY,
    COUNTDOWN_TYPE_HOLIDAY,
    COUNTDOWN_TYPE_COUNTDOWN,
    COUNTDOWN_TYPE_EVENT,
    COUNTDOWN_TYPE_TASK,
    COUNTDOWN_TYPE_CUSTOM,
]

APPOINTMENT_TYPE_GENERAL = "general"

# Day adherence statuses
ADHERENCE_ALL_TAKEN = "all_taken"
ADHERENCE_PARTIAL_TAKEN = "partial_taken"
ADHERENCE_NONE_TAKEN = "none_taken"
ADHERENCE_NO_MEDICATIONS = "no_medications"
ADHERENCE_SCHEDULED = "scheduled"

# Streak scan bounds
STREAK_MAX_DAYS = 365
STREAK_MAX_EMPTY_LEAD_DAYS = 30

# Calendar item kinds
EVENT_KIND_APPOINTMENT = "appointment"
EVENT_KIND_COUNTDOWN = "countdown"
EVENT_KIND_BIRTHDAY = "birthday"
EVENT_KIND_MEDICATION = "medication"
EVENT_KIND_TODO_LIST = "todo_list"
EVENT_KINDS = [
    EVENT_KIND_APPOINTMENT,
    EVENT_KIND_COUNTDOWN,
    EVENT_KIND_BIRTHDAY,
    EVENT_KIND_MEDICATION,
    EVENT_KIND_TODO_LIST,
]

# Calendar item uid prefixes
UID_PREFIX_APPOINTMENT = "apt-"
UID_PREFIX_COUNTDOWN = "cd-"
UID_PREFIX_BIRTHDAY = "bday-"
UID_PREFIX_MEDICATION = "med-"
UID_PREFIX_TODO_LIST = "todo-"

# Sticky reminder defaults
DEFAULT_STICKY_REPEAT_INTERVAL = "1_hours"

# ------------------------------------------------------------------------------------------------
# Sync Status
# ------------------------------------------------------------------------------------------------
SYNC_STATUS_IDLE = "idle"
SYNC_STATUS_SYNCING = "syncing"
SYNC_STATUS_COMPLETED = "completed"
SYNC_STATUS_OFFLINE = "offline"
SYNC_STATUS_FAILED = "failed"
SYNC_STATUSES = [
    SYNC_STATUS_IDLE,
    SYNC_STATUS_SYNCING,
    SYNC_STATUS_COMPLETED,
    SYNC_STATUS_OFFLINE,
    SYNC_STATUS_FAILED,
]

# ------------------------------------------------------------------------------------------------
# Dispatcher Signal Suffixes
# ------------------------------------------------------------------------------------------------
SIGNAL_SUFFIX_DATA_REFRESHED = "data_refreshed"
SIGNAL_SUFFIX_SYNC_STATUS_CHANGED = "sync_status_changed"

# Bus event fired when an armed reminder comes due
EVENT_REMINDER_DUE = "carekeeper_reminder_due"
ATTR_REMINDER_ID = "reminder_id"
ATTR_FIRE_AT = "fire_at"
ATTR_RECURRING = "recurring"

# ------------------------------------------------------------------------------------------------
# Services
# ------------------------------------------------------------------------------------------------
SERVICE_SYNC_NOW = "sync_now"
SERVICE_GENERATE_LOGS = "generate_logs"
SERVICE_SET_LOG_STATUS = "set_log_status"
SERVICE_SET_MEDICATION_PAUSED = "set_medication_paused"

SERVICE_FIELD_DATE = "date"
SERVICE_FIELD_LOG_ID = "log_id"
SERVICE_FIELD_STATUS = "status"
SERVICE_FIELD_MEDICATION_ID = "medication_id"
SERVICE_FIELD_PAUSED = "paused"
SERVICE_FIELD_TAKEN_AT = "taken_at"

# ------------------------------------------------------------------------------------------------
# Entities
# ------------------------------------------------------------------------------------------------
CALENDAR_UID_SUFFIX = "_calendar"
SENSOR_UID_SUFFIX_STREAK = "_adherence_streak"
SENSOR_UID_SUFFIX_MONTHLY_ADHERENCE = "_monthly_adherence"
SENSOR_UID_SUFFIX_SYNC_STATUS = "_sync_status"

ATTR_TAKEN_COUNT = "taken_count"
ATTR_MISSED_COUNT = "missed_count"
ATTR_SKIPPED_COUNT = "skipped_count"
ATTR_SCHEDULED_COUNT = "scheduled_count"
ATTR_PENDING_CHANGES = "pending_changes"
ATTR_LAST_ERROR = "last_error"
ATTR_CHANGES_COUNT = "changes_count"
ATTR_LAST_SYNC_AT = "last_sync_at"
ATTR_EVENT_KIND = "event_kind"

# ------------------------------------------------------------------------------------------------
# Translation Keys
# ------------------------------------------------------------------------------------------------
TRANS_KEY_CALENDAR_NAME = "household_calendar"
TRANS_KEY_SENSOR_STREAK = "adherence_streak"
TRANS_KEY_SENSOR_MONTHLY_ADHERENCE = "monthly_adherence"
TRANS_KEY_SENSOR_SYNC_STATUS = "sync_status"

TRANS_KEY_ERROR_SINGLE_INSTANCE = "single_instance_allowed"
TRANS_KEY_ERROR_INVALID_ACCOUNT_ID = "invalid_account_id"
TRANS_KEY_ERROR_CALENDAR_CREATE_NOT_SUPPORTED = "calendar_create_not_supported"
TRANS_KEY_ERROR_CALENDAR_UPDATE_NOT_SUPPORTED = "calendar_update_not_supported"
TRANS_KEY_ERROR_CALENDAR_DELETE_NOT_SUPPORTED = "calendar_delete_not_supported"
TRANS_KEY_ERROR_NO_ENTRY = "no_entry_found"
TRANS_KEY_ERROR_LOG_NOT_FOUND = "log_not_found"
TRANS_KEY_ERROR_MEDICATION_NOT_FOUND = "medication_not_found"
TRANS_KEY_ERROR_ENTITY_NOT_FOUND = "entity_not_found"

TRANS_KEY_INVALID_ENTRY_DAYS = "invalid_schedule_entry_days"
TRANS_KEY_INVALID_ENTRY_DURATION = "invalid_schedule_entry_duration"
TRANS_KEY_INVALID_ENTRY_DURATION_UNIT = "invalid_schedule_entry_duration_unit"
TRANS_KEY_INVALID_ENTRY_TIME = "invalid_schedule_entry_time"
TRANS_KEY_INVALID_SCHEDULE_TYPE = "invalid_schedule_type"
TRANS_KEY_INVALID_SCHEDULE_START_DATE = "invalid_schedule_start_date"
TRANS_KEY_INVALID_SCHEDULE_END_DATE = "invalid_schedule_end_date"
TRANS_KEY_INVALID_LOG_STATUS = "invalid_log_status"
TRANS_KEY_MISSING_REQUIRED_FIELD = "missing_required_field"
