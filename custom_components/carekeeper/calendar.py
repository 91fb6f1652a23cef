# pyright: reportIncompatibleVariableOverride=false
# ^ Suppresses Pylance warnings about @property overriding @cached_property from base classes.
"""Calendar platform for CareKeeper integration.

Provides a read-only household calendar combining appointments, countdowns,
birthdays, medication doses and to-do list due dates.
"""

import datetime
from typing import Any

from homeassistant.components.calendar import CalendarEntity, CalendarEvent
from homeassistant.core import HomeAssistant, callback
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.dispatcher import async_dispatcher_connect
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.util import dt as dt_util

from . import const
from .coordinator import CareKeeperConfigEntry, CareKeeperCoordinator
from .engines.calendar_engine import (
    AppointmentItem,
    BirthdayItem,
    CalendarFilters,
    CalendarItem,
    CountdownItem,
    MedicationItem,
    TodoListItem,
)
from .helpers.device_helpers import create_household_device_info
from .helpers.entity_helpers import get_event_signal
from .utils.dt_utils import combine_local

# Platinum requirement: Parallel Updates
# Set to 0 (unlimited) for coordinator-based entities that don't poll
PARALLEL_UPDATES = 0

# Timed items are shown as one-hour blocks
TIMED_EVENT_DURATION = datetime.timedelta(hours=1)


async def async_setup_entry(
    hass: HomeAssistant,
    entry: CareKeeperConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up the CareKeeper calendar platform."""
    coordinator = entry.runtime_data
    if not coordinator:
        const.LOGGER.error("ERROR: Coordinator not found for entry %s", entry.entry_id)
        return

    calendar_show_period_days = entry.options.get(
        const.CONF_CALENDAR_SHOW_PERIOD, const.DEFAULT_CALENDAR_SHOW_PERIOD
    )
    event_types = entry.options.get(const.CONF_CALENDAR_EVENT_TYPES) or []

    async_add_entities(
        [
            HouseholdCalendar(
                coordinator,
                entry,
                datetime.timedelta(days=calendar_show_period_days),
                CalendarFilters(kinds=frozenset(event_types)),
            )
        ]
    )


def _item_description(item: CalendarItem) -> str | None:
    """Build the event description for one calendar item."""
    parts: list[str] = []
    if isinstance(item, AppointmentItem):
        parts = [item.appointment_type, item.notes or ""]
    elif isinstance(item, CountdownItem):
        parts = [item.subtitle or "", item.notes or ""]
    elif isinstance(item, BirthdayItem):
        parts = [f"Turns {item.age}" if item.age else ""]
    elif isinstance(item, MedicationItem):
        parts = [item.dosage or ""]
    elif isinstance(item, TodoListItem):
        parts = [item.list_type or ""]
    text = "\n".join(part for part in parts if part)
    return text or None


def item_to_calendar_event(item: CalendarItem) -> CalendarEvent:
    """Convert a calendar item into a Home Assistant CalendarEvent.

    Items without a time become all-day events; timed items become one-hour
    blocks in local time.
    """
    if item.time is None:
        start: datetime.date | datetime.datetime = item.day
        end: datetime.date | datetime.datetime = item.day + datetime.timedelta(days=1)
    else:
        start = combine_local(item.day, item.time, const.DEFAULT_TIME_ZONE)
        end = start + TIMED_EVENT_DURATION

    return CalendarEvent(
        start=start,
        end=end,
        summary=item.title,
        description=_item_description(item),
        location=item.location if isinstance(item, AppointmentItem) else None,
        uid=item.uid,
    )


class HouseholdCalendar(CalendarEntity):
    """Calendar entity representing the whole household schedule."""

    _attr_has_entity_name = True
    _attr_translation_key = const.TRANS_KEY_CALENDAR_NAME

    def __init__(
        self,
        coordinator: CareKeeperCoordinator,
        config_entry: CareKeeperConfigEntry,
        calendar_duration: datetime.timedelta,
        filters: CalendarFilters,
    ) -> None:
        """Initialize the calendar entity.

        Args:
            coordinator: CareKeeperCoordinator instance for data access.
            config_entry: ConfigEntry for this integration instance.
            calendar_duration: Look-ahead used for the current-event window.
            filters: Event kinds selected in the options flow.
        """
        super().__init__()
        self.coordinator = coordinator
        self._config_entry = config_entry
        self._calendar_duration = calendar_duration
        self._filters = filters
        self._attr_unique_id = f"{config_entry.entry_id}{const.CALENDAR_UID_SUFFIX}"
        self._attr_device_info = create_household_device_info(config_entry)
        self._items_cache: dict[tuple[str, str], list[CalendarItem]] = {}
        self._max_cache_entries = 8

    async def async_added_to_hass(self) -> None:
        """Subscribe to refresh signals that invalidate calendar caches."""
        await super().async_added_to_hass()
        signal = get_event_signal(
            self._config_entry.entry_id, const.SIGNAL_SUFFIX_DATA_REFRESHED
        )
        self.async_on_remove(
            async_dispatcher_connect(self.hass, signal, self._on_data_refreshed)
        )

    @callback
    def _on_data_refreshed(self, payload: dict[str, Any] | None = None) -> None:
        """Invalidate cached items and acknowledge the refresh."""
        self._items_cache.clear()
        self.async_write_ha_state()
        refresh_id = (payload or {}).get("refresh_id")
        if refresh_id:
            self.coordinator.sync_manager.acknowledge_refresh(
                refresh_id, self.entity_id or self._attr_unique_id
            )

    def _get_cached_items(
        self, start_day: datetime.date, end_day: datetime.date
    ) -> list[CalendarItem]:
        """Return cached items for a day range or compose and cache them."""
        cache_key = (start_day.isoformat(), end_day.isoformat())
        cached = self._items_cache.get(cache_key)
        if cached is not None:
            return cached

        items = self.coordinator.events(start_day, end_day, self._filters)
        self._items_cache[cache_key] = items
        if len(self._items_cache) > self._max_cache_entries:
            oldest_key = next(iter(self._items_cache))
            del self._items_cache[oldest_key]
        return items

    def _to_local_datetime(
        self, value: datetime.date | datetime.datetime
    ) -> datetime.datetime:
        if isinstance(value, datetime.datetime):
            return dt_util.as_local(value)
        return datetime.datetime.combine(
            value, datetime.time.min, tzinfo=dt_util.get_default_time_zone()
        )

    def _events_in_window(
        self, window_start: datetime.datetime, window_end: datetime.datetime
    ) -> list[tuple[CalendarItem, CalendarEvent]]:
        local_start = dt_util.as_local(window_start)
        local_end = dt_util.as_local(window_end)
        pairs: list[tuple[CalendarItem, CalendarEvent]] = []
        for item in self._get_cached_items(local_start.date(), local_end.date()):
            event = item_to_calendar_event(item)
            if (
                self._to_local_datetime(event.end) > local_start
                and self._to_local_datetime(event.start) < local_end
            ):
                pairs.append((item, event))
        return pairs

    async def async_get_events(
        self,
        hass: HomeAssistant,
        start_date: datetime.datetime,
        end_date: datetime.datetime,
    ) -> list[CalendarEvent]:
        """Return CalendarEvent objects overlapping [start_date, end_date]."""
        local_tz = dt_util.get_time_zone(self.hass.config.time_zone)
        if start_date.tzinfo is None:
            start_date = start_date.replace(tzinfo=local_tz)
        if end_date.tzinfo is None:
            end_date = end_date.replace(tzinfo=local_tz)
        return [event for _, event in self._events_in_window(start_date, end_date)]

    async def async_create_event(self, **kwargs: Any) -> None:
        """Create a new event - not supported for read-only calendar."""
        raise HomeAssistantError(
            translation_domain=const.DOMAIN,
            translation_key=const.TRANS_KEY_ERROR_CALENDAR_CREATE_NOT_SUPPORTED,
        )

    async def async_delete_event(
        self,
        uid: str,
        recurrence_id: str | None = None,
        recurrence_range: str | None = None,
    ) -> None:
        """Delete an event - not supported for read-only calendar."""
        raise HomeAssistantError(
            translation_domain=const.DOMAIN,
            translation_key=const.TRANS_KEY_ERROR_CALENDAR_DELETE_NOT_SUPPORTED,
        )

    async def async_update_event(
        self,
        uid: str,
        event: dict[str, Any],
        recurrence_id: str | None = None,
        recurrence_range: str | None = None,
    ) -> None:
        """Update an event - not supported for read-only calendar."""
        raise HomeAssistantError(
            translation_domain=const.DOMAIN,
            translation_key=const.TRANS_KEY_ERROR_CALENDAR_UPDATE_NOT_SUPPORTED,
        )

    def _current_pair(self) -> tuple[CalendarItem, CalendarEvent] | None:
        now = dt_util.now()
        window_start = now - datetime.timedelta(hours=1)
        window_end = now + datetime.timedelta(hours=1)
        for item, event in self._events_in_window(window_start, window_end):
            start = self._to_local_datetime(event.start)
            end = self._to_local_datetime(event.end)
            if start <= now < end:
                return item, event
        return None

    @property
    def event(self) -> CalendarEvent | None:
        """Return the event in progress now (searched within ±1h), if any."""
        current = self._current_pair()
        return current[1] if current else None

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        """Return extra state attributes."""
        current = self._current_pair()
        return {
            const.ATTR_EVENT_KIND: current[0].kind if current else None,
            const.CONF_CALENDAR_SHOW_PERIOD: self._calendar_duration.days,
        }
