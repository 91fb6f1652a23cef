# File: sensor.py
"""Sensors for the CareKeeper integration.

Sensors Defined in This File (3):
01. AdherenceStreakSensor - consecutive fully-taken days ending today
02. MonthlyAdherenceSensor - this month's adherence percentage with counts
03. SyncStatusSensor - state of the offline/remote reconciliation
"""

from typing import Any

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorStateClass,
)
from homeassistant.const import PERCENTAGE, EntityCategory, UnitOfTime
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.dispatcher import async_dispatcher_connect
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from . import const
from .coordinator import CareKeeperConfigEntry, CareKeeperCoordinator
from .entity import CareKeeperCoordinatorEntity
from .helpers.device_helpers import create_household_device_info
from .helpers.entity_helpers import get_event_signal
from .utils.dt_utils import dt_today_local

# Set to 0 (unlimited) for coordinator-based entities that don't poll
PARALLEL_UPDATES = 0


async def async_setup_entry(
    hass: HomeAssistant,
    entry: CareKeeperConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up sensors for CareKeeper integration."""
    coordinator = entry.runtime_data

    async_add_entities(
        [
            AdherenceStreakSensor(coordinator, entry),
            MonthlyAdherenceSensor(coordinator, entry),
            SyncStatusSensor(coordinator, entry),
        ]
    )


# ------------------------------------------------------------------------------------------
# ADHERENCE SENSORS
# ------------------------------------------------------------------------------------------


class AdherenceStreakSensor(CareKeeperCoordinatorEntity, SensorEntity):
    """Consecutive days on which every medication dose was taken.

    Days without any medication logs neither extend nor break the streak.
    """

    _attr_has_entity_name = True
    _attr_translation_key = const.TRANS_KEY_SENSOR_STREAK
    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_native_unit_of_measurement = UnitOfTime.DAYS
    _attr_icon = "mdi:fire"

    def __init__(
        self, coordinator: CareKeeperCoordinator, entry: CareKeeperConfigEntry
    ) -> None:
        """Initialize the sensor.

        Args:
            coordinator: CareKeeperCoordinator instance for data access.
            entry: ConfigEntry for this integration instance.
        """
        super().__init__(coordinator)
        self._attr_unique_id = f"{entry.entry_id}{const.SENSOR_UID_SUFFIX_STREAK}"
        self._attr_device_info = create_household_device_info(entry)

    @property
    def native_value(self) -> int:
        """Return the current streak in days."""
        return self.coordinator.current_streak()


class MonthlyAdherenceSensor(CareKeeperCoordinatorEntity, SensorEntity):
    """Adherence percentage for the current calendar month.

    The percentage counts taken doses against taken + missed + skipped;
    doses still `scheduled` are reported but not counted.
    """

    _attr_has_entity_name = True
    _attr_translation_key = const.TRANS_KEY_SENSOR_MONTHLY_ADHERENCE
    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_native_unit_of_measurement = PERCENTAGE
    _attr_icon = "mdi:pill"

    def __init__(
        self, coordinator: CareKeeperCoordinator, entry: CareKeeperConfigEntry
    ) -> None:
        """Initialize the sensor.

        Args:
            coordinator: CareKeeperCoordinator instance for data access.
            entry: ConfigEntry for this integration instance.
        """
        super().__init__(coordinator)
        self._attr_unique_id = (
            f"{entry.entry_id}{const.SENSOR_UID_SUFFIX_MONTHLY_ADHERENCE}"
        )
        self._attr_device_info = create_household_device_info(entry)

    def _summary(self) -> dict[str, Any]:
        today = dt_today_local()
        return dict(self.coordinator.monthly_summary(today.year, today.month))

    @property
    def native_value(self) -> int:
        """Return this month's adherence percentage."""
        return self._summary()["adherence_percentage"]

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        """Return the status counts behind the percentage."""
        summary = self._summary()
        return {
            const.ATTR_TAKEN_COUNT: summary["taken_count"],
            const.ATTR_MISSED_COUNT: summary["missed_count"],
            const.ATTR_SKIPPED_COUNT: summary["skipped_count"],
            const.ATTR_SCHEDULED_COUNT: summary["scheduled_count"],
        }


# ------------------------------------------------------------------------------------------
# SYNC SENSOR
# ------------------------------------------------------------------------------------------


class SyncStatusSensor(CareKeeperCoordinatorEntity, SensorEntity):
    """Current sync status (idle, syncing, completed, offline, failed)."""

    _attr_has_entity_name = True
    _attr_translation_key = const.TRANS_KEY_SENSOR_SYNC_STATUS
    _attr_device_class = SensorDeviceClass.ENUM
    _attr_options = const.SYNC_STATUSES
    _attr_entity_category = EntityCategory.DIAGNOSTIC

    def __init__(
        self, coordinator: CareKeeperCoordinator, entry: CareKeeperConfigEntry
    ) -> None:
        """Initialize the sensor.

        Args:
            coordinator: CareKeeperCoordinator instance for data access.
            entry: ConfigEntry for this integration instance.
        """
        super().__init__(coordinator)
        self._entry_id = entry.entry_id
        self._attr_unique_id = f"{entry.entry_id}{const.SENSOR_UID_SUFFIX_SYNC_STATUS}"
        self._attr_device_info = create_household_device_info(entry)

    async def async_added_to_hass(self) -> None:
        """Follow sync status changes between coordinator updates."""
        await super().async_added_to_hass()
        signal = get_event_signal(
            self._entry_id, const.SIGNAL_SUFFIX_SYNC_STATUS_CHANGED
        )
        self.async_on_remove(
            async_dispatcher_connect(self.hass, signal, self._on_status_changed)
        )

    @callback
    def _on_status_changed(self, _payload: dict[str, Any] | None = None) -> None:
        self.async_write_ha_state()

    @property
    def native_value(self) -> str:
        """Return the sync status."""
        return self.coordinator.sync_manager.status

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        """Return pending change count, last error and last sync time."""
        sync_manager = self.coordinator.sync_manager
        return {
            const.ATTR_PENDING_CHANGES: sync_manager.pending_count,
            const.ATTR_LAST_ERROR: sync_manager.last_error,
            const.ATTR_CHANGES_COUNT: sync_manager.last_changes_count,
            const.ATTR_LAST_SYNC_AT: sync_manager.last_sync_at,
        }
