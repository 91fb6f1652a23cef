# File: __init__.py
"""Initialization file for the CareKeeper integration.

Handles setting up the integration, including loading configuration entries,
initializing the local mirror storage, and preparing the coordinator.

Key Features:
- Config entry setup and unload support.
- Coordinator initialization for sync and daily log generation.
- Storage management for the offline mirror.
"""

from __future__ import annotations

from homeassistant.core import HomeAssistant
from homeassistant.exceptions import ConfigEntryNotReady

from . import const
from .coordinator import CareKeeperConfigEntry, CareKeeperCoordinator
from .services import async_setup_services, async_unload_services
from .store import CareKeeperStore


async def async_setup_entry(hass: HomeAssistant, entry: CareKeeperConfigEntry) -> bool:
    """Set up the integration from a config entry."""
    const.LOGGER.info("INFO: Starting setup for CareKeeper entry: %s", entry.entry_id)

    # Must be done before any component that uses the datetime helpers
    const.set_default_timezone(hass)

    store = CareKeeperStore(hass, const.STORAGE_KEY)
    await store.async_initialize()

    coordinator = CareKeeperCoordinator(hass, entry, store)
    await coordinator.async_setup()

    try:
        await coordinator.async_config_entry_first_refresh()
    except ConfigEntryNotReady as e:
        const.LOGGER.error("ERROR: Failed to refresh coordinator data: %s", e)
        raise

    entry.runtime_data = coordinator

    async_setup_services(hass)

    await hass.config_entries.async_forward_entry_setups(entry, const.PLATFORMS)

    # Options changes (interval, calendar filters) take effect on reload
    entry.async_on_unload(entry.add_update_listener(_async_update_listener))

    const.LOGGER.info("INFO: CareKeeper setup complete for entry: %s", entry.entry_id)
    return True


async def _async_update_listener(
    hass: HomeAssistant, entry: CareKeeperConfigEntry
) -> None:
    """Reload the entry after its options change."""
    const.LOGGER.debug("DEBUG: Options updated, reloading entry %s", entry.entry_id)
    await hass.config_entries.async_reload(entry.entry_id)


async def async_unload_entry(hass: HomeAssistant, entry: CareKeeperConfigEntry) -> bool:
    """Unload a config entry."""
    const.LOGGER.info("INFO: Unloading CareKeeper entry: %s", entry.entry_id)

    unload_ok = await hass.config_entries.async_unload_platforms(entry, const.PLATFORMS)

    if unload_ok:
        await entry.runtime_data.store.async_save()
        await async_unload_services(hass)

    return unload_ok


async def async_remove_entry(hass: HomeAssistant, entry: CareKeeperConfigEntry) -> None:
    """Handle removal of a config entry."""
    const.LOGGER.info("INFO: Removing CareKeeper entry: %s", entry.entry_id)

    store = CareKeeperStore(hass, const.STORAGE_KEY)
    await store.async_delete_storage()

    const.LOGGER.info("INFO: CareKeeper entry data cleared: %s", entry.entry_id)
