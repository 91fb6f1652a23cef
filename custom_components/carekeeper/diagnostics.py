"""Diagnostics support for CareKeeper integration.

Returns the raw mirror storage (records, pending changes, sync metadata)
together with the current sync state, for troubleshooting sync problems.
"""

from typing import Any

from homeassistant.core import HomeAssistant

from .coordinator import CareKeeperConfigEntry


async def async_get_config_entry_diagnostics(
    hass: HomeAssistant, entry: CareKeeperConfigEntry
) -> dict[str, Any]:
    """Return diagnostics for a config entry."""
    coordinator = entry.runtime_data
    sync_manager = coordinator.sync_manager

    return {
        "sync": {
            "status": sync_manager.status,
            "last_error": sync_manager.last_error,
            "last_sync_at": sync_manager.last_sync_at,
            "last_changes_count": sync_manager.last_changes_count,
            "pending_changes": sync_manager.pending_count,
            "remote_attached": coordinator.remote is not None,
        },
        "storage": coordinator.store.data,
    }
