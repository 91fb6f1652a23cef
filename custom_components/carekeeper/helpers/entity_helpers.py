# File: helpers/entity_helpers.py
"""Entity and signal helper functions for CareKeeper.

All functions here require a `hass` object or build names that are only
meaningful inside Home Assistant.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from homeassistant.config_entries import ConfigEntryState

from .. import const

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from ..coordinator import CareKeeperCoordinator


# ==============================================================================
# Event Signal Helpers (Manager Communication)
# ==============================================================================


def get_event_signal(entry_id: str, suffix: str) -> str:
    """Build instance-scoped event signal name for dispatcher.

    Each config entry gets its own signal namespace, so several CareKeeper
    accounts never see each other's refreshes.

    Format: 'carekeeper_{entry_id}_{suffix}'

    Example:
        >>> get_event_signal("abc123", const.SIGNAL_SUFFIX_DATA_REFRESHED)
        'carekeeper_abc123_data_refreshed'
    """
    return f"{const.DOMAIN}_{entry_id}_{suffix}"


# ==============================================================================
# Coordinator Access
# ==============================================================================


def get_loaded_coordinator(hass: HomeAssistant) -> CareKeeperCoordinator | None:
    """Return the coordinator of the first loaded CareKeeper entry.

    Returns:
        CareKeeperCoordinator if found, None otherwise
    """
    for entry in hass.config_entries.async_entries(const.DOMAIN):
        if entry.state is ConfigEntryState.LOADED:
            return entry.runtime_data
    return None
