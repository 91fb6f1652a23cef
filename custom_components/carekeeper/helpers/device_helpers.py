# File: helpers/device_helpers.py
"""Device registry helper functions for CareKeeper.

Functions that construct DeviceInfo objects for Home Assistant's device registry.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from homeassistant.helpers.device_registry import DeviceEntryType, DeviceInfo

from .. import const

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry


def create_household_device_info(config_entry: ConfigEntry) -> DeviceInfo:
    """Create device info for the household account.

    Every CareKeeper entity (calendar, adherence and sync sensors) hangs off
    this single service device.

    Args:
        config_entry: Config entry for this integration instance

    Returns:
        DeviceInfo dict for the household device
    """
    return DeviceInfo(
        identifiers={(const.DOMAIN, config_entry.entry_id)},
        name=f"Household ({config_entry.title})",
        manufacturer=const.CAREKEEPER_TITLE,
        model="Household Account",
        entry_type=DeviceEntryType.SERVICE,
    )
