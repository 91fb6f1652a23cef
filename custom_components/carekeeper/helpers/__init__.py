# File: helpers/__init__.py
"""Home Assistant-bound helper functions for CareKeeper.

This module contains functions that REQUIRE Home Assistant dependencies.

NOTE: Functions that need `hass` object belong here, NOT in utils/.

Submodules:
    - entity_helpers: Dispatcher signal names, loaded coordinator lookup
    - device_helpers: DeviceInfo construction
    - reminder_helpers: Reminder delivery via Home Assistant timers and events

Usage:
    from .entity_helpers import get_event_signal
    from .reminder_helpers import HassReminderScheduler
"""

from . import device_helpers, entity_helpers, reminder_helpers

__all__ = [
    "device_helpers",
    "entity_helpers",
    "reminder_helpers",
]
