# File: helpers/reminder_helpers.py
"""Reminder delivery for CareKeeper.

HassReminderScheduler implements the ReminderScheduler capability with Home
Assistant point-in-time timers. When a reminder fires it publishes a
`carekeeper_reminder_due` bus event; notification content and delivery are
left to user automations listening for that event.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from homeassistant.core import CALLBACK_TYPE, HomeAssistant, callback
from homeassistant.helpers.event import async_track_point_in_time

from .. import const

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime


class HassReminderScheduler:
    """Arm and cancel reminders with async_track_point_in_time.

    At most one timer is armed per reminder id; re-scheduling replaces it.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        on_fire: Callable[[str, datetime, bool], None] | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            hass: Home Assistant instance
            on_fire: Optional callback run after the bus event is fired
        """
        self.hass = hass
        self._on_fire = on_fire
        self._unsubs: dict[str, CALLBACK_TYPE] = {}
        self._fire_times: dict[str, datetime] = {}

    @property
    def armed(self) -> dict[str, datetime]:
        """Return reminder id → fire time for every armed reminder."""
        return dict(self._fire_times)

    def schedule_reminder(
        self, reminder_id: str, fire_at: datetime, recurring: bool
    ) -> None:
        """Arm (or re-arm) a reminder."""
        if self._fire_times.get(reminder_id) == fire_at:
            return
        self.cancel_reminder(reminder_id)

        @callback
        def _fire(_now: datetime) -> None:
            self._unsubs.pop(reminder_id, None)
            self._fire_times.pop(reminder_id, None)
            const.LOGGER.debug("DEBUG: Reminder %s is due", reminder_id)
            self.hass.bus.async_fire(
                const.EVENT_REMINDER_DUE,
                {
                    const.ATTR_REMINDER_ID: reminder_id,
                    const.ATTR_FIRE_AT: fire_at.isoformat(),
                    const.ATTR_RECURRING: recurring,
                },
            )
            if self._on_fire is not None:
                self._on_fire(reminder_id, fire_at, recurring)

        self._unsubs[reminder_id] = async_track_point_in_time(
            self.hass, _fire, fire_at
        )
        self._fire_times[reminder_id] = fire_at
        const.LOGGER.debug(
            "DEBUG: Armed reminder %s for %s (recurring=%s)",
            reminder_id,
            fire_at.isoformat(),
            recurring,
        )

    def cancel_reminder(self, reminder_id: str) -> None:
        """Disarm a reminder if armed."""
        unsub = self._unsubs.pop(reminder_id, None)
        self._fire_times.pop(reminder_id, None)
        if unsub is not None:
            unsub()
            const.LOGGER.debug("DEBUG: Cancelled reminder %s", reminder_id)
