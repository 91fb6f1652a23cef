# File: managers/reminder_manager.py
"""Reminder Manager for CareKeeper integration.

Decides WHEN reminders fire and hands delivery to a ReminderScheduler.

Responsibilities:
1. Timer Owner - registers the daily rollover `async_track_time_change`
   (generates the day's medication logs, re-arms yearly reminders)
2. Reminder Arming - after every data refresh, arms one reminder per
   countdown with a reminder offset (`countdown-{id}`) and one per active
   sticky reminder (`sticky-{id}`); reminders whose source disappeared are
   cancelled
3. Sticky Repeat - a fired sticky reminder is re-armed for its next interval

Signals Consumed:
- SIGNAL_SUFFIX_DATA_REFRESHED: re-arm reminders when countdowns or sticky
  reminders changed
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from homeassistant.core import callback
from homeassistant.helpers.event import async_track_time_change

from .. import const
from ..engines.occurrence_engine import OccurrenceEngine
from ..helpers.reminder_helpers import HassReminderScheduler
from ..utils.dt_utils import dt_now_utc, dt_today_local
from .base_manager import BaseManager

if TYPE_CHECKING:
    from datetime import datetime

    from homeassistant.core import HomeAssistant

    from ..coordinator import CareKeeperCoordinator
    from ..type_defs import ReminderScheduler

REMINDER_PREFIX_COUNTDOWN = "countdown-"
REMINDER_PREFIX_STICKY = "sticky-"

# Entity types whose changes move reminder fire times
_REMINDER_SOURCES = {const.ENTITY_COUNTDOWNS, const.ENTITY_STICKY_REMINDERS}


class ReminderManager(BaseManager):
    """Reminder arming and the daily rollover timer."""

    def __init__(
        self,
        hass: HomeAssistant,
        coordinator: CareKeeperCoordinator,
        scheduler: ReminderScheduler | None = None,
    ) -> None:
        """Initialize reminder manager.

        Args:
            hass: Home Assistant instance
            coordinator: Parent coordinator
            scheduler: Reminder delivery capability; defaults to Home
                Assistant point-in-time timers
        """
        super().__init__(hass, coordinator)
        self.scheduler: ReminderScheduler = scheduler or HassReminderScheduler(
            hass, on_fire=self._handle_reminder_fired
        )
        self._armed: dict[str, datetime] = {}

    async def async_setup(self) -> None:
        """Set up the reminder manager.

        Registers the rollover timer, subscribes to refreshes and arms the
        reminders already in the mirror.
        """
        self.coordinator.config_entry.async_on_unload(
            async_track_time_change(
                self.hass,
                self._on_rollover_tick,
                **const.DEFAULT_DAILY_ROLLOVER_TIME,
            )
        )
        self.coordinator.config_entry.async_on_unload(self.cancel_all)
        self.listen(const.SIGNAL_SUFFIX_DATA_REFRESHED, self._handle_data_refreshed)

        self.rearm_all()
        const.LOGGER.debug(
            "DEBUG: ReminderManager initialized with %s armed reminders for entry %s",
            len(self._armed),
            self.entry_id,
        )

    @property
    def armed(self) -> dict[str, datetime]:
        """Return reminder id → fire time for every reminder this manager armed."""
        return dict(self._armed)

    # =========================================================================
    # Daily Rollover
    # =========================================================================

    @callback
    def _on_rollover_tick(self, _: datetime) -> None:
        """Handle the daily rollover timer tick."""
        const.LOGGER.debug("DEBUG: ReminderManager: Daily rollover triggered")
        self.hass.async_create_task(self.async_daily_rollover())

    async def async_daily_rollover(self) -> int:
        """Generate today's medication logs and re-arm yearly reminders.

        Returns:
            Number of medication logs created.
        """
        created = await self.coordinator.async_generate_occurrences_for(
            dt_today_local()
        )
        self.rearm_all()
        return created

    # =========================================================================
    # Arming
    # =========================================================================

    @callback
    def _handle_data_refreshed(self, payload: dict[str, Any]) -> None:
        changed_types = set(payload.get("changed_types", ()))
        if changed_types & _REMINDER_SOURCES:
            self.rearm_all()

    def desired_reminders(self, now: datetime) -> dict[str, tuple[datetime, bool]]:
        """Compute reminder id → (fire time, recurring) from the mirror."""
        desired: dict[str, tuple[datetime, bool]] = {}

        countdowns = list(self.coordinator.countdowns.values())
        for countdown in countdowns:
            fire_at = OccurrenceEngine.countdown_reminder_time(
                countdown, now, siblings=countdowns
            )
            if fire_at is None:
                continue
            desired[f"{REMINDER_PREFIX_COUNTDOWN}{countdown[const.FIELD_ID]}"] = (
                fire_at,
                bool(countdown.get(const.FIELD_COUNTDOWN_IS_RECURRING)),
            )

        for reminder in self.coordinator.sticky_reminders.values():
            fire_at = OccurrenceEngine.sticky_next_fire_time(reminder, now)
            if fire_at is None:
                continue
            desired[f"{REMINDER_PREFIX_STICKY}{reminder[const.FIELD_ID]}"] = (
                fire_at,
                True,
            )

        return desired

    def rearm_all(self) -> None:
        """Arm every due reminder and cancel those no longer wanted."""
        desired = self.desired_reminders(dt_now_utc())

        for reminder_id in set(self._armed) - set(desired):
            self.scheduler.cancel_reminder(reminder_id)
            self._armed.pop(reminder_id, None)

        for reminder_id, (fire_at, recurring) in desired.items():
            if self._armed.get(reminder_id) == fire_at:
                continue
            self.scheduler.schedule_reminder(reminder_id, fire_at, recurring)
            self._armed[reminder_id] = fire_at

    @callback
    def _handle_reminder_fired(
        self, reminder_id: str, fire_at: datetime, recurring: bool
    ) -> None:
        """Forget a fired reminder and arm the next repetition if any."""
        self._armed.pop(reminder_id, None)
        const.LOGGER.debug(
            "DEBUG: Reminder %s fired at %s (recurring=%s)",
            reminder_id,
            fire_at.isoformat(),
            recurring,
        )
        if recurring:
            self.rearm_all()

    def cancel_all(self) -> None:
        """Disarm every reminder this manager armed (entry unload)."""
        for reminder_id in list(self._armed):
            self.scheduler.cancel_reminder(reminder_id)
        self._armed.clear()
