"""Tests for helpers/reminder_helpers.py point-in-time reminder delivery."""

from datetime import timedelta

from homeassistant.core import HomeAssistant
from homeassistant.util import dt as dt_util
from pytest_homeassistant_custom_component.common import (
    async_capture_events,
    async_fire_time_changed,
)

from custom_components.carekeeper import const
from custom_components.carekeeper.helpers.reminder_helpers import (
    HassReminderScheduler,
)


async def test_reminder_fires_bus_event(hass: HomeAssistant) -> None:
    """A due reminder publishes carekeeper_reminder_due and runs the callback."""
    events = async_capture_events(hass, const.EVENT_REMINDER_DUE)
    fired: list[tuple] = []
    scheduler = HassReminderScheduler(
        hass, on_fire=lambda *args: fired.append(args)
    )
    fire_at = dt_util.utcnow() + timedelta(minutes=5)

    scheduler.schedule_reminder("sticky-1", fire_at, True)
    assert scheduler.armed == {"sticky-1": fire_at}

    async_fire_time_changed(hass, fire_at + timedelta(seconds=1))
    await hass.async_block_till_done()

    assert len(events) == 1
    assert events[0].data == {
        const.ATTR_REMINDER_ID: "sticky-1",
        const.ATTR_FIRE_AT: fire_at.isoformat(),
        const.ATTR_RECURRING: True,
    }
    assert fired == [("sticky-1", fire_at, True)]
    assert scheduler.armed == {}


async def test_reschedule_replaces_timer(hass: HomeAssistant) -> None:
    """Only the latest fire time of a reminder id is kept."""
    events = async_capture_events(hass, const.EVENT_REMINDER_DUE)
    scheduler = HassReminderScheduler(hass)
    first = dt_util.utcnow() + timedelta(minutes=5)
    second = first + timedelta(minutes=10)

    scheduler.schedule_reminder("countdown-1", first, False)
    scheduler.schedule_reminder("countdown-1", second, False)

    async_fire_time_changed(hass, first + timedelta(seconds=1))
    await hass.async_block_till_done()
    assert events == []

    async_fire_time_changed(hass, second + timedelta(seconds=1))
    await hass.async_block_till_done()
    assert len(events) == 1


async def test_cancelled_reminder_never_fires(hass: HomeAssistant) -> None:
    """Cancelling disarms the timer."""
    events = async_capture_events(hass, const.EVENT_REMINDER_DUE)
    scheduler = HassReminderScheduler(hass)
    fire_at = dt_util.utcnow() + timedelta(minutes=5)

    scheduler.schedule_reminder("countdown-1", fire_at, False)
    scheduler.cancel_reminder("countdown-1")
    scheduler.cancel_reminder("never-armed")

    async_fire_time_changed(hass, fire_at + timedelta(seconds=1))
    await hass.async_block_till_done()

    assert events == []
    assert scheduler.armed == {}
