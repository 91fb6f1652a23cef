# File: services.py
"""Defines custom services for the CareKeeper integration.

These services allow direct actions through scripts or automations:
- sync_now: run a push-then-pull sync pass immediately
- generate_logs: create the day's scheduled medication logs
- set_log_status: record taken / missed / skipped for a dose
- set_medication_paused: pause or resume a medication
"""

import voluptuous as vol
from homeassistant.core import HomeAssistant, ServiceCall
from homeassistant.exceptions import HomeAssistantError, ServiceValidationError
from homeassistant.helpers import config_validation as cv

from . import const
from .coordinator import CareKeeperCoordinator
from .data_builders import EntityValidationError
from .helpers.entity_helpers import get_loaded_coordinator
from .utils.dt_utils import dt_today_local

# --- Service Schemas ---
SYNC_NOW_SCHEMA = vol.Schema({})

GENERATE_LOGS_SCHEMA = vol.Schema(
    {
        vol.Optional(const.SERVICE_FIELD_DATE): cv.date,
    }
)

SET_LOG_STATUS_SCHEMA = vol.Schema(
    {
        vol.Required(const.SERVICE_FIELD_LOG_ID): cv.string,
        vol.Required(const.SERVICE_FIELD_STATUS): vol.In(const.LOG_STATUSES),
        vol.Optional(const.SERVICE_FIELD_TAKEN_AT): cv.datetime,
    }
)

SET_MEDICATION_PAUSED_SCHEMA = vol.Schema(
    {
        vol.Required(const.SERVICE_FIELD_MEDICATION_ID): cv.string,
        vol.Required(const.SERVICE_FIELD_PAUSED): cv.boolean,
    }
)

SERVICES = [
    const.SERVICE_SYNC_NOW,
    const.SERVICE_GENERATE_LOGS,
    const.SERVICE_SET_LOG_STATUS,
    const.SERVICE_SET_MEDICATION_PAUSED,
]


def _get_coordinator_or_raise(hass: HomeAssistant) -> CareKeeperCoordinator:
    coordinator = get_loaded_coordinator(hass)
    if coordinator is None:
        raise HomeAssistantError(
            translation_domain=const.DOMAIN,
            translation_key=const.TRANS_KEY_ERROR_NO_ENTRY,
        )
    return coordinator


def _validation_error(err: EntityValidationError) -> ServiceValidationError:
    """Translate a builder validation failure into a service error."""
    return ServiceValidationError(
        translation_domain=const.DOMAIN,
        translation_key=err.translation_key,
        translation_placeholders=err.placeholders,
    )


def async_setup_services(hass: HomeAssistant) -> None:
    """Register CareKeeper services."""

    async def handle_sync_now(call: ServiceCall) -> None:
        """Handle an on-demand sync pass."""
        coordinator = _get_coordinator_or_raise(hass)
        const.LOGGER.debug("DEBUG: Sync Now: requested")
        await coordinator.sync_manager.async_sync()
        coordinator.async_update_listeners()

    async def handle_generate_logs(call: ServiceCall) -> None:
        """Handle generating the scheduled medication logs for a day."""
        coordinator = _get_coordinator_or_raise(hass)
        day = call.data.get(const.SERVICE_FIELD_DATE) or dt_today_local()
        created = await coordinator.async_generate_occurrences_for(day)
        const.LOGGER.info(
            "INFO: Generate Logs: %s logs created for %s", created, day.isoformat()
        )

    async def handle_set_log_status(call: ServiceCall) -> None:
        """Handle recording the outcome of a dose."""
        coordinator = _get_coordinator_or_raise(hass)
        log_id = call.data[const.SERVICE_FIELD_LOG_ID]
        status = call.data[const.SERVICE_FIELD_STATUS]
        try:
            await coordinator.async_set_log_status(
                log_id, status, call.data.get(const.SERVICE_FIELD_TAKEN_AT)
            )
        except EntityValidationError as err:
            const.LOGGER.warning(
                "WARNING: Set Log Status: invalid %s for log %s", err.field, log_id
            )
            raise _validation_error(err) from err

    async def handle_set_medication_paused(call: ServiceCall) -> None:
        """Handle pausing or resuming a medication."""
        coordinator = _get_coordinator_or_raise(hass)
        medication_id = call.data[const.SERVICE_FIELD_MEDICATION_ID]
        paused = call.data[const.SERVICE_FIELD_PAUSED]
        try:
            await coordinator.async_set_medication_paused(medication_id, paused)
        except EntityValidationError as err:
            raise _validation_error(err) from err
        const.LOGGER.info(
            "INFO: Set Medication Paused: %s paused=%s", medication_id, paused
        )

    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_SYNC_NOW,
        handle_sync_now,
        schema=SYNC_NOW_SCHEMA,
    )

    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_GENERATE_LOGS,
        handle_generate_logs,
        schema=GENERATE_LOGS_SCHEMA,
    )

    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_SET_LOG_STATUS,
        handle_set_log_status,
        schema=SET_LOG_STATUS_SCHEMA,
    )

    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_SET_MEDICATION_PAUSED,
        handle_set_medication_paused,
        schema=SET_MEDICATION_PAUSED_SCHEMA,
    )

    const.LOGGER.info("INFO: CareKeeper services have been registered successfully")


async def async_unload_services(hass: HomeAssistant) -> None:
    """Unregister CareKeeper services when unloading the integration."""
    for service in SERVICES:
        if hass.services.has_service(const.DOMAIN, service):
            hass.services.async_remove(const.DOMAIN, service)

    const.LOGGER.info("INFO: CareKeeper services have been unregistered")
