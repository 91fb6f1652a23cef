# File: config_flow.py
"""Config flow for the CareKeeper integration.

A single user step links the integration to one household account. The
options flow tunes the refresh interval and the calendar.
"""

from typing import Any
import uuid

import voluptuous as vol
from homeassistant import config_entries
from homeassistant.core import callback
from homeassistant.helpers import selector

from . import const

# pylint: disable=abstract-method


def build_options_schema(default: dict[str, Any]) -> vol.Schema:
    """Build the options schema, pre-filled from current options."""
    default_interval = default.get(
        const.CONF_UPDATE_INTERVAL, const.DEFAULT_UPDATE_INTERVAL
    )
    default_calendar_period = default.get(
        const.CONF_CALENDAR_SHOW_PERIOD, const.DEFAULT_CALENDAR_SHOW_PERIOD
    )
    default_event_types = default.get(const.CONF_CALENDAR_EVENT_TYPES) or list(
        const.EVENT_KINDS
    )

    return vol.Schema(
        {
            vol.Required(
                const.CONF_UPDATE_INTERVAL, default=default_interval
            ): selector.NumberSelector(
                selector.NumberSelectorConfig(
                    mode=selector.NumberSelectorMode.BOX,
                    min=1,
                    step=1,
                )
            ),
            vol.Required(
                const.CONF_CALENDAR_SHOW_PERIOD, default=default_calendar_period
            ): selector.NumberSelector(
                selector.NumberSelectorConfig(
                    mode=selector.NumberSelectorMode.BOX,
                    min=1,
                    step=1,
                )
            ),
            vol.Optional(
                const.CONF_CALENDAR_EVENT_TYPES, default=default_event_types
            ): selector.SelectSelector(
                selector.SelectSelectorConfig(
                    options=const.EVENT_KINDS,
                    multiple=True,
                    translation_key=const.CONF_CALENDAR_EVENT_TYPES,
                )
            ),
        }
    )


def _is_valid_account_id(value: str) -> bool:
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


class CareKeeperConfigFlow(config_entries.ConfigFlow, domain=const.DOMAIN):
    """Config Flow for CareKeeper."""

    VERSION = 1

    async def async_step_user(self, user_input: dict[str, Any] | None = None):
        """Ask for the household account id."""
        if any(self._async_current_entries()):
            return self.async_abort(reason=const.TRANS_KEY_ERROR_SINGLE_INSTANCE)

        errors: dict[str, str] = {}
        if user_input is not None:
            account_id = user_input[const.CONF_ACCOUNT_ID].strip()
            if not _is_valid_account_id(account_id):
                errors[const.CONF_ACCOUNT_ID] = const.TRANS_KEY_ERROR_INVALID_ACCOUNT_ID
            else:
                await self.async_set_unique_id(account_id)
                self._abort_if_unique_id_configured()
                const.LOGGER.debug(
                    "DEBUG: Creating CareKeeper entry for account %s", account_id
                )
                return self.async_create_entry(
                    title=const.CAREKEEPER_TITLE,
                    data={const.CONF_ACCOUNT_ID: account_id},
                    options={
                        const.CONF_UPDATE_INTERVAL: const.DEFAULT_UPDATE_INTERVAL,
                        const.CONF_CALENDAR_SHOW_PERIOD: const.DEFAULT_CALENDAR_SHOW_PERIOD,
                        const.CONF_CALENDAR_EVENT_TYPES: list(const.EVENT_KINDS),
                    },
                )

        return self.async_show_form(
            step_id="user",
            data_schema=vol.Schema({vol.Required(const.CONF_ACCOUNT_ID): str}),
            errors=errors,
        )

    @staticmethod
    @callback
    def async_get_options_flow(config_entry):
        """Return the Options Flow."""
        return CareKeeperOptionsFlowHandler()


class CareKeeperOptionsFlowHandler(config_entries.OptionsFlow):
    """Options Flow for refresh and calendar settings."""

    async def async_step_init(self, user_input: dict[str, Any] | None = None):
        """Manage the options."""
        if user_input is not None:
            options = {
                const.CONF_UPDATE_INTERVAL: int(
                    user_input[const.CONF_UPDATE_INTERVAL]
                ),
                const.CONF_CALENDAR_SHOW_PERIOD: int(
                    user_input[const.CONF_CALENDAR_SHOW_PERIOD]
                ),
                const.CONF_CALENDAR_EVENT_TYPES: list(
                    user_input.get(const.CONF_CALENDAR_EVENT_TYPES) or []
                ),
            }
            const.LOGGER.debug(
                "DEBUG: Updating CareKeeper options: Update Interval=%s, "
                "Calendar Period=%s, Event Types=%s",
                options[const.CONF_UPDATE_INTERVAL],
                options[const.CONF_CALENDAR_SHOW_PERIOD],
                options[const.CONF_CALENDAR_EVENT_TYPES],
            )
            return self.async_create_entry(title="", data=options)

        return self.async_show_form(
            step_id="init",
            data_schema=build_options_schema(dict(self.config_entry.options)),
        )
