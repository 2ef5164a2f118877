from __future__ import annotations

from typing import Any, Dict

import voluptuous as vol
from homeassistant import config_entries
from homeassistant.config_entries import ConfigEntry, OptionsFlow
from homeassistant.const import CONF_NAME
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.selector import (
    BooleanSelector,
    TextSelector,
    TextSelectorConfig,
    NumberSelector,
    NumberSelectorConfig,
    NumberSelectorMode,
    SelectSelector,
    SelectSelectorConfig,
    SelectOptionDict,
    TimeSelector,
    TimeSelectorConfig,
)

from .const import (
    DOMAIN,
    DEFAULT_NAME,
    CONF_AVERAGE_CYCLE_LENGTH,
    CONF_AVERAGE_PERIOD_LENGTH,
    CONF_REMINDERS_ENABLED,
    CONF_DAYS_BEFORE_PERIOD,
    CONF_NOTIFY_SERVICES,
    CONF_DAILY_REMINDER_TIME,
    DEFAULT_AVERAGE_CYCLE_LENGTH,
    DEFAULT_AVERAGE_PERIOD_LENGTH,
    DEFAULT_REMINDERS_ENABLED,
    DEFAULT_DAYS_BEFORE_PERIOD,
    DEFAULT_DAILY_REMINDER_TIME,
    MIN_CYCLE_LENGTH,
    MAX_CYCLE_LENGTH,
    MIN_PERIOD_LENGTH,
    MAX_PERIOD_LENGTH,
    MIN_DAYS_BEFORE_PERIOD,
    MAX_DAYS_BEFORE_PERIOD,
)


def _list_notify_services(hass: HomeAssistant) -> list[str]:
    """Return notify services in 'notify.x' form, sorted."""
    services = hass.services.async_services().get("notify", {})
    return [f"notify.{name}" for name in sorted(services.keys())]


def _box(low: int, high: int) -> NumberSelector:
    return NumberSelector(
        NumberSelectorConfig(min=low, max=high, step=1, mode=NumberSelectorMode.BOX)
    )


class ConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Handle the config flow."""

    VERSION = 1

    async def async_step_user(self, user_input: Dict[str, Any] | None = None):
        if user_input is None:
            schema = vol.Schema(
                {
                    vol.Required(CONF_NAME, default=DEFAULT_NAME): TextSelector(
                        TextSelectorConfig(type="text")
                    ),
                }
            )
            return self.async_show_form(step_id="user", data_schema=schema)

        # Singleton: only one instance allowed
        await self.async_set_unique_id(DOMAIN)
        self._abort_if_unique_id_configured()

        name = user_input[CONF_NAME]
        return self.async_create_entry(
            title=name,
            data={CONF_NAME: name},
        )

    @staticmethod
    @callback
    def async_get_options_flow(config_entry: ConfigEntry) -> OptionsFlow:
        return OptionsFlowHandler(config_entry)


class OptionsFlowHandler(OptionsFlow):
    """Fallback averages and reminder options."""

    def __init__(self, config_entry: ConfigEntry) -> None:
        self._entry = config_entry

    async def async_step_init(self, user_input: Dict[str, Any] | None = None):
        if user_input is not None:
            # Number selectors hand back floats
            for key in (CONF_AVERAGE_CYCLE_LENGTH, CONF_AVERAGE_PERIOD_LENGTH, CONF_DAYS_BEFORE_PERIOD):
                if key in user_input:
                    user_input[key] = int(user_input[key])
            return self.async_create_entry(title="", data=user_input)

        o = dict(self._entry.options or {})
        # The update_settings service changes the live settings without touching
        # entry.options, so the form starts from what the tracker really uses.
        runtime = self.hass.data.get(DOMAIN, {}).get(self._entry.entry_id)
        if runtime is not None:
            o.update(runtime.data.settings.as_dict())
            o[CONF_NOTIFY_SERVICES] = list(runtime.data.notify_services)
            o[CONF_DAILY_REMINDER_TIME] = runtime.data.daily_reminder_time

        notify_options = [
            SelectOptionDict(label=s, value=s) for s in _list_notify_services(self.hass)
        ]

        schema = vol.Schema(
            {
                vol.Optional(
                    CONF_AVERAGE_CYCLE_LENGTH,
                    default=o.get(CONF_AVERAGE_CYCLE_LENGTH, DEFAULT_AVERAGE_CYCLE_LENGTH),
                ): _box(MIN_CYCLE_LENGTH, MAX_CYCLE_LENGTH),
                vol.Optional(
                    CONF_AVERAGE_PERIOD_LENGTH,
                    default=o.get(CONF_AVERAGE_PERIOD_LENGTH, DEFAULT_AVERAGE_PERIOD_LENGTH),
                ): _box(MIN_PERIOD_LENGTH, MAX_PERIOD_LENGTH),
                vol.Optional(
                    CONF_REMINDERS_ENABLED,
                    default=o.get(CONF_REMINDERS_ENABLED, DEFAULT_REMINDERS_ENABLED),
                ): BooleanSelector(),
                vol.Optional(
                    CONF_DAYS_BEFORE_PERIOD,
                    default=o.get(CONF_DAYS_BEFORE_PERIOD, DEFAULT_DAYS_BEFORE_PERIOD),
                ): _box(MIN_DAYS_BEFORE_PERIOD, MAX_DAYS_BEFORE_PERIOD),
                vol.Optional(
                    CONF_DAILY_REMINDER_TIME,
                    default=o.get(CONF_DAILY_REMINDER_TIME, DEFAULT_DAILY_REMINDER_TIME),
                ): TimeSelector(TimeSelectorConfig()),
                vol.Optional(
                    CONF_NOTIFY_SERVICES,
                    default=o.get(CONF_NOTIFY_SERVICES, []),
                ): SelectSelector(
                    SelectSelectorConfig(multiple=True, mode="list", options=notify_options)
                ),
            }
        )

        return self.async_show_form(step_id="init", data_schema=schema)
