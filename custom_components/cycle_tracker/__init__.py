from __future__ import annotations

import datetime as dt
import logging
from typing import Optional, Callable, Any, Dict

import voluptuous as vol

from homeassistant.core import HomeAssistant, callback, ServiceCall
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import EVENT_HOMEASSISTANT_STOP
from homeassistant.helpers.storage import Store
from homeassistant.helpers import event as hass_event
from homeassistant.components import websocket_api
from homeassistant.helpers import config_validation as cv

from .const import (
    DOMAIN,
    PLATFORMS,
    STORAGE_VERSION,
    STORAGE_KEY_PREFIX,
    CONF_NAME,
    CONF_AVERAGE_CYCLE_LENGTH,
    CONF_AVERAGE_PERIOD_LENGTH,
    CONF_REMINDERS_ENABLED,
    CONF_DAYS_BEFORE_PERIOD,
    CONF_NOTIFY_SERVICES,
    CONF_DAILY_REMINDER_TIME,
    DEFAULT_DAILY_REMINDER_TIME,
    MIN_CYCLE_LENGTH,
    MAX_CYCLE_LENGTH,
    MIN_PERIOD_LENGTH,
    MAX_PERIOD_LENGTH,
    MIN_DAYS_BEFORE_PERIOD,
    MAX_DAYS_BEFORE_PERIOD,
    SERVICE_TOGGLE_DAY,
    SERVICE_UPDATE_SETTINGS,
    ATTR_DATE,
    ATTR_ENTRY_ID,
)
from .helpers import (
    CycleSettings,
    TrackerData,
    today_local,
    parse_time,
    coerce_date,
)

_LOGGER = logging.getLogger(__name__)

CONFIG_SCHEMA = cv.config_entry_only_config_schema(DOMAIN)

_SETTINGS_KEYS = (
    CONF_AVERAGE_CYCLE_LENGTH,
    CONF_AVERAGE_PERIOD_LENGTH,
    CONF_REMINDERS_ENABLED,
    CONF_DAYS_BEFORE_PERIOD,
)

TOGGLE_DAY_SCHEMA = vol.Schema(
    {
        vol.Required(ATTR_DATE): cv.date,
        vol.Optional(ATTR_ENTRY_ID): cv.string,
    }
)

UPDATE_SETTINGS_SCHEMA = vol.Schema(
    {
        vol.Optional(CONF_AVERAGE_CYCLE_LENGTH): vol.All(
            vol.Coerce(int), vol.Range(min=MIN_CYCLE_LENGTH, max=MAX_CYCLE_LENGTH)
        ),
        vol.Optional(CONF_AVERAGE_PERIOD_LENGTH): vol.All(
            vol.Coerce(int), vol.Range(min=MIN_PERIOD_LENGTH, max=MAX_PERIOD_LENGTH)
        ),
        vol.Optional(CONF_REMINDERS_ENABLED): cv.boolean,
        vol.Optional(CONF_DAYS_BEFORE_PERIOD): vol.All(
            vol.Coerce(int),
            vol.Range(min=MIN_DAYS_BEFORE_PERIOD, max=MAX_DAYS_BEFORE_PERIOD),
        ),
        vol.Optional(ATTR_ENTRY_ID): cv.string,
    }
)


class EntryRuntime:
    """Runtime state per config entry."""

    def __init__(self, hass: HomeAssistant, entry: ConfigEntry) -> None:
        self.hass = hass
        self.entry = entry
        self.store = Store(hass, STORAGE_VERSION, f"{STORAGE_KEY_PREFIX}{entry.entry_id}")
        self.data: TrackerData = TrackerData(
            name=entry.data.get(CONF_NAME, entry.title or "Cycle"),
        )
        self.apply_options(entry.options)
        self._listeners: list[Callable[[], None]] = []
        self._timer_unsub: Optional[Callable[[], None]] = None

    def apply_options(self, options: Dict[str, Any]) -> None:
        """Copy options-flow values into the tracker data."""
        self.data.update_settings(**{k: options.get(k) for k in _SETTINGS_KEYS})
        if CONF_NOTIFY_SERVICES in options:
            self.data.notify_services = list(options[CONF_NOTIFY_SERVICES])
        if options.get(CONF_DAILY_REMINDER_TIME):
            self.data.daily_reminder_time = options[CONF_DAILY_REMINDER_TIME]

    async def async_load(self) -> None:
        saved = await self.store.async_load()
        if not saved:
            return
        try:
            self.data = TrackerData.from_dict(saved)
        except (KeyError, TypeError, ValueError):
            _LOGGER.exception(
                "Stored cycle data for %s is unreadable; starting empty", self.entry.entry_id
            )
            return
        _LOGGER.debug(
            "Loaded %d intervals for %s", len(self.data.intervals), self.entry.entry_id
        )

    async def async_save(self) -> None:
        await self.store.async_save(self.data.as_dict())
        _LOGGER.debug("Saved cycle data for %s", self.entry.entry_id)

    # ---- Change listeners (entities) ----
    @callback
    def async_add_listener(self, update_callback: Callable[[], None]) -> Callable[[], None]:
        self._listeners.append(update_callback)

        @callback
        def _remove() -> None:
            if update_callback in self._listeners:
                self._listeners.remove(update_callback)

        return _remove

    @callback
    def async_notify_listeners(self) -> None:
        for update_callback in list(self._listeners):
            update_callback()

    # ---- Mutations ----
    async def async_toggle_day(self, day: dt.date) -> None:
        intervals = self.data.toggle_day(day)
        _LOGGER.debug(
            "Toggled %s for %s; %d intervals recorded",
            day.isoformat(),
            self.entry.entry_id,
            len(intervals),
        )
        await self.async_save()
        self.async_notify_listeners()

    async def async_update_settings(self, **changes: Any) -> CycleSettings:
        settings = self.data.update_settings(**changes)
        await self.async_save()
        self.async_notify_listeners()
        return settings

    # ---- Reminders ----
    async def async_setup_timers(self) -> None:
        if self._timer_unsub:
            self._timer_unsub()
            self._timer_unsub = None

        target_time = parse_time(self.data.daily_reminder_time) or parse_time(
            DEFAULT_DAILY_REMINDER_TIME
        )

        @callback
        def _daily_reminder(now: dt.datetime) -> None:
            self.hass.async_create_task(self.async_maybe_send_period_reminder())

        self._timer_unsub = hass_event.async_track_time_change(
            self.hass,
            _daily_reminder,
            hour=target_time.hour,
            minute=target_time.minute,
            second=target_time.second,
        )

    async def async_unload(self) -> None:
        if self._timer_unsub:
            self._timer_unsub()
            self._timer_unsub = None
        self._listeners.clear()
        await self.async_save()

    async def async_maybe_send_period_reminder(self) -> bool:
        """Notify ahead of, or on, the predicted start. At most once a day."""
        settings = self.data.settings
        if not settings.reminders_enabled or not self.data.notify_services:
            return False

        today = today_local(self.hass)
        if self.data.last_notified_date == today.isoformat():
            return False

        calc = self.data.calculate(today)
        days = calc.days_until_next_period
        if days is None:
            return False

        if days == settings.days_before_period:
            message = (
                f"Your next period is expected in {days} days, "
                f"around {calc.predicted_next_cycle_start.isoformat()}."
            )
        elif days == 0 and not self.data.is_recorded(today):
            message = (
                "Your period is expected to start today. "
                "Toggle the day in the tracker once it does."
            )
        else:
            return False

        await self._send_notifications(title=f"{self.data.name}: Period reminder", message=message)
        self.data.last_notified_date = today.isoformat()
        await self.async_save()
        return True

    async def _send_notifications(self, title: str, message: str) -> None:
        for svc in self.data.notify_services:
            try:
                domain, service = svc.split(".")
            except ValueError:
                domain, service = "notify", svc
            await self.hass.services.async_call(
                domain,
                service,
                {"title": title, "message": message},
                blocking=True,
            )


async def async_setup(hass: HomeAssistant, config: dict) -> bool:
    """Set up the WS API and domain services."""

    # ---------- WebSocket API ----------
    websocket_api.async_register_command(hass, ws_discover_entry)
    websocket_api.async_register_command(hass, ws_list_intervals)
    websocket_api.async_register_command(hass, ws_toggle_day)
    websocket_api.async_register_command(hass, ws_calculations)

    # ---------- Domain services ----------
    def _get_runtime_for_service(call: ServiceCall) -> EntryRuntime | None:
        entry_id = call.data.get(ATTR_ENTRY_ID)
        runtime = None
        if entry_id and entry_id in hass.data.get(DOMAIN, {}):
            runtime = hass.data[DOMAIN][entry_id]
        elif not entry_id:
            entries = hass.data.get(DOMAIN, {})
            if len(entries) == 1:
                runtime = list(entries.values())[0]
        if runtime is None:
            _LOGGER.warning(
                "cycle_tracker service called but entry not found. entry_id=%s",
                entry_id,
            )
        return runtime

    async def _svc_toggle_day(call: ServiceCall) -> None:
        runtime = _get_runtime_for_service(call)
        if not runtime:
            return
        await runtime.async_toggle_day(coerce_date(call.data[ATTR_DATE]))

    async def _svc_update_settings(call: ServiceCall) -> None:
        runtime = _get_runtime_for_service(call)
        if not runtime:
            return
        await runtime.async_update_settings(
            **{k: call.data.get(k) for k in _SETTINGS_KEYS}
        )

    hass.services.async_register(
        DOMAIN, SERVICE_TOGGLE_DAY, _svc_toggle_day, schema=TOGGLE_DAY_SCHEMA
    )
    hass.services.async_register(
        DOMAIN, SERVICE_UPDATE_SETTINGS, _svc_update_settings, schema=UPDATE_SETTINGS_SCHEMA
    )

    return True


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    runtime = EntryRuntime(hass, entry)
    await runtime.async_load()
    hass.data.setdefault(DOMAIN, {})[entry.entry_id] = runtime

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    await runtime.async_setup_timers()

    entry.async_on_unload(entry.add_update_listener(_async_options_updated))

    @callback
    def _on_stop(event):
        hass.async_create_task(runtime.async_unload())

    entry.async_on_unload(
        hass.bus.async_listen_once(EVENT_HOMEASSISTANT_STOP, _on_stop)
    )
    return True


async def _async_options_updated(hass: HomeAssistant, entry: ConfigEntry) -> None:
    runtime: EntryRuntime = hass.data[DOMAIN][entry.entry_id]
    runtime.apply_options(entry.options)
    await runtime.async_save()
    await runtime.async_setup_timers()
    runtime.async_notify_listeners()
    _LOGGER.debug("Applied new options for %s", entry.entry_id)


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if unload_ok:
        runtime: EntryRuntime = hass.data[DOMAIN].pop(entry.entry_id)
        await runtime.async_unload()
    return unload_ok


def _find_runtime(hass: HomeAssistant, entry_id: str) -> EntryRuntime | None:
    return hass.data.get(DOMAIN, {}).get(entry_id)


# ==================== WebSocket API ====================

@websocket_api.websocket_command(
    {vol.Required("type"): "cycle_tracker/discover_entry"}
)
@websocket_api.async_response
async def ws_discover_entry(hass: HomeAssistant, connection, msg: Dict[str, Any]):
    """Return the first (or only) entry we have; not admin-only."""
    entries: dict[str, EntryRuntime] = hass.data.get(DOMAIN, {})
    if not entries:
        connection.send_result(msg["id"], {"found": False})
        return
    entry_id, runtime = next(iter(entries.items()))
    connection.send_result(
        msg["id"],
        {"found": True, "entry_id": entry_id, "name": runtime.data.name},
    )


@websocket_api.websocket_command(
    {vol.Required("type"): "cycle_tracker/list_intervals", vol.Required("entry_id"): str}
)
@websocket_api.async_response
async def ws_list_intervals(hass, connection, msg):
    runtime = _find_runtime(hass, msg["entry_id"])
    if runtime is None:
        connection.send_error(msg["id"], "not_found", "Unknown entry_id")
        return
    connection.send_result(msg["id"], runtime.data.as_dict())


@websocket_api.websocket_command(
    {
        vol.Required("type"): "cycle_tracker/toggle_day",
        vol.Required("entry_id"): str,
        vol.Required("date"): str,
    }
)
@websocket_api.async_response
async def ws_toggle_day(hass, connection, msg):
    runtime = _find_runtime(hass, msg["entry_id"])
    if runtime is None:
        connection.send_error(msg["id"], "not_found", "Unknown entry_id")
        return
    try:
        day = coerce_date(msg["date"])
    except ValueError:
        connection.send_error(msg["id"], "invalid_format", "date must be YYYY-MM-DD")
        return
    await runtime.async_toggle_day(day)
    connection.send_result(
        msg["id"], {"intervals": [i.as_dict() for i in runtime.data.intervals]}
    )


@websocket_api.websocket_command(
    {vol.Required("type"): "cycle_tracker/calculations", vol.Required("entry_id"): str}
)
@websocket_api.async_response
async def ws_calculations(hass, connection, msg):
    runtime = _find_runtime(hass, msg["entry_id"])
    if runtime is None:
        connection.send_error(msg["id"], "not_found", "Unknown entry_id")
        return
    calc = runtime.data.calculate(today_local(hass))
    connection.send_result(msg["id"], calc.as_dict())
