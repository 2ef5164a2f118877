"""Base entity for cycle tracker."""

from __future__ import annotations

from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.device_registry import DeviceEntryType
from homeassistant.helpers.entity import DeviceInfo, Entity

from .const import DOMAIN
from .calculations import CycleCalculations
from .helpers import today_local


def device_info_for(entry_id: str, name: str) -> DeviceInfo:
    """Device every entity of one entry hangs off."""
    return DeviceInfo(
        identifiers={(DOMAIN, entry_id)},
        name=name,
        manufacturer="Custom",
        model="Cycle Tracker",
        entry_type=DeviceEntryType.SERVICE,
    )


class CycleTrackerEntity(Entity):
    """Shared device info and refresh-on-toggle behaviour.

    Subclasses implement ``_handle_calculations``; it runs on every update
    with values freshly derived from the current intervals.
    """

    _attr_has_entity_name = True

    def __init__(self, hass: HomeAssistant, entry_id: str, runtime, key: str) -> None:
        self.hass = hass
        self._runtime = runtime
        self._entry_id = entry_id
        self._attr_unique_id = f"{entry_id}_{key}"

    @property
    def device_info(self) -> DeviceInfo:
        return device_info_for(self._entry_id, self._runtime.data.name)

    async def async_added_to_hass(self) -> None:
        await super().async_added_to_hass()
        self.async_on_remove(self._runtime.async_add_listener(self._on_data_changed))

    @callback
    def _on_data_changed(self) -> None:
        self.async_schedule_update_ha_state(True)

    async def async_update(self) -> None:
        today = today_local(self.hass)
        self._handle_calculations(self._runtime.data.calculate(today), today)

    def _handle_calculations(self, calc: CycleCalculations, today) -> None:
        raise NotImplementedError
