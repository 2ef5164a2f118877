from __future__ import annotations

import datetime as dt

from homeassistant.components.binary_sensor import BinarySensorEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant

from .calculations import CycleCalculations
from .const import DOMAIN, ATTR_UPCOMING_FERTILE_DAYS, ATTR_NEXT_OVULATION
from .entity import CycleTrackerEntity


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry, async_add_entities) -> None:
    runtime = hass.data[DOMAIN][entry.entry_id]
    async_add_entities(
        [
            PeriodTodayBinary(hass, entry.entry_id, runtime),
            FertileTodayBinary(hass, entry.entry_id, runtime),
            OvulationTodayBinary(hass, entry.entry_id, runtime),
        ],
        True,
    )


class _BaseCycleBinary(CycleTrackerEntity, BinarySensorEntity):
    _attr_is_on = False


class PeriodTodayBinary(_BaseCycleBinary):
    """On when today is recorded; ``predicted`` tells if today is a predicted day."""

    _attr_icon = "mdi:water"

    def __init__(self, hass: HomeAssistant, entry_id: str, runtime) -> None:
        super().__init__(hass, entry_id, runtime, "period_today")
        self._attr_name = "Period today"

    def _handle_calculations(self, calc: CycleCalculations, today: dt.date) -> None:
        self._attr_is_on = self._runtime.data.is_recorded(today)
        self._attr_extra_state_attributes = {
            "predicted": today in calc.predicted_future_days,
        }


class FertileTodayBinary(_BaseCycleBinary):
    _attr_icon = "mdi:flower"

    def __init__(self, hass: HomeAssistant, entry_id: str, runtime) -> None:
        super().__init__(hass, entry_id, runtime, "fertile_today")
        self._attr_name = "Fertile today"

    def _handle_calculations(self, calc: CycleCalculations, today: dt.date) -> None:
        self._attr_is_on = today in calc.fertile_window
        upcoming = sorted(d for d in calc.fertile_window if d >= today)[:6]
        self._attr_extra_state_attributes = {
            ATTR_UPCOMING_FERTILE_DAYS: [d.isoformat() for d in upcoming],
        }


class OvulationTodayBinary(_BaseCycleBinary):
    _attr_icon = "mdi:egg"

    def __init__(self, hass: HomeAssistant, entry_id: str, runtime) -> None:
        super().__init__(hass, entry_id, runtime, "ovulation_today")
        self._attr_name = "Ovulation today"

    def _handle_calculations(self, calc: CycleCalculations, today: dt.date) -> None:
        self._attr_is_on = today in calc.ovulation_day_estimates
        upcoming = [d for d in sorted(calc.ovulation_day_estimates) if d >= today]
        self._attr_extra_state_attributes = {
            ATTR_NEXT_OVULATION: upcoming[0].isoformat() if upcoming else None,
        }
