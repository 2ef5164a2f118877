from __future__ import annotations

import datetime as dt

from homeassistant.components.sensor import SensorDeviceClass, SensorEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import UnitOfTime
from homeassistant.core import HomeAssistant

from .calculations import CycleCalculations
from .const import (
    DOMAIN,
    ATTR_LAST_PERIOD_START,
    ATTR_LAST_PERIOD_END,
    ATTR_PREDICTED_NEXT_START,
)
from .entity import CycleTrackerEntity


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry, async_add_entities) -> None:
    runtime = hass.data[DOMAIN][entry.entry_id]
    async_add_entities(
        [
            CycleDaySensor(hass, entry.entry_id, runtime),
            DaysUntilNextPeriodSensor(hass, entry.entry_id, runtime),
            NextPeriodStartSensor(hass, entry.entry_id, runtime),
            AverageCycleLengthSensor(hass, entry.entry_id, runtime),
            AveragePeriodLengthSensor(hass, entry.entry_id, runtime),
        ],
        True,
    )


class CycleDaySensor(CycleTrackerEntity, SensorEntity):
    """1-based position of today within the running cycle."""

    _attr_icon = "mdi:calendar-today"

    def __init__(self, hass: HomeAssistant, entry_id: str, runtime) -> None:
        super().__init__(hass, entry_id, runtime, "cycle_day")
        self._attr_name = "Cycle day"

    def _handle_calculations(self, calc: CycleCalculations, today: dt.date) -> None:
        self._attr_native_value = calc.current_cycle_day
        last = self._runtime.data.last_interval
        self._attr_extra_state_attributes = {
            ATTR_LAST_PERIOD_START: last.start_date.isoformat() if last else None,
            ATTR_LAST_PERIOD_END: last.effective_end.isoformat() if last else None,
            "average_cycle_length": calc.average_cycle_length,
        }


class DaysUntilNextPeriodSensor(CycleTrackerEntity, SensorEntity):
    """Signed days to the predicted start; zero or less means expected now."""

    _attr_icon = "mdi:calendar-clock"
    _attr_native_unit_of_measurement = UnitOfTime.DAYS

    def __init__(self, hass: HomeAssistant, entry_id: str, runtime) -> None:
        super().__init__(hass, entry_id, runtime, "days_until_next_period")
        self._attr_name = "Days until next period"

    def _handle_calculations(self, calc: CycleCalculations, today: dt.date) -> None:
        self._attr_native_value = calc.days_until_next_period
        self._attr_extra_state_attributes = {
            ATTR_PREDICTED_NEXT_START: (
                calc.predicted_next_cycle_start.isoformat()
                if calc.predicted_next_cycle_start
                else None
            ),
        }


class NextPeriodStartSensor(CycleTrackerEntity, SensorEntity):
    _attr_icon = "mdi:calendar-arrow-right"
    _attr_device_class = SensorDeviceClass.DATE

    def __init__(self, hass: HomeAssistant, entry_id: str, runtime) -> None:
        super().__init__(hass, entry_id, runtime, "next_period_start")
        self._attr_name = "Next period start"

    def _handle_calculations(self, calc: CycleCalculations, today: dt.date) -> None:
        self._attr_native_value = calc.predicted_next_cycle_start


class AverageCycleLengthSensor(CycleTrackerEntity, SensorEntity):
    _attr_icon = "mdi:sync"
    _attr_native_unit_of_measurement = UnitOfTime.DAYS

    def __init__(self, hass: HomeAssistant, entry_id: str, runtime) -> None:
        super().__init__(hass, entry_id, runtime, "average_cycle_length")
        self._attr_name = "Average cycle length"

    def _handle_calculations(self, calc: CycleCalculations, today: dt.date) -> None:
        self._attr_native_value = calc.average_cycle_length


class AveragePeriodLengthSensor(CycleTrackerEntity, SensorEntity):
    _attr_icon = "mdi:water"
    _attr_native_unit_of_measurement = UnitOfTime.DAYS

    def __init__(self, hass: HomeAssistant, entry_id: str, runtime) -> None:
        super().__init__(hass, entry_id, runtime, "average_period_length")
        self._attr_name = "Average period length"

    def _handle_calculations(self, calc: CycleCalculations, today: dt.date) -> None:
        self._attr_native_value = calc.average_period_length
