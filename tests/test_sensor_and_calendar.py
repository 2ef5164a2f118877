from __future__ import annotations

import datetime as dt

import pytest
from freezegun import freeze_time
from homeassistant.core import HomeAssistant
from homeassistant.helpers import device_registry as dr, entity_registry as er
from homeassistant.helpers.entity_component import async_update_entity
from homeassistant.util import dt as dt_util

from custom_components.cycle_tracker.const import DOMAIN, SERVICE_TOGGLE_DAY

pytestmark = pytest.mark.asyncio

HISTORY = (
    "2023-12-04", "2023-12-05", "2023-12-06", "2023-12-07", "2023-12-08",
    "2024-01-01", "2024-01-02", "2024-01-03", "2024-01-04", "2024-01-05",
)

ENTITIES = (
    "sensor.cycle_tracker_cycle_day",
    "sensor.cycle_tracker_days_until_next_period",
    "sensor.cycle_tracker_next_period_start",
    "sensor.cycle_tracker_average_cycle_length",
    "sensor.cycle_tracker_average_period_length",
    "binary_sensor.cycle_tracker_period_today",
    "binary_sensor.cycle_tracker_fertile_today",
    "binary_sensor.cycle_tracker_ovulation_today",
)


def _coerce_tz(hass: HomeAssistant) -> dt.tzinfo:
    """Return a tzinfo object regardless of how HA stores time_zone (str or tzinfo)."""
    tz = getattr(hass.config, "time_zone", None)
    if isinstance(tz, dt.tzinfo):
        return tz
    return dt_util.get_time_zone(str(tz)) or dt_util.UTC


async def _record_history(hass: HomeAssistant) -> None:
    for day in HISTORY:
        await hass.services.async_call(DOMAIN, SERVICE_TOGGLE_DAY, {"date": day}, blocking=True)
    await hass.async_block_till_done()


async def test_entities_without_history(hass: HomeAssistant, setup_integration):
    state = hass.states.get("sensor.cycle_tracker_cycle_day")
    assert state is not None
    assert state.state == "unknown"
    assert hass.states.get("sensor.cycle_tracker_average_cycle_length").state == "28"
    assert hass.states.get("sensor.cycle_tracker_average_period_length").state == "5"
    assert hass.states.get("binary_sensor.cycle_tracker_fertile_today").state == "off"


async def test_sensor_states_follow_recorded_days(hass: HomeAssistant, setup_integration):
    with freeze_time("2024-01-10 12:00:00"):
        await _record_history(hass)
        for entity_id in ENTITIES:
            await async_update_entity(hass, entity_id)

        assert hass.states.get("sensor.cycle_tracker_cycle_day").state == "10"
        assert hass.states.get("sensor.cycle_tracker_days_until_next_period").state == "19"
        assert hass.states.get("sensor.cycle_tracker_next_period_start").state == "2024-01-29"
        assert hass.states.get("sensor.cycle_tracker_average_cycle_length").state == "28"
        assert hass.states.get("sensor.cycle_tracker_average_period_length").state == "5"

        cycle_day = hass.states.get("sensor.cycle_tracker_cycle_day")
        assert cycle_day.attributes["last_period_start"] == "2024-01-01"
        assert cycle_day.attributes["last_period_end"] == "2024-01-05"

        # 2024-01-10 is five days before the estimated ovulation on 2024-01-15
        assert hass.states.get("binary_sensor.cycle_tracker_fertile_today").state == "on"
        assert hass.states.get("binary_sensor.cycle_tracker_ovulation_today").state == "off"
        assert hass.states.get("binary_sensor.cycle_tracker_period_today").state == "off"
        ovulation = hass.states.get("binary_sensor.cycle_tracker_ovulation_today")
        assert ovulation.attributes["next_ovulation_date"] == "2024-01-15"


async def test_toggle_pushes_new_state(hass: HomeAssistant, setup_integration):
    with freeze_time("2024-01-10 12:00:00"):
        await hass.services.async_call(
            DOMAIN, SERVICE_TOGGLE_DAY, {"date": "2024-01-10"}, blocking=True
        )
        await hass.async_block_till_done()
        assert hass.states.get("binary_sensor.cycle_tracker_period_today").state == "on"
        assert hass.states.get("sensor.cycle_tracker_cycle_day").state == "1"


async def test_calendar_events(hass: HomeAssistant, setup_integration):
    with freeze_time("2024-01-10 12:00:00"):
        await _record_history(hass)

        calendar_component = hass.data["entity_components"]["calendar"]
        cal_entity = next(iter(calendar_component.entities))

        tz = _coerce_tz(hass)
        events = await cal_entity.async_get_events(
            hass,
            dt.datetime(2024, 1, 1, tzinfo=tz),
            dt.datetime(2024, 2, 5, tzinfo=tz),
        )

    by_summary: dict[str, list] = {}
    for ev in events:
        by_summary.setdefault(ev.summary, []).append(ev)

    periods = by_summary["Period"]
    assert len(periods) == 1
    assert periods[0].start.date() == dt.date(2024, 1, 1)
    assert periods[0].end.date() == dt.date(2024, 1, 6)  # exclusive end

    predicted = by_summary["Predicted period"]
    assert predicted[0].start.date() == dt.date(2024, 1, 29)
    assert predicted[0].end.date() == dt.date(2024, 2, 3)

    ovulation_days = sorted(ev.start.date() for ev in by_summary["Ovulation"])
    assert dt.date(2024, 1, 15) in ovulation_days

    fertile_starts = sorted(ev.start.date() for ev in by_summary["Fertile window"])
    assert dt.date(2024, 1, 10) in fertile_starts


async def test_calendar_shares_the_entry_device(hass: HomeAssistant, setup_integration, config_entry):
    ent_reg = er.async_get(hass)
    dev_reg = dr.async_get(hass)

    calendar_component = hass.data["entity_components"]["calendar"]
    cal_entity = next(iter(calendar_component.entities))
    cal_device_id = ent_reg.async_get(cal_entity.entity_id).device_id
    sensor_device_id = ent_reg.async_get("sensor.cycle_tracker_cycle_day").device_id
    assert cal_device_id == sensor_device_id

    device = dev_reg.async_get(cal_device_id)
    assert (DOMAIN, config_entry.entry_id) in device.identifiers
    assert device.manufacturer == "Custom"
    assert device.model == "Cycle Tracker"
    assert device.entry_type is dr.DeviceEntryType.SERVICE
