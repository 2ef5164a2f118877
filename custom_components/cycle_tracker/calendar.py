from __future__ import annotations

import datetime as dt
from typing import List, Optional

from homeassistant.core import HomeAssistant
from homeassistant.util import dt as dt_util
from homeassistant.components.calendar import CalendarEntity, CalendarEvent

from .const import DOMAIN
from .entity import device_info_for
from .helpers import period_ranges, today_local

# How far ahead we look when choosing the current/next event for .event
_LOOKAHEAD_DAYS_FOR_EVENT = 60

SUMMARY_PERIOD = "Period"
SUMMARY_PREDICTED_PERIOD = "Predicted period"
SUMMARY_FERTILE_WINDOW = "Fertile window"
SUMMARY_OVULATION = "Ovulation"


def _as_local_datetime(d: dt.date | dt.datetime, tz: dt.tzinfo) -> dt.datetime:
    """Return a timezone-aware local datetime for either a date or datetime."""
    if isinstance(d, dt.datetime):
        if d.tzinfo is None:
            return d.replace(tzinfo=tz)
        return d.astimezone(tz)
    # date -> local midnight
    return dt.datetime(d.year, d.month, d.day, tzinfo=tz)


def _end_exclusive(last_day: dt.date, tz: dt.tzinfo) -> dt.datetime:
    """HA calendar ends are exclusive: midnight after the last day."""
    return _as_local_datetime(last_day, tz) + dt.timedelta(days=1)


class CycleTrackerCalendar(CalendarEntity):
    """Recorded periods plus predicted periods, fertile windows and ovulation days."""

    _attr_has_entity_name = True

    def __init__(self, hass: HomeAssistant, entry_id: str, runtime) -> None:
        self.hass = hass
        self._entry_id = entry_id
        self._runtime = runtime
        self._attr_unique_id = f"{entry_id}_calendar"
        self._attr_name = "Calendar"
        self._event: Optional[CalendarEvent] = None

        self._attr_device_info = device_info_for(entry_id, runtime.data.name)

    # ---------- Core Calendar API ----------

    @property
    def event(self) -> CalendarEvent | None:
        """Return the current or next event for HA to show as entity state."""
        return self._event

    async def async_added_to_hass(self) -> None:
        await super().async_added_to_hass()
        self.async_on_remove(
            self._runtime.async_add_listener(
                lambda: self.async_schedule_update_ha_state(True)
            )
        )

    async def async_update(self) -> None:
        """Set .event to the current ongoing or next upcoming event."""
        tz = dt_util.get_time_zone(self.hass.config.time_zone)
        now = dt_util.now(tz)
        start = now - dt.timedelta(days=1)
        end = now + dt.timedelta(days=_LOOKAHEAD_DAYS_FOR_EVENT)
        events = await self.async_get_events(self.hass, start, end)

        current: Optional[CalendarEvent] = None
        upcoming: Optional[CalendarEvent] = None
        for ev in events:
            ev_start = _as_local_datetime(ev.start, tz)
            ev_end = _as_local_datetime(ev.end, tz)
            if ev_start <= now < ev_end and current is None:
                current = ev
            if ev_start >= now and upcoming is None:
                upcoming = ev
            if current and upcoming:
                break

        self._event = current or upcoming

    async def async_get_events(
        self,
        hass: HomeAssistant,
        start_date: dt.datetime,
        end_date: dt.datetime,
    ) -> List[CalendarEvent]:
        """Return events between start_date (inclusive) and end_date (exclusive)."""
        tz = dt_util.get_time_zone(hass.config.time_zone)

        start_date = start_date.astimezone(tz) if start_date.tzinfo else start_date.replace(tzinfo=tz)
        end_date = end_date.astimezone(tz) if end_date.tzinfo else end_date.replace(tzinfo=tz)

        data = self._runtime.data
        calc = data.calculate(today_local(hass))

        spans: list[tuple[str, dt.date, dt.date, str]] = []
        for interval in data.intervals:
            spans.append(
                (SUMMARY_PERIOD, interval.start_date, interval.effective_end, "Recorded period days")
            )
        for first, last in period_ranges(calc.predicted_future_days):
            spans.append((SUMMARY_PREDICTED_PERIOD, first, last, "Predicted period days"))
        for first, last in period_ranges(calc.fertile_window):
            spans.append((SUMMARY_FERTILE_WINDOW, first, last, "Predicted fertile days"))
        for day in calc.ovulation_day_estimates:
            spans.append((SUMMARY_OVULATION, day, day, "Estimated ovulation day"))

        events: List[CalendarEvent] = []
        for summary, first, last, description in spans:
            ev_start = _as_local_datetime(first, tz)
            ev_end = _end_exclusive(last, tz)
            if ev_start < end_date and ev_end > start_date:
                events.append(
                    CalendarEvent(
                        summary=summary,
                        start=ev_start,
                        end=ev_end,
                        description=description,
                    )
                )

        # Sort chronologically for stability
        events.sort(key=lambda ev: (_as_local_datetime(ev.start, tz), ev.summary))
        return events


# ---------- Platform setup ----------

async def async_setup_entry(hass: HomeAssistant, entry, async_add_entities):
    """Set up the calendar entity for an entry."""
    runtime = hass.data[DOMAIN][entry.entry_id]
    async_add_entities([CycleTrackerCalendar(hass, entry.entry_id, runtime)], True)
