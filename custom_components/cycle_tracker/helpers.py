from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable

from homeassistant.core import HomeAssistant
from homeassistant.util import dt as dt_util

from .calculations import CycleCalculations, get_all_calculations
from .const import (
    DEFAULT_AVERAGE_CYCLE_LENGTH,
    DEFAULT_AVERAGE_PERIOD_LENGTH,
    DEFAULT_DAILY_REMINDER_TIME,
    DEFAULT_DAYS_BEFORE_PERIOD,
    DEFAULT_REMINDERS_ENABLED,
    MAX_CYCLE_LENGTH,
    MAX_DAYS_BEFORE_PERIOD,
    MAX_PERIOD_LENGTH,
    MIN_CYCLE_LENGTH,
    MIN_DAYS_BEFORE_PERIOD,
    MIN_PERIOD_LENGTH,
)
from .intervals import CycleInterval, find_containing, sorted_intervals, toggle_day

# ---------------- Utilities ----------------

def _get_local_tz(hass: HomeAssistant) -> dt.tzinfo:
    """Return Home Assistant's configured tzinfo."""
    return dt_util.get_time_zone(hass.config.time_zone)

def today_local(hass: HomeAssistant) -> dt.date:
    """Return today's calendar date in Home Assistant's configured timezone."""
    tz = _get_local_tz(hass)
    return dt_util.now(tz).date()

def parse_time(s: str | None) -> dt.time | None:
    if not s:
        return None
    try:
        h, m, sec = s.split(":")
        return dt.time(int(h), int(m), int(sec))
    except ValueError:
        return None

def coerce_date(s: str | dt.date | dt.datetime) -> dt.date:
    if isinstance(s, dt.datetime):
        return s.date()
    if isinstance(s, dt.date):
        return s
    return dt.date.fromisoformat(str(s))

def _clamp(value: Any, low: int, high: int, default: int) -> int:
    try:
        return max(low, min(high, int(value)))
    except (TypeError, ValueError):
        return default

def period_ranges(days: Iterable[dt.date]) -> list[tuple[dt.date, dt.date]]:
    """Group days into inclusive (first, last) runs of consecutive days."""
    runs: list[tuple[dt.date, dt.date]] = []
    for day in sorted(set(days)):
        if runs and runs[-1][1] + dt.timedelta(days=1) == day:
            runs[-1] = (runs[-1][0], day)
        else:
            runs.append((day, day))
    return runs

# ---------------- Data Models ----------------

@dataclass
class CycleSettings:
    average_cycle_length: int = DEFAULT_AVERAGE_CYCLE_LENGTH
    average_period_length: int = DEFAULT_AVERAGE_PERIOD_LENGTH
    reminders_enabled: bool = DEFAULT_REMINDERS_ENABLED
    days_before_period: int = DEFAULT_DAYS_BEFORE_PERIOD

    def as_dict(self) -> Dict[str, Any]:
        return {
            "average_cycle_length": self.average_cycle_length,
            "average_period_length": self.average_period_length,
            "reminders_enabled": self.reminders_enabled,
            "days_before_period": self.days_before_period,
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "CycleSettings":
        return CycleSettings(
            average_cycle_length=_clamp(
                d.get("average_cycle_length", DEFAULT_AVERAGE_CYCLE_LENGTH),
                MIN_CYCLE_LENGTH,
                MAX_CYCLE_LENGTH,
                DEFAULT_AVERAGE_CYCLE_LENGTH,
            ),
            average_period_length=_clamp(
                d.get("average_period_length", DEFAULT_AVERAGE_PERIOD_LENGTH),
                MIN_PERIOD_LENGTH,
                MAX_PERIOD_LENGTH,
                DEFAULT_AVERAGE_PERIOD_LENGTH,
            ),
            reminders_enabled=bool(d.get("reminders_enabled", DEFAULT_REMINDERS_ENABLED)),
            days_before_period=_clamp(
                d.get("days_before_period", DEFAULT_DAYS_BEFORE_PERIOD),
                MIN_DAYS_BEFORE_PERIOD,
                MAX_DAYS_BEFORE_PERIOD,
                DEFAULT_DAYS_BEFORE_PERIOD,
            ),
        )


@dataclass
class TrackerData:
    name: str
    settings: CycleSettings = field(default_factory=CycleSettings)
    intervals: list[CycleInterval] = field(default_factory=list)
    notify_services: list[str] = field(default_factory=list)
    daily_reminder_time: str = DEFAULT_DAILY_REMINDER_TIME

    last_notified_date: str | None = None  # ISO date string

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "settings": self.settings.as_dict(),
            "intervals": [i.as_dict() for i in self.intervals],
            "notify_services": self.notify_services,
            "daily_reminder_time": self.daily_reminder_time,
            "last_notified_date": self.last_notified_date,
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "TrackerData":
        return TrackerData(
            name=d["name"],
            settings=CycleSettings.from_dict(d.get("settings", {})),
            intervals=sorted_intervals(
                CycleInterval.from_dict(x) for x in d.get("intervals", [])
            ),
            notify_services=list(d.get("notify_services", [])),
            daily_reminder_time=d.get("daily_reminder_time", DEFAULT_DAILY_REMINDER_TIME),
            last_notified_date=d.get("last_notified_date"),
        )

    # ---- Mutators used by WS/services ----
    def toggle_day(self, day: dt.date) -> list[CycleInterval]:
        self.intervals = toggle_day(self.intervals, day)
        return self.intervals

    def update_settings(self, **changes: Any) -> CycleSettings:
        merged = self.settings.as_dict()
        merged.update({k: v for k, v in changes.items() if v is not None})
        self.settings = CycleSettings.from_dict(merged)
        return self.settings

    # ---- Read side ----
    def is_recorded(self, day: dt.date) -> bool:
        return find_containing(self.intervals, day) is not None

    @property
    def last_interval(self) -> CycleInterval | None:
        return self.intervals[-1] if self.intervals else None

    def calculate(self, today: dt.date) -> CycleCalculations:
        return get_all_calculations(self.intervals, self.settings, today)
