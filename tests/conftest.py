from __future__ import annotations

import datetime as dt
import os
from pathlib import Path

import pytest
from pytest_homeassistant_custom_component.common import MockConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.const import CONF_NAME

from custom_components.cycle_tracker.intervals import CycleInterval

# ----- constants -----
INTEGRATION_DOMAIN = "cycle_tracker"

# repo root:  <repo>/tests/conftest.py  -> parents[1] = <repo>
REPO_ROOT = Path(__file__).resolve().parents[1]

os.environ.setdefault(
    "PYTEST_HOMEASSISTANT_CUSTOM_COMPONENTS",
    str(REPO_ROOT / "custom_components"),
)


def d(s: str) -> dt.date:
    return dt.date.fromisoformat(s)


def iv(start: str, end: str | None = None, id_: str | None = None) -> CycleInterval:
    """Shorthand for building an interval in tests."""
    return CycleInterval(id=id_ or f"iv-{start}", start_date=d(start), end_date=d(end) if end else None)


def spans(intervals) -> list[tuple[str, str]]:
    """Intervals as comparable (start, effective end) ISO pairs."""
    return [(i.start_date.isoformat(), i.effective_end.isoformat()) for i in intervals]


def interval_days(interval: CycleInterval) -> list[dt.date]:
    """Every day of the interval, both ends included."""
    return [
        interval.start_date + dt.timedelta(days=n) for n in range(interval.length)
    ]


def is_normalized(intervals) -> bool:
    """True when sorted, non-overlapping and with no two adjacent intervals."""
    items = list(intervals)
    for prev, cur in zip(items, items[1:]):
        # a gap of at least one untracked day is required between intervals
        if cur.start_date <= prev.effective_end + dt.timedelta(days=1):
            return False
    return all(i.effective_end >= i.start_date for i in items)


# Standard entry + setup fixtures for integration tests
@pytest.fixture
def config_entry(hass: HomeAssistant, enable_custom_integrations) -> MockConfigEntry:
    entry = MockConfigEntry(
        domain=INTEGRATION_DOMAIN,
        data={CONF_NAME: "Cycle Tracker"},
        options={},
        title="Cycle Tracker",
    )
    entry.add_to_hass(hass)
    return entry


@pytest.fixture
async def setup_integration(hass: HomeAssistant, config_entry: MockConfigEntry):
    assert await hass.config_entries.async_setup(config_entry.entry_id)
    await hass.async_block_till_done()
    return config_entry
