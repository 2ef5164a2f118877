"""Cycle statistics and predictions derived from recorded intervals.

Every function here is pure. Functions that depend on the current date take
``today`` as an argument instead of reading the clock.
"""

from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass
from statistics import mean
from typing import Any, Dict, Iterable, Sequence

from .intervals import CycleInterval, sorted_intervals

DEFAULT_CYCLE_LENGTH = 28
DEFAULT_PERIOD_LENGTH = 5

# Gaps between starts outside this range are treated as entry mistakes.
MIN_PLAUSIBLE_CYCLE = 21
MAX_PLAUSIBLE_CYCLE = 45

LUTEAL_PHASE_DAYS = 14
FERTILE_DAYS_BEFORE_OVULATION = 5
FERTILE_DAYS_AFTER_OVULATION = 1

PREDICTED_CYCLES_AHEAD = 6
OVULATION_CYCLES_BACK = 6
OVULATION_CYCLES_AHEAD = 12


@dataclass(frozen=True)
class CycleCalculations:
    average_cycle_length: int
    average_period_length: int
    predicted_next_cycle_start: dt.date | None
    predicted_future_days: frozenset[dt.date]
    ovulation_day_estimates: frozenset[dt.date]
    fertile_window: frozenset[dt.date]
    current_cycle_day: int | None
    days_until_next_period: int | None

    def as_dict(self) -> Dict[str, Any]:
        def _days(days: Iterable[dt.date]) -> list[str]:
            return [d.isoformat() for d in sorted(days)]

        return {
            "average_cycle_length": self.average_cycle_length,
            "average_period_length": self.average_period_length,
            "predicted_next_cycle_start": (
                self.predicted_next_cycle_start.isoformat()
                if self.predicted_next_cycle_start
                else None
            ),
            "predicted_future_days": _days(self.predicted_future_days),
            "ovulation_day_estimates": _days(self.ovulation_day_estimates),
            "fertile_window": _days(self.fertile_window),
            "current_cycle_day": self.current_cycle_day,
            "days_until_next_period": self.days_until_next_period,
        }


def round_half_up(value: float) -> int:
    """Round to the nearest integer, ``x.5`` always goes up."""
    return int(math.floor(value + 0.5))


def _most_recent_start(intervals: Sequence[CycleInterval]) -> dt.date | None:
    if not intervals:
        return None
    return max(i.start_date for i in intervals)


# ---------------- Averages ----------------

def average_cycle_length(
    intervals: Sequence[CycleInterval], fallback: int = DEFAULT_CYCLE_LENGTH
) -> int:
    """Mean gap between consecutive starts, ignoring implausible gaps."""
    if len(intervals) < 2:
        return fallback

    ordered = sorted_intervals(intervals)
    gaps = [
        (cur.start_date - prev.start_date).days
        for prev, cur in zip(ordered, ordered[1:])
    ]
    plausible = [g for g in gaps if MIN_PLAUSIBLE_CYCLE <= g <= MAX_PLAUSIBLE_CYCLE]
    if not plausible:
        return DEFAULT_CYCLE_LENGTH
    return round_half_up(mean(plausible))


def average_period_length(
    intervals: Sequence[CycleInterval], fallback: int = DEFAULT_PERIOD_LENGTH
) -> int:
    """Mean inclusive length of intervals that have an explicit end date."""
    lengths = [i.length for i in intervals if i.end_date is not None]
    if not lengths:
        return fallback
    return round_half_up(mean(lengths))


# ---------------- Predictions ----------------

def predict_next_cycle_start(
    intervals: Sequence[CycleInterval], avg_cycle_length: int, today: dt.date
) -> dt.date | None:
    """First projected start, counted from the latest start, on or after today."""
    last_start = _most_recent_start(intervals)
    if last_start is None:
        return None

    step = dt.timedelta(days=avg_cycle_length)
    next_start = last_start + step
    while next_start < today:
        next_start += step
    return next_start


def predicted_future_days(
    intervals: Sequence[CycleInterval],
    avg_cycle_length: int,
    avg_period_length: int,
    horizon_cycles: int = PREDICTED_CYCLES_AHEAD,
) -> frozenset[dt.date]:
    last_start = _most_recent_start(intervals)
    if last_start is None:
        return frozenset()

    days: set[dt.date] = set()
    for cycle in range(1, horizon_cycles + 1):
        cycle_start = last_start + dt.timedelta(days=avg_cycle_length * cycle)
        days.update(cycle_start + dt.timedelta(days=n) for n in range(avg_period_length))
    return frozenset(days)


def ovulation_day_estimates(
    intervals: Sequence[CycleInterval],
    avg_cycle_length: int,
    past_cycles: int = OVULATION_CYCLES_BACK,
    future_cycles: int = OVULATION_CYCLES_AHEAD,
) -> frozenset[dt.date]:
    """One ovulation day per cycle, a fixed luteal phase before the next start."""
    last_start = _most_recent_start(intervals)
    if last_start is None:
        return frozenset()

    offset = dt.timedelta(days=avg_cycle_length - LUTEAL_PHASE_DAYS)
    return frozenset(
        last_start + dt.timedelta(days=avg_cycle_length * cycle) + offset
        for cycle in range(-past_cycles, future_cycles + 1)
    )


def fertile_window(ovulation_dates: Iterable[dt.date]) -> frozenset[dt.date]:
    days: set[dt.date] = set()
    for ovulation in ovulation_dates:
        for n in range(1, FERTILE_DAYS_BEFORE_OVULATION + 1):
            days.add(ovulation - dt.timedelta(days=n))
        for n in range(1, FERTILE_DAYS_AFTER_OVULATION + 1):
            days.add(ovulation + dt.timedelta(days=n))
    return frozenset(days)


def current_cycle_day(
    intervals: Sequence[CycleInterval], avg_cycle_length: int, today: dt.date
) -> int | None:
    last_start = _most_recent_start(intervals)
    if last_start is None:
        return None

    days_since = (today - last_start).days
    if days_since > avg_cycle_length:
        # whole cycles have passed without a new recorded start
        days_since %= avg_cycle_length
    cycle_day = days_since + 1
    if 0 < cycle_day <= avg_cycle_length:
        return cycle_day
    return None


def days_until_next_period(predicted_start: dt.date | None, today: dt.date) -> int | None:
    if predicted_start is None:
        return None
    return (predicted_start - today).days


# ---------------- Aggregate ----------------

def get_all_calculations(
    intervals: Sequence[CycleInterval], settings: Any, today: dt.date
) -> CycleCalculations:
    """Compute every derived value for the given history.

    ``settings`` needs ``average_cycle_length`` and ``average_period_length``,
    which are used when the history is too short to measure them.
    """
    avg_cycle = average_cycle_length(intervals, fallback=settings.average_cycle_length)
    avg_period = average_period_length(intervals, fallback=settings.average_period_length)

    next_start = predict_next_cycle_start(intervals, avg_cycle, today)
    ovulations = ovulation_day_estimates(intervals, avg_cycle)

    return CycleCalculations(
        average_cycle_length=avg_cycle,
        average_period_length=avg_period,
        predicted_next_cycle_start=next_start,
        predicted_future_days=predicted_future_days(intervals, avg_cycle, avg_period),
        ovulation_day_estimates=ovulations,
        fertile_window=fertile_window(ovulations),
        current_cycle_day=current_cycle_day(intervals, avg_cycle, today),
        days_until_next_period=days_until_next_period(next_start, today),
    )
