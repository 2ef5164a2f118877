from __future__ import annotations

import datetime as dt
import uuid
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable

ONE_DAY = dt.timedelta(days=1)


# ---------------- Data Model ----------------

@dataclass(frozen=True)
class CycleInterval:
    """One recorded cycle: a run of consecutive days.

    ``end_date`` of ``None`` is a single day that has not been extended yet and
    is treated exactly like ``end_date == start_date``.
    """

    id: str
    start_date: dt.date
    end_date: dt.date | None = None

    @property
    def effective_end(self) -> dt.date:
        return self.end_date or self.start_date

    @property
    def is_single_day(self) -> bool:
        return self.effective_end == self.start_date

    @property
    def length(self) -> int:
        return (self.effective_end - self.start_date).days + 1

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat() if self.end_date else None,
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "CycleInterval":
        return CycleInterval(
            id=str(d["id"]),
            start_date=dt.date.fromisoformat(str(d["start_date"])),
            end_date=dt.date.fromisoformat(str(d["end_date"])) if d.get("end_date") else None,
        )


def new_interval_id() -> str:
    return uuid.uuid4().hex


# ---------------- Read helpers ----------------

def contains(interval: CycleInterval, day: dt.date) -> bool:
    return interval.start_date <= day <= interval.effective_end


def sorted_intervals(intervals: Iterable[CycleInterval]) -> list[CycleInterval]:
    return sorted(intervals, key=lambda i: i.start_date)


# ---------------- Search predicates ----------------

def find_containing(intervals: Iterable[CycleInterval], day: dt.date) -> CycleInterval | None:
    for interval in intervals:
        if contains(interval, day):
            return interval
    return None


def find_ending_before(intervals: Iterable[CycleInterval], day: dt.date) -> CycleInterval | None:
    """Interval whose last day is the day immediately preceding ``day``."""
    for interval in intervals:
        if interval.effective_end == day - ONE_DAY:
            return interval
    return None


def find_starting_after(intervals: Iterable[CycleInterval], day: dt.date) -> CycleInterval | None:
    """Interval whose first day is the day immediately following ``day``."""
    for interval in intervals:
        if interval.start_date == day + ONE_DAY:
            return interval
    return None


# ---------------- Toggle ----------------

def _without(intervals: list[CycleInterval], *drop: CycleInterval) -> list[CycleInterval]:
    return [i for i in intervals if all(i is not d for d in drop)]


def _remove_day(intervals: list[CycleInterval], hit: CycleInterval, day: dt.date) -> list[CycleInterval]:
    if hit.is_single_day:
        return _without(intervals, hit)
    if day == hit.start_date:
        return [replace(i, start_date=day + ONE_DAY) if i is hit else i for i in intervals]
    if day == hit.effective_end:
        return [replace(i, end_date=day - ONE_DAY) if i is hit else i for i in intervals]
    # Strictly inside: the whole interval goes, it is not split in two.
    return _without(intervals, hit)


def _add_day(intervals: list[CycleInterval], day: dt.date) -> list[CycleInterval]:
    before = find_ending_before(intervals, day)
    after = find_starting_after(intervals, day)

    if before is not None and after is not None:
        merged = CycleInterval(
            id=before.id,
            start_date=before.start_date,
            end_date=after.effective_end,
        )
        return sorted_intervals(_without(intervals, before, after) + [merged])
    if before is not None:
        return [replace(i, end_date=day) if i is before else i for i in intervals]
    if after is not None:
        return [
            replace(i, start_date=day, end_date=i.effective_end) if i is after else i
            for i in intervals
        ]
    created = CycleInterval(id=new_interval_id(), start_date=day, end_date=day)
    return sorted_intervals(intervals + [created])


def toggle_day(intervals: Iterable[CycleInterval], day: dt.date) -> list[CycleInterval]:
    """Return a new interval list with ``day`` switched on or off.

    Off: a single-day interval is removed, an edge day shrinks its interval,
    and a day strictly inside a longer interval removes that whole interval.
    On: the day bridges, extends or starts an interval so that no two
    intervals are ever left adjacent. The input is not modified.
    """
    current = sorted_intervals(intervals)
    hit = find_containing(current, day)
    if hit is not None:
        return _remove_day(current, hit, day)
    return _add_day(current, day)
