"""
free_time.py
------------
Derives the open (schedulable) intervals of a day.

Responsibilities:
  1. Place the waking day on the absolute minute axis (wake-up -> bedtime),
     shaving the downtime-protection margin off both edges.
  2. Turn fixed events and reserved meal windows into obstacles.  Locked
     obstacles are padded with the between-blocks buffer, work events also
     with the commute time.  Unlocked events are obstacles without padding.
     A meal window that overlaps any fixed event is not reserved.
  3. Subtract every obstacle from the waking window and return a sorted,
     merged list of OpenInterval, each tagged with the obstacle on either side.
  4. `carve` removes a freshly placed block (plus buffer) from such a list.

Deterministic logic only, no I/O.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from typing import List, Optional, Tuple

from models import DayDescription, ScheduledBlock
from time_utils import MINUTES_PER_DAY, Interval, duration

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OpenInterval:
    start: int
    end: int
    left_neighbor: Optional[str] = None    # id of the obstacle/block before, None = day edge
    right_neighbor: Optional[str] = None

    @property
    def duration(self) -> int:
        return self.end - self.start

    @property
    def interval(self) -> Interval:
        return Interval(self.start, self.end)


@dataclass(frozen=True)
class Obstacle:
    block: ScheduledBlock
    interval: Interval        # what the block occupies
    reserved: Interval        # what it removes from the free set (incl. padding)


def slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-") or "item"


def _checked(start: int, end: int) -> Tuple[int, int]:
    """An interval ending before it starts is a programming error.
    Loud under a normal interpreter, clamped (with a warning) under `python -O`."""
    assert end >= start, f"open interval ends before it starts: {start}-{end}"
    if end < start:
        logger.warning("clamping inverted interval %s-%s", start, end)
        end = start
    return start, end


# ── day window ────────────────────────────────────────────────────────────────

def waking_window(day: DayDescription) -> Interval:
    """Wake-up -> bedtime on the absolute axis (bedtime may be past midnight)."""
    wake = day.sleep.end_minute
    return Interval(wake, wake + duration(wake, day.sleep.start_minute))


def place_on_day(start: int, end: int, window: Interval) -> Interval:
    """Absolute interval for a wall-clock range on the day of `window`.
    A range that starts before wake-up but runs into the waking day keeps
    today's position instead of moving to the next night."""
    iv = Interval.from_wall_clock(start, end, day_start=window.start)
    earlier = Interval(iv.start - MINUTES_PER_DAY, iv.end - MINUTES_PER_DAY)
    if not iv.overlaps(window) and earlier.overlaps(window):
        return earlier
    return iv


def protected_window(day: DayDescription) -> Interval:
    window = waking_window(day)
    margin = day.constraints.protect_downtime_min
    return Interval(window.start + margin, window.end - margin)


# ── obstacles ─────────────────────────────────────────────────────────────────

def obstacles(day: DayDescription) -> List[Obstacle]:
    """Fixed events and reserved meal windows as blocks + the time they take away."""
    window = waking_window(day)
    constraints = day.constraints
    result: List[Obstacle] = []

    for event in day.fixed_events:
        iv = place_on_day(event.start_minute, event.end_minute, window)
        pad = constraints.buffers_between_blocks_min if event.locked else 0
        if event.category == "work" and constraints.commute_time_min:
            pad += constraints.commute_time_min
        block = ScheduledBlock.span(
            iv.start, iv.end,
            id=f"fixed-{event.start.replace(':', '').zfill(4)}-{slug(event.title)}",
            title=event.title,
            kind=event.category,
            locked=event.locked,
            notes=event.location or "",
        )
        result.append(Obstacle(block=block, interval=iv, reserved=iv.expand(pad, pad)))

    for meal in constraints.meal_windows:
        iv = place_on_day(meal.start_minute, meal.end_minute, window)
        clash = next((o for o in result if iv.overlaps(o.interval)), None)
        if clash is not None:
            logger.debug("meal window %s not reserved: overlaps %s", iv.label(), clash.block.id)
            continue
        pad = constraints.buffers_between_blocks_min
        block = ScheduledBlock.span(
            iv.start, iv.end,
            id=f"meal-{meal.start.replace(':', '').zfill(4)}-{meal.type}",
            title=meal.type.capitalize(),
            kind="meal",
            locked=True,
        )
        result.append(Obstacle(block=block, interval=iv, reserved=iv.expand(pad, pad)))

    result.sort(key=lambda o: (o.interval.start, o.block.id))
    return result


# ── interval arithmetic ───────────────────────────────────────────────────────

def subtract(
    free: List[OpenInterval],
    blocked: Interval,
    blocker_id: Optional[str],
) -> List[OpenInterval]:
    """Remove `blocked` from every interval in `free`, tagging the new edges."""
    result: List[OpenInterval] = []
    for iv in free:
        if blocked.end <= iv.start or blocked.start >= iv.end:    # no overlap
            result.append(iv)
            continue
        if iv.start < blocked.start:                               # left portion
            s, e = _checked(iv.start, blocked.start)
            result.append(replace(iv, start=s, end=e, right_neighbor=blocker_id))
        if blocked.end < iv.end:                                   # right portion
            s, e = _checked(blocked.end, iv.end)
            result.append(replace(iv, start=s, end=e, left_neighbor=blocker_id))
    return result


def merge_intervals(intervals: List[OpenInterval]) -> List[OpenInterval]:
    """Sort, drop empty pieces and fuse intervals that touch or overlap."""
    merged: List[OpenInterval] = []
    for iv in sorted(intervals, key=lambda i: (i.start, i.end)):
        if iv.duration <= 0:
            continue
        if merged and iv.start <= merged[-1].end:
            last = merged[-1]
            if iv.end > last.end:
                merged[-1] = replace(last, end=iv.end, right_neighbor=iv.right_neighbor)
            continue
        merged.append(iv)
    return merged


def carve(
    free: List[OpenInterval],
    placed: Interval,
    buffer: int,
    block_id: str,
) -> List[OpenInterval]:
    """Take a placed block and its surrounding buffer out of the free set."""
    return merge_intervals(subtract(free, placed.expand(buffer, buffer), block_id))


def build_open_intervals(day: DayDescription) -> List[OpenInterval]:
    """Sorted, non-overlapping open intervals of the day."""
    window = protected_window(day)
    free = [OpenInterval(window.start, window.end)]
    for obstacle in obstacles(day):
        free = subtract(free, obstacle.reserved, obstacle.block.id)
    free = merge_intervals(free)
    logger.debug(
        "open intervals for %s: %s",
        day.date, ", ".join(iv.interval.label() for iv in free) or "none",
    )
    return free


def total_free_minutes(intervals: List[OpenInterval]) -> int:
    return sum(iv.duration for iv in intervals)
