"""
allocator.py
------------
Greedy placement of today's candidates into the open intervals of the day.

Phases (one Allocator instance runs them exactly once):

  INIT              ineligible candidates are reported, the rest partitioned
  PLACING_FIXED     fixed-time items become blocks at their own time;
                    overlapping a fixed event / meal / sleep -> CONFLICT
  PLACING_GYM       gym sessions (warm-up + workout + cool-down) inside the
                    gym window, ending at least `bedtime_buffer` before bed;
                    shortened down to `minimum_duration` if needed, otherwise
                    WINDOW_UNAVAILABLE
  PLACING_FLEXIBLE  repeatedly commit the best scoring (item, interval) pair;
                    split or shrink where the item allows it
  REPAIR            one extra pass over deferred items against the intervals
                    left after all placements, under the same rules;
                    whatever is left becomes NO_CAPACITY
  DONE

Every commit removes or shrinks at least one open interval, so the loop is
bounded by O(items x intervals) iterations.  The working set of open
intervals belongs to the instance and is never shared.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple

from free_time import (
    Obstacle,
    OpenInterval,
    build_open_intervals,
    carve,
    obstacles,
    place_on_day,
    waking_window,
)
from models import (
    CandidateItem,
    DayDescription,
    GymSettings,
    ScheduledBlock,
    UnscheduledItem,
    UnscheduledReason,
)
from scorer import DEFAULT_WEIGHTS, ScoringContext, ScoringWeights, anchored_start, score
from time_utils import MINUTES_PER_DAY, Interval, to_time_string

logger = logging.getLogger(__name__)

# gym start windows, minute-of-day [start, end)
GYM_WINDOWS: Dict[str, Tuple[int, int]] = {
    "morning":    (6 * 60, 10 * 60),
    "after-work": (17 * 60, 21 * 60),
    "evening":    (18 * 60, 22 * 60),
}


class AllocatorState(str, Enum):
    INIT = "INIT"
    PLACING_FIXED = "PLACING_FIXED"
    PLACING_GYM = "PLACING_GYM"
    PLACING_FLEXIBLE = "PLACING_FLEXIBLE"
    REPAIR = "REPAIR"
    DONE = "DONE"


@dataclass(frozen=True)
class Adjustment:
    """A placement that did not go in as one full-length block."""
    source_id: str
    title: str
    kind: str                  # "shrunk" | "split"
    planned: int               # minutes asked for
    placed: int                # minutes actually placed
    parts: int = 1


@dataclass
class AllocationOutcome:
    window: Interval
    fixed_blocks: List[ScheduledBlock]
    placed_blocks: List[ScheduledBlock]
    unscheduled: List[UnscheduledItem]
    open_intervals: List[OpenInterval]
    adjustments: List[Adjustment] = field(default_factory=list)


class Allocator:
    def __init__(
        self,
        day: DayDescription,
        candidates: Iterable[CandidateItem],
        gym: Optional[GymSettings] = None,
        weights: ScoringWeights = DEFAULT_WEIGHTS,
    ):
        self.day = day
        self.candidates = list(candidates)
        self.gym = gym or GymSettings()
        self.weights = weights
        self.state = AllocatorState.INIT

        self.buffer = day.constraints.buffers_between_blocks_min
        self.window = waking_window(day)
        self._obstacles: List[Obstacle] = obstacles(day)
        self._free: List[OpenInterval] = build_open_intervals(day)

        self._placed: List[ScheduledBlock] = []
        self._unscheduled: List[UnscheduledItem] = []
        self._remaining: Dict[str, int] = {}
        self._parts: Dict[str, int] = {}
        self._shrunk: Set[str] = set()
        self._deferred: List[CandidateItem] = []
        self._adjustments: List[Adjustment] = []

    # ── driver ───────────────────────────────────────────────────────

    def run(self) -> AllocationOutcome:
        if self.state is not AllocatorState.INIT:
            raise RuntimeError("an Allocator instance can only run once")

        fixed, gym, flexible = self._partition()

        self._enter(AllocatorState.PLACING_FIXED)
        self._place_fixed(fixed)

        self._enter(AllocatorState.PLACING_GYM)
        for item in gym:
            self._place_gym(item)

        self._enter(AllocatorState.PLACING_FLEXIBLE)
        self._place_flexible(flexible)

        self._enter(AllocatorState.REPAIR)
        self._repair()

        self._enter(AllocatorState.DONE)
        self._record_splits()
        return AllocationOutcome(
            window=self.window,
            fixed_blocks=[o.block for o in self._obstacles],
            placed_blocks=list(self._placed),
            unscheduled=list(self._unscheduled),
            open_intervals=list(self._free),
            adjustments=list(self._adjustments),
        )

    def _enter(self, state: AllocatorState) -> None:
        logger.debug("allocator %s -> %s", self.state.value, state.value)
        self.state = state

    def _partition(self) -> Tuple[List[CandidateItem], List[CandidateItem], List[CandidateItem]]:
        fixed: List[CandidateItem] = []
        gym: List[CandidateItem] = []
        flexible: List[CandidateItem] = []
        for item in self.candidates:
            if not item.eligible:
                self._reject(item, UnscheduledReason.INELIGIBLE, "cooldown or dependencies not satisfied")
            elif item.fixed_start is not None:
                fixed.append(item)
            elif item.kind == "gym":
                gym.append(item)
            else:
                flexible.append(item)
            self._remaining[item.id] = item.duration
        return fixed, sorted(gym, key=lambda i: i.id), flexible

    # ── bookkeeping ──────────────────────────────────────────────────

    def _reject(
        self,
        item: CandidateItem,
        reason: UnscheduledReason,
        detail: str,
        remaining: Optional[int] = None,
    ) -> None:
        logger.debug("unscheduled %s (%s): %s", item.id, reason.value, detail)
        self._unscheduled.append(UnscheduledItem(
            title=item.title,
            reason=reason,
            source_id=item.id,
            priority=item.priority,
            remaining_minutes=remaining,
            detail=detail,
        ))

    def _commit(
        self,
        item: CandidateItem,
        placed: Interval,
        locked: bool = False,
        notes: str = "",
    ) -> ScheduledBlock:
        part = self._parts.get(item.id, 0) + 1
        self._parts[item.id] = part
        block_id = f"{item.kind}-{item.id}" if part == 1 else f"{item.kind}-{item.id}-{part}"
        block = ScheduledBlock.span(
            placed.start, placed.end,
            id=block_id,
            title=item.title,
            kind=item.kind,
            source_id=item.id,
            locked=locked,
            energy_level=item.energy_level,
            original_duration=item.duration,
            notes=notes,
        )
        self._placed.append(block)
        self._remaining[item.id] = max(0, self._remaining[item.id] - placed.duration)
        self._free = carve(self._free, placed, self.buffer, block_id)
        logger.debug("placed %s at %s (%s)", block_id, placed.label(), self.state.value)
        return block

    # ── PLACING_FIXED ────────────────────────────────────────────────

    def _place_fixed(self, items: List[CandidateItem]) -> None:
        taken: List[Tuple[Interval, str]] = [(o.interval, o.block.title) for o in self._obstacles]

        def wanted_of(item: CandidateItem) -> Interval:
            start = item.fixed_start
            return place_on_day(start, (start + item.duration) % MINUTES_PER_DAY, self.window)

        for item in sorted(items, key=lambda i: (wanted_of(i).start, i.id)):
            wanted = wanted_of(item)
            if not self.window.contains(wanted):
                self._reject(item, UnscheduledReason.CONFLICT,
                             f"{wanted.label()} overlaps sleep")
                continue
            clash = next((title for iv, title in taken if iv.overlaps(wanted)), None)
            if clash is not None:
                self._reject(item, UnscheduledReason.CONFLICT,
                             f"{wanted.label()} overlaps {clash}")
                continue
            self._commit(item, wanted, locked=True)
            taken.append((wanted, item.title))

    # ── PLACING_GYM ──────────────────────────────────────────────────

    def _place_gym(self, item: CandidateItem) -> None:
        settings = self.gym
        pad = settings.padding
        full = item.duration + pad
        shortest = item.min_viable_duration + pad
        latest_end = self.window.end - settings.bedtime_buffer
        ws, we = GYM_WINDOWS[settings.preferred_window]
        occurrences = [(ws, we), (ws + MINUTES_PER_DAY, we + MINUTES_PER_DAY)]

        best: Optional[Tuple[int, int]] = None     # (start, length)
        for iv in self._free:
            limit = min(iv.end, latest_end)
            for gs, ge in occurrences:
                s = max(iv.start, gs)
                if s >= ge or limit - s < shortest:
                    continue
                length = min(full, limit - s)
                if best is None or length > best[1]:
                    best = (s, length)
            if best is not None and best[1] == full:
                break

        if best is None:
            self._reject(
                item, UnscheduledReason.WINDOW_UNAVAILABLE,
                f"no {shortest}+ min slot starting {to_time_string(ws)}-{to_time_string(we)} "
                f"and ending by {to_time_string(latest_end)}",
                remaining=item.duration,
            )
            return

        start, length = best
        workout = length - pad
        notes = f"includes {settings.warmup_duration} min warm-up and {settings.cooldown_duration} min cool-down"
        if workout < item.duration:
            notes += f"; shortened from {item.duration} to {workout} min"
            self._adjustments.append(Adjustment(item.id, item.title, "shrunk", item.duration, workout))
        self._commit(item, Interval(start, start + length), notes=notes)
        self._remaining[item.id] = 0

    # ── PLACING_FLEXIBLE ─────────────────────────────────────────────

    def _length(self, item: CandidateItem, iv: OpenInterval) -> Optional[int]:
        """Minutes this item would take in `iv`, or None if it cannot go there."""
        need = self._remaining[item.id]
        if need <= 0:
            return None
        if iv.duration >= need:
            return need
        if item.splittable:
            if iv.duration >= item.min_chunk:
                return min(item.chunking.chunk_size, iv.duration)
            return None
        if (
            item.flexibility == "semi-flexible"
            and item.id not in self._shrunk
            and iv.duration >= item.min_viable_duration
        ):
            return iv.duration
        return None

    def _best_pair(
        self,
        items: List[CandidateItem],
    ) -> Tuple[Optional[Tuple[CandidateItem, OpenInterval, int]], List[CandidateItem]]:
        """Highest-scoring (item, interval, length) and the items that fit nowhere."""
        best = None
        best_key = None
        stuck: List[CandidateItem] = []
        for item in items:
            fits = False
            for iv in self._free:
                length = self._length(item, iv)
                if length is None:
                    continue
                fits = True
                ctx = ScoringContext(length=length, need=self._remaining[item.id], weights=self.weights)
                key = (-score(item, iv, ctx), -item.priority, -item.urgency, iv.start, item.id)
                if best_key is None or key < best_key:
                    best_key = key
                    best = (item, iv, length)
            if not fits:
                stuck.append(item)
        return best, stuck

    def _place(self, item: CandidateItem, iv: OpenInterval, length: int) -> None:
        need = self._remaining[item.id]
        start = anchored_start(item.preferred_window, iv, length)
        notes = ""
        if length < need and not item.splittable:
            self._shrunk.add(item.id)
            notes = f"shortened from {need} to {length} min"
            self._adjustments.append(Adjustment(item.id, item.title, "shrunk", need, length))
        self._commit(item, Interval(start, start + length), notes=notes)
        if item.id in self._shrunk:
            self._remaining[item.id] = 0    # shrinking happens at most once

    def _place_flexible(self, items: List[CandidateItem]) -> None:
        active = list(items)
        while active and self._free:
            best, stuck = self._best_pair(active)
            for item in stuck:
                active.remove(item)
                self._deferred.append(item)
            if best is None:
                break
            item, iv, length = best
            self._place(item, iv, length)
            if self._remaining[item.id] == 0:
                active.remove(item)
        self._deferred.extend(active)    # left over because the day ran out of intervals

    # ── REPAIR ───────────────────────────────────────────────────────

    def _repair(self) -> None:
        for item in sorted(self._deferred, key=lambda i: (-i.priority, -i.urgency, i.id)):
            while self._remaining[item.id] > 0:
                best, _ = self._best_pair([item])
                if best is None:
                    break
                self._place(*best)

            remaining = self._remaining[item.id]
            if remaining == 0:
                continue
            if remaining < item.duration:
                detail = f"{remaining} of {item.duration} min could not be placed"
            else:
                detail = f"no free interval of {self._threshold(item)}+ min left"
            self._reject(item, UnscheduledReason.NO_CAPACITY, detail, remaining=remaining)
        self._deferred = []

    @staticmethod
    def _threshold(item: CandidateItem) -> int:
        """Smallest interval the item could ever have used."""
        if item.splittable:
            return item.min_chunk
        if item.flexibility == "semi-flexible":
            return item.min_viable_duration
        return item.duration

    def _record_splits(self) -> None:
        for item in self.candidates:
            parts = self._parts.get(item.id, 0)
            if item.splittable and parts > 1:
                placed = item.duration - self._remaining[item.id]
                self._adjustments.append(
                    Adjustment(item.id, item.title, "split", item.duration, placed, parts=parts)
                )
