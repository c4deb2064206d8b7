"""
scorer.py
---------
Desirability of putting one candidate into one open interval.

score = priority + urgency + window match + energy match
        - fragmentation - sliver - late night - partial placement

All weights sit in ScoringWeights, the single tuning point.  The function is
pure: same (item, interval, context) -> same float.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from free_time import OpenInterval
from models import CandidateItem
from time_utils import MINUTES_PER_DAY, hour_of

# minute-of-day windows, [start, end)
TIME_OF_DAY_WINDOWS: Dict[str, Tuple[int, int]] = {
    "morning":   (5 * 60, 12 * 60),
    "afternoon": (12 * 60, 18 * 60),
    "evening":   (18 * 60, 23 * 60),
}

ENERGY_RANK = {"low": 0, "medium": 1, "high": 2}


class ScoringWeights(BaseModel):
    model_config = ConfigDict(frozen=True)

    priority: float = 1.0
    urgency: float = 1.0
    window: float = 1.0
    window_mismatch: float = 0.5       # factor applied to `window` when the window is missed
    energy: float = 0.5
    energy_adjacent: float = 0.75      # one level off (e.g. medium task in a high-energy hour)
    energy_mismatch: float = 0.5
    fragmentation: float = 0.3
    sliver: float = 0.2
    sliver_minutes: int = 15
    late_night: float = 0.5
    late_night_start: int = 22 * 60
    late_night_end: int = 5 * 60
    partial: float = 0.4


DEFAULT_WEIGHTS = ScoringWeights()


@dataclass(frozen=True)
class ScoringContext:
    length: int                 # minutes the placement would take
    need: int                   # minutes the item still wants
    weights: ScoringWeights = DEFAULT_WEIGHTS


# ── window helpers ────────────────────────────────────────────────────────────

def window_occurrences(window: str) -> List[Tuple[int, int]]:
    """The window on both days of the 48h absolute axis."""
    ws, we = TIME_OF_DAY_WINDOWS[window]
    return [(ws, we), (ws + MINUTES_PER_DAY, we + MINUTES_PER_DAY)]


def in_window(absolute_minute: int, window: str) -> bool:
    ws, we = TIME_OF_DAY_WINDOWS[window]
    return ws <= absolute_minute % MINUTES_PER_DAY < we


def window_start(window: Optional[str], start: int, end: int, length: int) -> Optional[int]:
    """Earliest start inside `window` such that [s, s+length) still fits in [start, end)."""
    if window is None:
        return None
    for ws, we in window_occurrences(window):
        s = max(start, ws)
        if s < we and s + length <= end:
            return s
    return None


def anchored_start(window: Optional[str], interval: OpenInterval, length: int) -> int:
    """Earliest start honouring the preferred window, else the interval start."""
    s = window_start(window, interval.start, interval.end, length)
    return interval.start if s is None else s


def energy_profile(absolute_minute: int) -> str:
    hour = hour_of(absolute_minute)
    if 6 <= hour < 13:
        return "high"
    if 13 <= hour < 18:
        return "medium"
    return "low"


def is_late_night(absolute_minute: int, weights: ScoringWeights = DEFAULT_WEIGHTS) -> bool:
    m = absolute_minute % MINUTES_PER_DAY
    return m >= weights.late_night_start or m < weights.late_night_end


# ── score ─────────────────────────────────────────────────────────────────────

def score(item: CandidateItem, interval: OpenInterval, context: ScoringContext) -> float:
    w = context.weights
    start = anchored_start(item.preferred_window, interval, context.length)

    if item.preferred_window is None or in_window(start, item.preferred_window):
        window_term = 1.0
    else:
        window_term = w.window_mismatch

    gap = abs(ENERGY_RANK[energy_profile(start)] - ENERGY_RANK[item.energy_level])
    energy_term = (1.0, w.energy_adjacent, w.energy_mismatch)[gap]

    slack = interval.duration - context.length
    fragmentation = slack / interval.duration
    sliver = 1.0 if 0 < slack < w.sliver_minutes else 0.0
    late = 1.0 if is_late_night(start, w) else 0.0
    partial = 1.0 - context.length / context.need

    total = (
        w.priority * item.priority / 5
        + w.urgency * item.urgency
        + w.window * window_term
        + w.energy * energy_term
        - w.fragmentation * fragmentation
        - w.sliver * sliver
        - w.late_night * late
        - w.partial * partial
    )
    return round(total, 6)
