"""
time_utils.py
-------------
Minute-precision time arithmetic for the day planner.

Conventions:
  * A "minute-of-day" is 0..1439 (what users type as 'HH:MM').
  * An "absolute minute" is measured from midnight of the planned date and
    lives in a 48h working buffer (0..2880), so a block that crosses midnight
    is simply an interval whose end is > 1440.  Nothing downstream ever has to
    branch on wraparound.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Tuple

MINUTES_PER_DAY = 24 * 60
BUFFER_MINUTES = 2 * MINUTES_PER_DAY

_HHMM = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")
_NATURAL = re.compile(r"^(\d{1,2})(?::(\d{2}))?\s*(am|pm|a\.m\.|p\.m\.)?$", re.IGNORECASE)


# ── string <-> minutes ────────────────────────────────────────────────────────

def to_minutes(t: str) -> int:
    """'HH:MM' -> total minutes since midnight.  Raises ValueError if malformed."""
    match = _HHMM.match(t.strip()) if isinstance(t, str) else None
    if match is None:
        raise ValueError(f"invalid time string: {t!r} (expected HH:MM)")
    return int(match.group(1)) * 60 + int(match.group(2))


def to_time_string(minutes: int) -> str:
    """Minutes (any absolute value) -> 'HH:MM' wall-clock time."""
    h, m = divmod(minutes % MINUTES_PER_DAY, 60)
    return f"{h:02d}:{m:02d}"


def is_valid_time(t: str) -> bool:
    return isinstance(t, str) and _HHMM.match(t.strip()) is not None


def parse_natural_time(text: str) -> Optional[int]:
    """
    Parse loose user input into minutes since midnight.

    Accepts '9', '9:30', '09:30', '21:15', '9am', '9:30 pm', '12am'.
    Returns None for anything else, never a silent default.
    """
    if not isinstance(text, str):
        return None
    match = _NATURAL.match(text.strip())
    if match is None:
        return None

    hours = int(match.group(1))
    minutes = int(match.group(2)) if match.group(2) else 0
    meridiem = (match.group(3) or "").replace(".", "").lower()

    if minutes > 59:
        return None
    if meridiem:
        if not 1 <= hours <= 12:
            return None
        if meridiem == "pm" and hours != 12:
            hours += 12
        elif meridiem == "am" and hours == 12:
            hours = 0
    elif hours > 23:
        return None
    return hours * 60 + minutes


# ── durations / overlap (wall-clock, midnight-safe) ───────────────────────────

def duration(a: int, b: int) -> int:
    """Minutes from a to b; b <= a is read as crossing midnight."""
    if b <= a:
        b += MINUTES_PER_DAY
    return b - a


def _unwrap(start: int, end: int) -> Tuple[int, int]:
    """(start, end) minute-of-day pair -> (start, end) with end > start."""
    return start, start + duration(start, end)


def overlaps(i1: Tuple[int, int], i2: Tuple[int, int]) -> bool:
    """True if two minute-of-day ranges share at least one minute.
    Either range may cross midnight, e.g. (1380, 60) for 23:00-01:00."""
    s1, e1 = _unwrap(*i1)
    s2, e2 = _unwrap(*i2)
    for shift in (-MINUTES_PER_DAY, 0, MINUTES_PER_DAY):
        if s1 < e2 + shift and s2 + shift < e1:
            return True
    return False


def anchor_minute(minute_of_day: int, day_start: int) -> int:
    """Place a minute-of-day on the absolute axis of a day beginning at day_start.
    The result lies in [day_start, day_start + 1440)."""
    return day_start + (minute_of_day - day_start) % MINUTES_PER_DAY


def hour_of(absolute_minute: int) -> int:
    return (absolute_minute % MINUTES_PER_DAY) // 60


# ── absolute interval ─────────────────────────────────────────────────────────

@dataclass(frozen=True, order=True)
class Interval:
    """Half-open [start, end) range of absolute minutes."""
    start: int
    end: int

    def __post_init__(self):
        if self.end <= self.start:
            raise ValueError(f"interval must have positive duration: {self.start}-{self.end}")

    @classmethod
    def from_wall_clock(cls, start: int, end: int, day_start: int = 0) -> "Interval":
        """Minute-of-day pair (end may be < start) -> absolute interval."""
        s = anchor_minute(start, day_start)
        return cls(s, s + duration(start, end))

    @property
    def duration(self) -> int:
        return self.end - self.start

    def overlaps(self, other: "Interval") -> bool:
        return self.start < other.end and other.start < self.end

    def contains(self, other: "Interval") -> bool:
        return self.start <= other.start and other.end <= self.end

    def expand(self, before: int, after: int) -> "Interval":
        return Interval(self.start - before, self.end + after)

    def label(self) -> str:
        return f"{to_time_string(self.start)}-{to_time_string(self.end)}"
