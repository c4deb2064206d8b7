"""
normalizer.py
-------------
Expands stored habits, tasks and gym settings into today's flat list of
CandidateItem.  Decides eligibility (frequency, cooldown, dependencies) and a
0-1 urgency per item.  Knows nothing about free time or placement.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Dict, Iterable, List, Optional

from models import (
    CandidateItem,
    Chunking,
    DailyFrequency,
    FixedTiming,
    FlexibleTiming,
    GymSettings,
    Habit,
    SpecificDaysFrequency,
    Task,
    TimesPerWeekFrequency,
    WeeklyFrequency,
)

logger = logging.getLogger(__name__)

URGENCY_MAX = 1.0
URGENCY_MIN = 0.1          # undated tasks stay schedulable, they just lose ties
URGENCY_DATED_MIN = 0.15   # any due date outranks none
URGENCY_HORIZON_DAYS = 14

GYM_ITEM_ID = "gym-session"
GYM_WINDOW_TO_TIME_OF_DAY = {"morning": "morning", "after-work": "evening", "evening": "evening"}


def _clamp(value: float) -> float:
    return max(URGENCY_MIN, min(URGENCY_MAX, value))


def weekday_index(day: date) -> int:
    """0 = Sunday ... 6 = Saturday, the convention used by stored habits."""
    return (day.weekday() + 1) % 7


def days_left_in_week(day: date) -> int:
    """Days remaining in the ISO week, today included (Monday -> 7, Sunday -> 1)."""
    return 7 - day.weekday()


# ── habits ────────────────────────────────────────────────────────────

def habit_occurs_today(habit: Habit, today: date) -> bool:
    """Does the habit's frequency ask for an occurrence on `today`?"""
    freq = habit.frequency
    if isinstance(freq, DailyFrequency):
        return True
    if isinstance(freq, SpecificDaysFrequency):
        return weekday_index(today) in freq.days
    if isinstance(freq, WeeklyFrequency):
        return habit.last_completed is None or (today - habit.last_completed).days >= 7
    if isinstance(freq, TimesPerWeekFrequency):
        return habit.completed_this_week < freq.times_per_week
    raise TypeError(f"unknown frequency {freq!r}")


def in_cooldown(habit: Habit, today: date) -> bool:
    if not habit.cooldown_days or habit.last_completed is None:
        return False
    return (today - habit.last_completed).days < habit.cooldown_days


def habit_urgency(habit: Habit, today: date) -> float:
    freq = habit.frequency
    if isinstance(freq, SpecificDaysFrequency):
        return _clamp(0.6)
    if isinstance(freq, WeeklyFrequency):
        if habit.last_completed is None:
            return _clamp(0.5)
        overdue = (today - habit.last_completed).days - 7
        return _clamp(0.4 + 0.1 * overdue)
    if isinstance(freq, TimesPerWeekFrequency):
        remaining = freq.times_per_week - habit.completed_this_week
        return _clamp(remaining / days_left_in_week(today))
    return _clamp(0.5)


def habit_candidate(habit: Habit, today: date) -> CandidateItem:
    timing = (
        FixedTiming(start=habit.explicit_start_time)
        if habit.flexibility == "fixed"
        else FlexibleTiming(flexibility=habit.flexibility)
    )
    return CandidateItem(
        id=habit.id,
        title=habit.name,
        kind="habit",
        duration=habit.duration,
        min_viable_duration=habit.minimum_viable_duration or habit.duration,
        priority=habit.priority,
        energy_level=habit.energy_level,
        timing=timing,
        preferred_window=habit.preferred_time_window,
        urgency=habit_urgency(habit, today),
        eligible=not in_cooldown(habit, today),
    )


# ── tasks ─────────────────────────────────────────────────────────────

def task_urgency(task: Task, today: date) -> float:
    """Monotonic in days-until-due: 1.0 when due/overdue, decaying to URGENCY_DATED_MIN
    at the horizon; URGENCY_MIN when undated."""
    if task.due_date is None:
        return URGENCY_MIN
    days = (task.due_date - today).days
    if days <= 0:
        return URGENCY_MAX
    fraction = max(0.0, 1.0 - days / URGENCY_HORIZON_DAYS)
    return round(URGENCY_DATED_MIN + (URGENCY_MAX - URGENCY_DATED_MIN) * fraction, 4)


def dependencies_met(task: Task, pool: Dict[str, Task]) -> bool:
    # ids missing from the pool (deleted tasks) cannot block anything
    return all(pool[dep].is_completed for dep in task.dependencies if dep in pool)


def task_candidate(task: Task, today: date, pool: Dict[str, Task]) -> CandidateItem:
    return CandidateItem(
        id=task.id,
        title=task.title,
        kind="task",
        duration=task.estimated_duration,
        min_viable_duration=task.minimum_viable_duration or task.estimated_duration,
        priority=task.priority,
        energy_level=task.energy_level,
        timing=FlexibleTiming(flexibility=task.flexibility),
        preferred_window=task.time_window_preference,
        chunking=Chunking(chunk_size=task.chunk_size) if task.is_splittable else None,
        urgency=task_urgency(task, today),
        eligible=dependencies_met(task, pool),
    )


# ── gym ───────────────────────────────────────────────────────────────

def gym_candidate(settings: GymSettings, today: date) -> Optional[CandidateItem]:
    if not settings.enabled or settings.sessions_this_week >= settings.frequency:
        return None
    remaining = settings.frequency - settings.sessions_this_week
    return CandidateItem(
        id=GYM_ITEM_ID,
        title="Gym Workout",
        kind="gym",
        duration=settings.default_duration,
        min_viable_duration=settings.minimum_duration,
        priority=4,
        energy_level="high",
        preferred_window=GYM_WINDOW_TO_TIME_OF_DAY[settings.preferred_window],
        urgency=_clamp(remaining / days_left_in_week(today)),
    )


# ── public entry point ────────────────────────────────────────────────

def normalize_candidates(
    habits: Iterable[Habit],
    tasks: Iterable[Task],
    today: date,
    gym: Optional[GymSettings] = None,
    keep_ineligible: bool = False,
) -> List[CandidateItem]:
    """
    Today's candidate pool, in input order (habits, tasks, gym).

    Habits whose frequency does not ask for today, inactive habits and
    inactive/completed tasks are not occurrences at all.  Habits in cooldown
    and tasks with unmet dependencies are built with eligible=False and
    dropped unless `keep_ineligible` is set.
    """
    tasks = list(tasks)
    pool = {t.id: t for t in tasks}
    candidates: List[CandidateItem] = []

    for habit in habits:
        if not habit.is_active or not habit_occurs_today(habit, today):
            continue
        candidates.append(habit_candidate(habit, today))

    for task in tasks:
        if not task.is_active or task.is_completed:
            continue
        candidates.append(task_candidate(task, today, pool))

    if gym is not None:
        session = gym_candidate(gym, today)
        if session is not None:
            candidates.append(session)

    if not keep_ineligible:
        dropped = [c.id for c in candidates if not c.eligible]
        if dropped:
            logger.debug("dropping ineligible candidates: %s", ", ".join(dropped))
        candidates = [c for c in candidates if c.eligible]

    return candidates
